"""Startup-time helpers for safe config logging."""

from typing import Any
from urllib.parse import urlsplit, urlunsplit

from paidmail.common.config import CommonSettings
from paidmail.common.logging import logger


SECRET_MARKERS = ("key", "secret", "password", "token")


def _safe_value(name: str, value: Any) -> Any:
    """Return a settings value with redaction for secret-like field names."""

    if value is None or value == "":
        return "<unset>"
    if any(marker in name for marker in SECRET_MARKERS):
        return "<redacted>"
    if name.endswith("_url") and isinstance(value, str):
        # Connection URLs may carry credentials, e.g. redis://:pass@host.
        parts = urlsplit(value)
        if parts.password or parts.username:
            host = parts.hostname or ""
            if parts.port:
                host = f"{host}:{parts.port}"
            return urlunsplit((parts.scheme, f"<redacted>@{host}", parts.path, parts.query, parts.fragment))
    return value


def log_startup_config(settings: CommonSettings) -> dict[str, Any]:
    """Log the effective settings once for quick troubleshooting.

    Returns the logged mapping.
    """

    config = {name: _safe_value(name, value) for name, value in settings.model_dump().items()}
    logger.info("startup_config=%s", config)
    return config


def warn_incomplete_config(settings: CommonSettings) -> list[str]:
    """Warn about missing provider credentials without refusing to start.

    Returns the warnings that were logged.
    """

    warnings = []
    if not settings.stripe_configured:
        if not settings.stripe_secret_key:
            warnings.append("STRIPE_SECRET_KEY is not set")
        if not settings.stripe_webhook_secret:
            warnings.append("STRIPE_WEBHOOK_SECRET is not set")
    if not settings.emailjs_configured:
        warnings.append(
            "EmailJS config incomplete (EMAILJS_PUBLIC_KEY, EMAILJS_PRIVATE_KEY, "
            "EMAILJS_SERVICE_ID, EMAILJS_TEMPLATE_ID)"
        )
    for warning in warnings:
        logger.warning(warning)
    return warnings
