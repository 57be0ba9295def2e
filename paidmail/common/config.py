"""Central environment-driven settings for the paidmail service.

The process loads this once at startup. Behavior is controlled by environment
variables (see `.env.example`).
"""

from pathlib import Path
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_PRICE_MINOR_UNIT = 99
DEFAULT_PUBLIC_DIR = Path(__file__).resolve().parent.parent / "public"


class CommonSettings(BaseSettings):
    """Typed view of runtime configuration from environment variables."""

    service_name: str = "paidmail"
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 3000
    public_base_url: str | None = None
    public_dir: Path = DEFAULT_PUBLIC_DIR

    stripe_secret_key: str = ""
    stripe_webhook_secret: str = ""
    checkout_currency: str = "eur"
    product_name: str = "Fanculo automatico"
    product_description: str = "Invia un messaggio ironico via email!"
    price_minor_unit_custom: int = DEFAULT_PRICE_MINOR_UNIT
    price_minor_unit_template: int = DEFAULT_PRICE_MINOR_UNIT

    emailjs_public_key: str = ""
    emailjs_private_key: str = ""
    emailjs_service_id: str = ""
    emailjs_template_id: str = ""
    emailjs_api_url: str = "https://api.emailjs.com/api/v1.0/email/send"
    emailjs_timeout_seconds: float = 10.0
    email_recipient_name: str = "Utente"

    order_storage: Literal["metadata", "store"] = "metadata"
    order_ttl_seconds: int = 86400
    order_store_max_entries: int = 10_000
    delete_order_after_send: bool = True
    redis_url: str | None = None
    webhook_dedupe_enabled: bool = True
    webhook_dedupe_ttl_seconds: int = 3 * 86400

    otel_exporter_otlp_endpoint: str | None = None
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @field_validator("price_minor_unit_custom", "price_minor_unit_template", mode="before")
    @classmethod
    def _fallback_price(cls, value):
        """Unset, unparsable or non-positive prices fall back to the default."""

        try:
            price = int(value)
        except (TypeError, ValueError):
            return DEFAULT_PRICE_MINOR_UNIT
        return price if price > 0 else DEFAULT_PRICE_MINOR_UNIT

    @property
    def stripe_configured(self) -> bool:
        return bool(self.stripe_secret_key and self.stripe_webhook_secret)

    @property
    def emailjs_configured(self) -> bool:
        return all(
            [
                self.emailjs_public_key,
                self.emailjs_private_key,
                self.emailjs_service_id,
                self.emailjs_template_id,
            ]
        )


settings = CommonSettings()
