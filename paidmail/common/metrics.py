"""Prometheus metric definitions for the checkout service."""

from prometheus_client import Counter, Histogram, generate_latest
from starlette.responses import Response


checkout_sessions_created_total = Counter(
    "checkout_sessions_created_total",
    "Checkout sessions created with the payment provider",
    ["service", "storage"],
)
checkout_session_failures_total = Counter(
    "checkout_session_failures_total",
    "Checkout session creations rejected by the payment provider",
    ["service"],
)
webhook_events_total = Counter(
    "webhook_events_total",
    "Verified webhook events received",
    ["service", "event_type"],
)
webhook_verification_failures_total = Counter(
    "webhook_verification_failures_total",
    "Webhook payloads rejected by signature verification",
    ["service"],
)
duplicate_webhooks_skipped_total = Counter(
    "duplicate_webhooks_skipped_total",
    "Redelivered webhook events skipped",
    ["service"],
)
orders_missing_total = Counter(
    "orders_missing_total",
    "Completed sessions without a resolvable order",
    ["service"],
)
emails_sent_total = Counter("emails_sent_total", "Emails accepted by the delivery provider", ["service"])
email_failures_total = Counter("email_failures_total", "Email deliveries that failed", ["service"])
http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["service", "route", "method", "status_code"],
)
http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration seconds",
    ["service", "route", "method"],
)


def metrics_response() -> Response:
    """Expose all registered Prometheus metrics in text format."""

    return Response(content=generate_latest(), media_type="text/plain")
