"""OpenTelemetry setup helpers for the FastAPI app.

Request spans come from FastAPI auto-instrumentation; the two outbound
provider calls (Stripe session creation, EmailJS send) get their own child
spans through `tracer`. Without an OTLP endpoint the API's no-op provider
is left in place.
"""

from fastapi import FastAPI
from opentelemetry import trace
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter


tracer = trace.get_tracer("paidmail")


def setup_tracing(service_name: str, endpoint: str | None) -> bool:
    """Export spans over OTLP HTTP when an endpoint is set; returns whether it did."""

    if not endpoint:
        return False
    resource = Resource.create({"service.name": service_name, "service.namespace": "paidmail"})
    provider = TracerProvider(resource=resource)
    provider.add_span_processor(BatchSpanProcessor(OTLPSpanExporter(endpoint=endpoint)))
    trace.set_tracer_provider(provider)
    return True


def instrument_app(app: FastAPI) -> None:
    # /health and /metrics are scraped constantly and carry no checkout work.
    FastAPIInstrumentor.instrument_app(app, excluded_urls="health,metrics")
