"""HTTP surface for paid message checkout.

Routes the browser's session requests and Stripe's webhook deliveries to the
checkout service, and serves the static pages of the site.
"""

from contextlib import asynccontextmanager
from pathlib import Path
from time import perf_counter
from urllib.parse import unquote
from uuid import uuid4

import uvicorn
from fastapi import FastAPI, Header, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import FileResponse, JSONResponse, PlainTextResponse

from paidmail.common.config import CommonSettings, settings
from paidmail.common.logging import configure_logging, event_id_ctx, logger, session_id_ctx, trace_id_ctx
from paidmail.common.metrics import http_request_duration_seconds, http_requests_total, metrics_response
from paidmail.common.startup import log_startup_config, warn_incomplete_config
from paidmail.common.tracing import instrument_app, setup_tracing
from paidmail.services.checkout.errors import OrderValidationError, PaymentProviderError, WebhookVerificationError
from paidmail.services.checkout.mailer import EmailJSClient
from paidmail.services.checkout.payments import StripeGateway
from paidmail.services.checkout.schemas import CreateSessionRequest, CreateSessionResponse, WebhookAck
from paidmail.services.checkout.service import CheckoutService
from paidmail.services.checkout.store import build_store

# Unknown paths answer like the main page whatever the method.
FALLBACK_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]

configure_logging()
setup_tracing(settings.service_name, settings.otel_exporter_otlp_endpoint)
log_startup_config(settings)
warn_incomplete_config(settings)


def build_service(app_settings: CommonSettings) -> CheckoutService:
    """Wire the checkout service from settings."""

    return CheckoutService(
        app_settings,
        payments=StripeGateway(app_settings.stripe_secret_key, app_settings.stripe_webhook_secret),
        mailer=EmailJSClient(
            service_id=app_settings.emailjs_service_id,
            template_id=app_settings.emailjs_template_id,
            public_key=app_settings.emailjs_public_key,
            private_key=app_settings.emailjs_private_key,
            api_url=app_settings.emailjs_api_url,
            timeout=app_settings.emailjs_timeout_seconds,
        ),
        store=build_store(app_settings.redis_url, app_settings.order_store_max_entries),
    )


def resolve_public_file(public_dir: Path, path: str) -> Path:
    """Map a request path to a file under `public_dir`, defaulting to index.html."""

    root = public_dir.resolve()
    candidate = (root / path).resolve()
    if path and candidate.is_file() and candidate.is_relative_to(root):
        return candidate
    return root / "index.html"


def create_app(service: CheckoutService | None = None) -> FastAPI:
    """Build the FastAPI app around one checkout service instance."""

    service = service or build_service(settings)
    public_dir = Path(service.settings.public_dir)

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        """Release the HTTP client and order store on shutdown."""

        yield
        await service.close()

    app = FastAPI(title="paidmail", lifespan=lifespan)
    app.state.service = service
    instrument_app(app)

    @app.middleware("http")
    async def request_context_middleware(request: Request, call_next):
        """Tag the request with a trace id and record count and latency.

        Metrics are labelled by route template, so every fallback hit counts
        under `/{path:path}` instead of one series per requested URL.
        """

        trace_id = request.headers.get("x-request-id") or str(uuid4())
        trace_id_ctx.set(trace_id)
        session_id_ctx.set("")
        event_id_ctx.set("")
        start = perf_counter()
        route = "unmatched"
        method = request.method
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            route_obj = request.scope.get("route")
            if route_obj is not None and getattr(route_obj, "path", None):
                route = route_obj.path
            response.headers["x-request-id"] = trace_id
            return response
        finally:
            elapsed = max(0.0, perf_counter() - start)
            http_request_duration_seconds.labels(
                service=service.settings.service_name,
                route=route,
                method=method,
            ).observe(elapsed)
            http_requests_total.labels(
                service=service.settings.service_name,
                route=route,
                method=method,
                status_code=str(status_code),
            ).inc()

    # Registered last so it runs first: bracketed URLs never reach routing.
    @app.middleware("http")
    async def reject_brackets_middleware(request: Request, call_next):
        target = request.url.path + unquote(request.url.query)
        if "[" in target or "]" in target:
            return PlainTextResponse("Not found", status_code=404)
        return await call_next(request)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(_: Request, exc: RequestValidationError):
        """Unparsable bodies are client errors like missing fields."""

        return JSONResponse(status_code=400, content={"detail": jsonable_errors(exc)})

    @app.post("/api/stripe/create-session", response_model=CreateSessionResponse)
    async def create_session(req: CreateSessionRequest, request: Request):
        """Open a hosted checkout for one message and return its session id."""

        base_url = service.settings.public_base_url or str(request.base_url)
        try:
            return await service.create_session(req, base_url)
        except OrderValidationError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except PaymentProviderError as exc:
            raise HTTPException(status_code=500, detail="server error") from exc

    @app.post("/api/stripe/webhook", response_model=WebhookAck)
    async def stripe_webhook(request: Request, stripe_signature: str | None = Header(default=None)):
        """Acknowledge every correctly signed Stripe event."""

        payload = await request.body()
        try:
            await service.handle_webhook(payload, stripe_signature)
        except WebhookVerificationError as exc:
            raise HTTPException(status_code=400, detail=f"Webhook Error: {exc}") from exc
        return WebhookAck()

    @app.get("/health")
    def health():
        """Liveness check for the container runtime."""

        return {"ok": True}

    @app.get("/metrics")
    def metrics():
        """Prometheus scrape endpoint."""

        return metrics_response()

    @app.get("/success", include_in_schema=False)
    def success():
        return FileResponse(public_dir / "success.html")

    @app.get("/cancel", include_in_schema=False)
    def cancel():
        return FileResponse(public_dir / "cancel.html")

    @app.api_route("/{path:path}", methods=FALLBACK_METHODS, include_in_schema=False)
    def static_fallback(path: str):
        """Serve public assets; any unknown path gets the main page."""

        return FileResponse(resolve_public_file(public_dir, path))

    return app


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    return [{"loc": list(err.get("loc", ())), "msg": err.get("msg", "")} for err in exc.errors()]


app = create_app()


def run() -> None:
    """Console entrypoint: serve the app with uvicorn."""

    logger.info("server starting port=%s", settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    run()
