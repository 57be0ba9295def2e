"""Structured JSON logging with request/event context fields.

Every record carries, besides level and message:

- `service_name`: `SERVICE_NAME` from settings;
- `trace_id`: the caller's `x-request-id`, or a fresh uuid per request;
- `session_id`: the Stripe checkout session being created or completed;
- `event_id`: the Stripe event id of the webhook being handled.

The context vars are set by the HTTP middleware and the checkout service, so
a webhook's log lines can be matched to the Stripe dashboard entry.
Message texts and recipient addresses are never logged.
"""

import logging
import sys
from contextvars import ContextVar

from pythonjsonlogger.json import JsonFormatter

from paidmail.common.config import settings


trace_id_ctx: ContextVar[str] = ContextVar("trace_id", default="")
session_id_ctx: ContextVar[str] = ContextVar("session_id", default="")
event_id_ctx: ContextVar[str] = ContextVar("event_id", default="")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(service_name)s %(trace_id)s %(session_id)s %(event_id)s %(message)s"


class ContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.service_name = settings.service_name
        record.trace_id = trace_id_ctx.get()
        record.session_id = session_id_ctx.get()
        record.event_id = event_id_ctx.get()
        return True


def configure_logging(level: str | None = None) -> None:
    """Send JSON lines to stdout from the root logger; uvicorn's loggers propagate to it."""

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(ContextFilter())
    handler.setFormatter(JsonFormatter(LOG_FORMAT, rename_fields={"levelname": "level", "name": "logger"}))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level or settings.log_level)
    for name in ("uvicorn", "uvicorn.access", "uvicorn.error"):
        logging.getLogger(name).handlers = []
        logging.getLogger(name).propagate = True


logger = logging.getLogger("paidmail")
