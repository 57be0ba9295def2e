"""Shared fixtures: a checkout app wired to fake Stripe/EmailJS collaborators.

Webhook payloads are signed locally with the test secret, so signature
verification runs through the real Stripe library.
"""

import hashlib
import hmac
import json
import time
from dataclasses import dataclass
from typing import Any

import pytest
from fastapi.testclient import TestClient

from paidmail.common.config import CommonSettings
from paidmail.services.checkout.errors import EmailDeliveryError, PaymentProviderError
from paidmail.services.checkout.main import create_app
from paidmail.services.checkout.payments import CheckoutSession, StripeGateway
from paidmail.services.checkout.service import CheckoutService
from paidmail.services.checkout.store import MemoryOrderStore


WEBHOOK_SECRET = "whsec_test_secret"


def sign(payload: str, secret: str = WEBHOOK_SECRET) -> str:
    timestamp = int(time.time())
    digest = hmac.new(secret.encode(), f"{timestamp}.{payload}".encode(), hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


def completed_event(
    metadata: dict[str, str] | None = None,
    event_id: str = "evt_test_1",
    client_reference_id: str | None = None,
    payment_status: str = "paid",
    event_type: str = "checkout.session.completed",
) -> dict[str, Any]:
    return {
        "id": event_id,
        "object": "event",
        "type": event_type,
        "data": {
            "object": {
                "id": "cs_test_1",
                "object": "checkout.session",
                "payment_status": payment_status,
                "client_reference_id": client_reference_id,
                "metadata": metadata or {},
            }
        },
    }


class FakeGateway(StripeGateway):
    """Records session requests; verification stays the real implementation."""

    def __init__(self, fail: bool = False) -> None:
        super().__init__("sk_test_fake", WEBHOOK_SECRET)
        self.fail = fail
        self.calls: list[dict[str, Any]] = []

    async def create_checkout_session(self, **kwargs) -> CheckoutSession:
        self.calls.append(kwargs)
        if self.fail:
            raise PaymentProviderError("api_connection_error")
        return CheckoutSession(id=f"cs_test_{len(self.calls)}", url="https://checkout.stripe.com/c/pay/cs_test")


class FakeMailer:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.sent: list[dict[str, Any]] = []
        self.closed = False

    async def send(self, template_params: dict[str, Any]) -> None:
        self.sent.append(template_params)
        if self.fail:
            raise EmailDeliveryError("emailjs rejected message status=503")

    async def close(self) -> None:
        self.closed = True


@dataclass
class Harness:
    client: TestClient
    service: CheckoutService
    gateway: FakeGateway
    mailer: FakeMailer
    store: MemoryOrderStore

    def create_session(self, body: dict[str, Any]):
        return self.client.post("/api/stripe/create-session", json=body)

    def post_event(self, event: dict[str, Any], secret: str = WEBHOOK_SECRET, signature: str | None = None):
        payload = json.dumps(event)
        return self.client.post(
            "/api/stripe/webhook",
            content=payload.encode(),
            headers={
                "content-type": "application/json",
                "stripe-signature": signature if signature is not None else sign(payload, secret),
            },
        )


@pytest.fixture
def make_harness():
    """Factory for a wired app; extra keyword overrides go to settings."""

    def _make(
        gateway_fails: bool = False,
        mailer_fails: bool = False,
        store: MemoryOrderStore | None = None,
        raise_server_exceptions: bool = True,
        **overrides,
    ) -> Harness:
        values = {
            "stripe_secret_key": "sk_test_fake",
            "stripe_webhook_secret": WEBHOOK_SECRET,
            "emailjs_public_key": "pub",
            "emailjs_private_key": "priv",
            "emailjs_service_id": "service_x",
            "emailjs_template_id": "template_x",
        }
        values.update(overrides)
        settings = CommonSettings(_env_file=None, **values)
        gateway = FakeGateway(fail=gateway_fails)
        mailer = FakeMailer(fail=mailer_fails)
        if store is None:
            store = MemoryOrderStore(max_entries=100)
        service = CheckoutService(settings, payments=gateway, mailer=mailer, store=store)
        client = TestClient(create_app(service), raise_server_exceptions=raise_server_exceptions)
        return Harness(client, service, gateway, mailer, store)

    return _make


@pytest.fixture
def harness(make_harness) -> Harness:
    return make_harness()
