"""Stripe checkout sessions and webhook signature verification."""

import json
from dataclasses import dataclass
from typing import Any

import stripe
from starlette.concurrency import run_in_threadpool

from paidmail.common.tracing import tracer
from paidmail.services.checkout.errors import PaymentProviderError, WebhookVerificationError


@dataclass(frozen=True)
class CheckoutSession:
    """The parts of a Stripe session the browser needs."""

    id: str
    url: str | None


class StripeGateway:
    """Creates hosted checkout pages and verifies Stripe-signed events.

    The secret key is passed per request so that nothing is set on the
    module-global `stripe.api_key`.
    """

    def __init__(self, secret_key: str, webhook_secret: str, tolerance: int = 300) -> None:
        self.secret_key = secret_key
        self.webhook_secret = webhook_secret
        self.tolerance = tolerance

    def _create_session(self, params: dict[str, Any]):
        return stripe.checkout.Session.create(api_key=self.secret_key, **params)

    async def create_checkout_session(
        self,
        *,
        unit_amount: int,
        currency: str,
        product_name: str,
        product_description: str,
        success_url: str,
        cancel_url: str,
        metadata: dict[str, str],
        client_reference_id: str | None = None,
    ) -> CheckoutSession:
        """Create a one-item card payment session.

        The Stripe client is synchronous, so the call runs in the threadpool.
        """

        params: dict[str, Any] = {
            "payment_method_types": ["card"],
            "line_items": [
                {
                    "price_data": {
                        "currency": currency,
                        "product_data": {"name": product_name, "description": product_description},
                        "unit_amount": unit_amount,
                    },
                    "quantity": 1,
                }
            ],
            "mode": "payment",
            "success_url": success_url,
            "cancel_url": cancel_url,
            "metadata": metadata,
        }
        if client_reference_id:
            params["client_reference_id"] = client_reference_id
        with tracer.start_as_current_span("stripe.checkout.session.create") as span:
            span.set_attribute("stripe.unit_amount", unit_amount)
            span.set_attribute("stripe.currency", currency)
            try:
                session = await run_in_threadpool(self._create_session, params)
            except stripe.StripeError as exc:
                raise PaymentProviderError(str(exc)) from exc
            span.set_attribute("stripe.session_id", session.id)
        return CheckoutSession(id=session.id, url=getattr(session, "url", None))

    def verify_event(self, payload: bytes, signature: str | None) -> dict[str, Any]:
        """Check the `stripe-signature` header and return the decoded event.

        Nothing in the payload is read before the signature matches.
        """

        if not signature:
            raise WebhookVerificationError("missing stripe-signature header")
        if not self.webhook_secret:
            raise WebhookVerificationError("webhook signing secret is not configured")
        try:
            body = payload.decode("utf-8")
            stripe.WebhookSignature.verify_header(body, signature, self.webhook_secret, self.tolerance)
            event = json.loads(body)
        except stripe.SignatureVerificationError as exc:
            raise WebhookVerificationError(str(exc)) from exc
        except ValueError as exc:
            raise WebhookVerificationError(f"invalid payload: {exc}") from exc
        if not isinstance(event, dict):
            raise WebhookVerificationError("invalid payload: event is not an object")
        return event
