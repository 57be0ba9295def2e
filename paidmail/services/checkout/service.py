"""Checkout orchestration between Stripe and EmailJS.

Creates hosted payment sessions carrying the order intent (in session metadata
or in the order store) and, when Stripe reports a completed session, forwards
the paid message to its recipient.
"""

from typing import Any
from uuid import uuid4

from paidmail.common.config import CommonSettings
from paidmail.common.logging import event_id_ctx, logger, session_id_ctx
from paidmail.common.metrics import (
    checkout_session_failures_total,
    checkout_sessions_created_total,
    duplicate_webhooks_skipped_total,
    email_failures_total,
    emails_sent_total,
    orders_missing_total,
    webhook_events_total,
    webhook_verification_failures_total,
)
from paidmail.services.checkout.errors import (
    EmailDeliveryError,
    OrderValidationError,
    PaymentProviderError,
    WebhookVerificationError,
)
from paidmail.services.checkout.mailer import EmailJSClient
from paidmail.services.checkout.payments import StripeGateway
from paidmail.services.checkout.schemas import CreateSessionRequest, CreateSessionResponse, OrderIntent
from paidmail.services.checkout.store import OrderStore


SESSION_COMPLETED = "checkout.session.completed"
# Stripe rejects metadata values longer than this.
METADATA_VALUE_LIMIT = 500


def _flag(value: bool) -> str:
    return "true" if value else "false"


def intent_to_metadata(intent: OrderIntent) -> dict[str, str]:
    """Encode an intent as Stripe session metadata (string values only)."""

    return {
        "email": intent.email,
        "msg_template": intent.message,
        "signed": _flag(intent.signed),
        "custom": _flag(intent.custom),
    }


def intent_from_metadata(metadata: dict[str, Any]) -> OrderIntent | None:
    email = metadata.get("email")
    message = metadata.get("msg_template")
    if not email or not message:
        return None
    return OrderIntent(
        email=email,
        message=message,
        signed=metadata.get("signed") == "true",
        custom=metadata.get("custom") == "true",
    )


class CheckoutService:
    """Owns session creation and webhook handling for paid messages."""

    def __init__(
        self,
        settings: CommonSettings,
        payments: StripeGateway,
        mailer: EmailJSClient,
        store: OrderStore,
    ) -> None:
        self.settings = settings
        self.payments = payments
        self.mailer = mailer
        self.store = store

    def unit_amount(self, custom: bool) -> int:
        if custom:
            return self.settings.price_minor_unit_custom
        return self.settings.price_minor_unit_template

    async def create_session(self, req: CreateSessionRequest, base_url: str) -> CreateSessionResponse:
        """Validate the request, record the intent and open a hosted checkout."""

        email = (req.email or "").strip()
        message = req.template or ""
        if not email or not message:
            raise OrderValidationError("missing data: email or template")

        intent = OrderIntent(email=email, message=message, signed=req.signed, custom=req.custom)
        storage = self.settings.order_storage
        order_id = None
        if storage == "store":
            order_id = uuid4().hex
            await self.store.put(order_id, intent, self.settings.order_ttl_seconds)
            metadata = {"order_id": order_id}
        else:
            if len(message) > METADATA_VALUE_LIMIT or len(email) > METADATA_VALUE_LIMIT:
                raise OrderValidationError(f"email and template must be at most {METADATA_VALUE_LIMIT} characters")
            metadata = intent_to_metadata(intent)

        base_url = base_url.rstrip("/")
        logger.info(
            "creating checkout session storage=%s custom=%s signed=%s message_length=%s",
            storage,
            intent.custom,
            intent.signed,
            len(message),
        )
        try:
            session = await self.payments.create_checkout_session(
                unit_amount=self.unit_amount(intent.custom),
                currency=self.settings.checkout_currency,
                product_name=self.settings.product_name,
                product_description=self.settings.product_description,
                success_url=f"{base_url}/success?success=1",
                cancel_url=f"{base_url}/cancel",
                metadata=metadata,
                client_reference_id=order_id,
            )
        except PaymentProviderError as exc:
            logger.error("stripe session error: %s", exc)
            checkout_session_failures_total.labels(service=self.settings.service_name).inc()
            if order_id is not None:
                await self.store.delete(order_id)
            raise

        session_id_ctx.set(session.id)
        checkout_sessions_created_total.labels(service=self.settings.service_name, storage=storage).inc()
        logger.info("checkout session created order_id=%s", order_id)
        return CreateSessionResponse(session_id=session.id, url=session.url)

    async def handle_webhook(self, payload: bytes, signature: str | None) -> None:
        """Verify a Stripe delivery, then act on it.

        Only verification failures propagate to the caller as client errors;
        delivery problems are logged so that Stripe still gets its ack.
        """

        try:
            event = self.payments.verify_event(payload, signature)
        except WebhookVerificationError as exc:
            logger.warning("webhook error: %s", exc)
            webhook_verification_failures_total.labels(service=self.settings.service_name).inc()
            raise
        await self.handle_event(event)

    async def handle_event(self, event: dict[str, Any]) -> None:
        event_id = event.get("id") or ""
        event_type = event.get("type") or ""
        event_id_ctx.set(event_id)
        webhook_events_total.labels(service=self.settings.service_name, event_type=event_type).inc()
        if event_type != SESSION_COMPLETED:
            logger.info("webhook event ignored type=%s", event_type)
            return

        session = (event.get("data") or {}).get("object") or {}
        session_id_ctx.set(session.get("id") or "")
        if session.get("payment_status") == "unpaid":
            logger.info("session completed without payment, nothing sent")
            return

        claimed = False
        if self.settings.webhook_dedupe_enabled and event_id:
            if not await self.store.claim_event(event_id, self.settings.webhook_dedupe_ttl_seconds):
                logger.info("duplicate webhook skipped")
                duplicate_webhooks_skipped_total.labels(service=self.settings.service_name).inc()
                return
            claimed = True

        try:
            order_id, intent = await self.resolve_intent(session)
        except Exception:
            # Nothing was sent, so a redelivery must be allowed through.
            if claimed:
                await self.store.release_event(event_id)
            logger.exception("order lookup failed, claim released=%s", claimed)
            raise
        if intent is None:
            logger.warning("no order for completed session order_id=%s", order_id)
            orders_missing_total.labels(service=self.settings.service_name).inc()
            return

        await self.deliver(intent)
        # The claim stays: a failed cleanup must not cause a second send.
        if order_id is not None and self.settings.delete_order_after_send:
            await self.store.delete(order_id)

    async def resolve_intent(self, session: dict[str, Any]) -> tuple[str | None, OrderIntent | None]:
        """Find the intent of a session: stored order first, metadata otherwise."""

        metadata = session.get("metadata") or {}
        order_id = metadata.get("order_id") or session.get("client_reference_id")
        if order_id:
            return order_id, await self.store.get(order_id)
        return None, intent_from_metadata(metadata)

    async def deliver(self, intent: OrderIntent) -> None:
        """Send the paid message once; failures are logged, never raised."""

        params = {
            "email": intent.email,
            "to_name": self.settings.email_recipient_name,
            "msg_template": intent.message,
        }
        try:
            await self.mailer.send(params)
        except EmailDeliveryError as exc:
            logger.error("emailjs error: %s", exc)
            email_failures_total.labels(service=self.settings.service_name).inc()
            return
        emails_sent_total.labels(service=self.settings.service_name).inc()
        logger.info("email sent message_length=%s", len(intent.message))

    async def close(self) -> None:
        await self.mailer.close()
        await self.store.close()
