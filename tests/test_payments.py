"""Stripe gateway: session parameters and provider error mapping."""

import asyncio
from types import SimpleNamespace

import pytest
import stripe

from paidmail.services.checkout.errors import PaymentProviderError, WebhookVerificationError
from paidmail.services.checkout.payments import CheckoutSession, StripeGateway


def create(gateway: StripeGateway, **overrides) -> CheckoutSession:
    values = {
        "unit_amount": 99,
        "currency": "eur",
        "product_name": "Messaggio",
        "product_description": "Un messaggio ironico",
        "success_url": "https://paid.example.com/success?success=1",
        "cancel_url": "https://paid.example.com/cancel",
        "metadata": {"order_id": "order123"},
    }
    values.update(overrides)
    return asyncio.run(gateway.create_checkout_session(**values))


@pytest.fixture
def stripe_calls(monkeypatch):
    calls = []

    def fake_create(**kwargs):
        calls.append(kwargs)
        return SimpleNamespace(id="cs_test_abc", url="https://checkout.stripe.com/c/pay/cs_test_abc")

    monkeypatch.setattr(stripe.checkout.Session, "create", fake_create)
    return calls


def test_session_is_one_card_item_in_payment_mode(stripe_calls):
    session = create(StripeGateway("sk_test_key", "whsec"), client_reference_id="order123")

    assert session == CheckoutSession(id="cs_test_abc", url="https://checkout.stripe.com/c/pay/cs_test_abc")
    (call,) = stripe_calls
    assert call["api_key"] == "sk_test_key"
    assert call["payment_method_types"] == ["card"]
    assert call["mode"] == "payment"
    assert call["line_items"] == [
        {
            "price_data": {
                "currency": "eur",
                "product_data": {"name": "Messaggio", "description": "Un messaggio ironico"},
                "unit_amount": 99,
            },
            "quantity": 1,
        }
    ]
    assert call["success_url"] == "https://paid.example.com/success?success=1"
    assert call["cancel_url"] == "https://paid.example.com/cancel"
    assert call["metadata"] == {"order_id": "order123"}
    assert call["client_reference_id"] == "order123"


def test_reference_id_is_omitted_when_absent(stripe_calls):
    create(StripeGateway("sk_test_key", "whsec"))

    assert "client_reference_id" not in stripe_calls[0]


def test_stripe_errors_become_provider_errors(monkeypatch):
    def fail(**kwargs):
        raise stripe.APIConnectionError("boom")

    monkeypatch.setattr(stripe.checkout.Session, "create", fail)

    with pytest.raises(PaymentProviderError, match="boom"):
        create(StripeGateway("sk_test_key", "whsec"))


def test_verification_needs_a_configured_secret():
    with pytest.raises(WebhookVerificationError, match="not configured"):
        StripeGateway("sk_test_key", "").verify_event(b"{}", "t=1,v1=abc")
