"""Sign and post a `checkout.session.completed` event to a running instance.

Useful for exercising the email path without the Stripe CLI.
"""

import argparse
import hashlib
import hmac
import json
import time
from pathlib import Path
from uuid import uuid4

import httpx


def sign(payload: str, secret: str, timestamp: int | None = None) -> str:
    """Build a `stripe-signature` header value for `payload`."""

    timestamp = int(time.time()) if timestamp is None else timestamp
    signed = f"{timestamp}.{payload}".encode("utf-8")
    digest = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


def completed_event(email: str, message: str, order_id: str | None = None) -> dict:
    """Sample event shaped like Stripe's, carrying either metadata or an order id."""

    metadata = {"order_id": order_id} if order_id else {
        "email": email,
        "msg_template": message,
        "signed": "false",
        "custom": "false",
    }
    return {
        "id": f"evt_test_{uuid4().hex}",
        "object": "event",
        "type": "checkout.session.completed",
        "data": {
            "object": {
                "id": f"cs_test_{uuid4().hex}",
                "object": "checkout.session",
                "payment_status": "paid",
                "client_reference_id": order_id,
                "metadata": metadata,
            }
        },
    }


def main() -> None:
    """Parse CLI args and post one signed event."""

    parser = argparse.ArgumentParser(description="Post a signed Stripe webhook event.")
    parser.add_argument("--url", default="http://localhost:3000/api/stripe/webhook")
    parser.add_argument("--secret", required=True, help="Webhook signing secret (whsec_...)")
    parser.add_argument("--email", default="someone@example.com")
    parser.add_argument("--message", default="Ciao!")
    parser.add_argument("--order-id", default=None, help="Reference a stored order instead of metadata")
    parser.add_argument("--file", dest="json_file", default=None, help="Post this event JSON instead")
    args = parser.parse_args()

    if args.json_file:
        payload = Path(args.json_file).read_text()
    else:
        payload = json.dumps(completed_event(args.email, args.message, args.order_id))

    resp = httpx.post(
        args.url,
        content=payload.encode("utf-8"),
        headers={"content-type": "application/json", "stripe-signature": sign(payload, args.secret)},
        timeout=10.0,
    )
    print(f"status={resp.status_code} body={resp.text}")


if __name__ == "__main__":
    main()
