"""EmailJS REST client used to deliver paid messages."""

from typing import Any

import httpx

from paidmail.common.tracing import tracer
from paidmail.services.checkout.errors import EmailDeliveryError


class EmailJSClient:
    """Sends one templated email per call through the EmailJS send endpoint.

    Server-side calls authenticate with the account's public key (`user_id`)
    plus the private key as `accessToken`.
    """

    def __init__(
        self,
        *,
        service_id: str,
        template_id: str,
        public_key: str,
        private_key: str,
        api_url: str = "https://api.emailjs.com/api/v1.0/email/send",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.service_id = service_id
        self.template_id = template_id
        self.public_key = public_key
        self.private_key = private_key
        self.api_url = api_url
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    def build_payload(self, template_params: dict[str, Any]) -> dict[str, Any]:
        payload = {
            "service_id": self.service_id,
            "template_id": self.template_id,
            "user_id": self.public_key,
            "template_params": template_params,
        }
        if self.private_key:
            payload["accessToken"] = self.private_key
        return payload

    async def send(self, template_params: dict[str, Any]) -> None:
        """Post one message; raise `EmailDeliveryError` unless EmailJS accepts it."""

        with tracer.start_as_current_span("emailjs.send") as span:
            span.set_attribute("emailjs.template_id", self.template_id)
            try:
                resp = await self._client.post(self.api_url, json=self.build_payload(template_params))
            except httpx.HTTPError as exc:
                raise EmailDeliveryError(f"emailjs request failed: {exc}") from exc
            span.set_attribute("http.response.status_code", resp.status_code)
            if resp.status_code >= 400:
                raise EmailDeliveryError(f"emailjs rejected message status={resp.status_code} body={resp.text}")

    async def close(self) -> None:
        await self._client.aclose()
