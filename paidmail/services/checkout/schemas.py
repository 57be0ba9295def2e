"""API request/response schemas and the order intent model."""

from typing import Any

from pydantic import BaseModel, Field, field_validator


class CreateSessionRequest(BaseModel):
    """Payload accepted by `POST /api/stripe/create-session`.

    `email` and `template` are optional here so that absence is reported as a
    400 by the service rather than as a schema error. The browser form posts
    loosely typed JSON, so flags take any truthiness and text fields any
    scalar.
    """

    email: str | None = None
    template: str | None = None
    signed: bool = False
    custom: bool = False

    @field_validator("email", "template", mode="before")
    @classmethod
    def _as_text(cls, value: Any) -> str | None:
        if value is None or isinstance(value, str):
            return value
        return str(value)

    @field_validator("signed", "custom", mode="before")
    @classmethod
    def _as_flag(cls, value: Any) -> bool:
        return bool(value)


class CreateSessionResponse(BaseModel):
    """Hosted checkout handle returned to the browser."""

    session_id: str = Field(serialization_alias="sessionId")
    url: str | None = None


class WebhookAck(BaseModel):
    received: bool = True


class OrderIntent(BaseModel):
    """Recipient, message and flags pending payment confirmation."""

    email: str
    message: str
    signed: bool = False
    custom: bool = False
