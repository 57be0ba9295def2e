"""Error types raised by the checkout service and its collaborators."""


class CheckoutError(Exception):
    """Base class for checkout failures."""


class OrderValidationError(CheckoutError):
    """Raised when a session request lacks required fields."""


class WebhookVerificationError(CheckoutError):
    """Raised when a webhook payload or its signature cannot be trusted."""


class PaymentProviderError(CheckoutError):
    """Raised when the payment provider rejects or fails a call."""


class EmailDeliveryError(CheckoutError):
    """Raised when the email provider does not accept a message."""
