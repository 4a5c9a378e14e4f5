"""Error taxonomy shared by the backend and the checkout client."""

from typing import Optional


class CheckoutError(Exception):
    """Base class for every error raised by this package.

    Attributes:
        message: Human readable description, safe to return to callers.
        status_code: HTTP status used when the error crosses the API boundary.
    """

    status_code: int = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(CheckoutError):
    """Bad or missing input."""

    status_code = 400


class AuthenticationError(CheckoutError):
    """Webhook signature could not be verified."""

    status_code = 400


class GatewayError(CheckoutError):
    """The payment processor call failed; message is the processor's."""

    status_code = 500

    def __init__(self, message: str, code: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message, status_code)
        self.code = code


class UIError(CheckoutError):
    """Client-side failure surfaced to the shopper as a plain string."""
