import os
import logging
from typing import Dict, Any, Optional

import stripe

from ..errors import AuthenticationError, GatewayError
from .base import GatewayBase, PaymentIntent, WebhookEvent

logger = logging.getLogger(__name__)


def _error_code(error: stripe.StripeError) -> str:
    """Map a stripe-python exception onto a short, stable code."""
    if isinstance(error, stripe.CardError):
        return "card_error"
    if isinstance(error, stripe.RateLimitError):
        return "rate_limit"
    if isinstance(error, stripe.InvalidRequestError):
        return "invalid_request"
    if isinstance(error, stripe.AuthenticationError):
        return "authentication_error"
    if isinstance(error, stripe.APIConnectionError):
        return "connection_error"
    return "api_error"


def _message(error: stripe.StripeError) -> str:
    return error.user_message or str(error) or "Payment processor request failed"


class StripeGateway(GatewayBase):
    """
    Stripe gateway using stripe-python PaymentIntents. The secret key is passed
    on every request; the module-global ``stripe.api_key`` is never set.
    """

    def __init__(self, api_key: Optional[str] = None, webhook_secret: Optional[str] = None):
        """Initialize the gateway.

        Args:
            api_key: Stripe secret key. Falls back to STRIPE_SECRET_KEY env var.
            webhook_secret: Endpoint signing secret. Falls back to
                STRIPE_WEBHOOK_SECRET env var.

        Missing values are not an error here; operations that need them fail
        when called.
        """
        self._api_key = api_key or os.getenv("STRIPE_SECRET_KEY")
        self._webhook_secret = webhook_secret or os.getenv("STRIPE_WEBHOOK_SECRET")

    def _require_api_key(self) -> str:
        if not self._api_key:
            raise GatewayError("STRIPE_SECRET_KEY is not configured", code="configuration_error")
        return self._api_key

    def create_intent(self, amount: int, currency: str, metadata: Dict[str, str]) -> PaymentIntent:
        api_key = self._require_api_key()
        try:
            pi = stripe.PaymentIntent.create(
                amount=amount,
                currency=currency,
                metadata=metadata,
                automatic_payment_methods={"enabled": True},
                api_key=api_key,
            )
        except stripe.StripeError as e:
            logger.warning(f"Stripe create_intent failed: {_error_code(e)}")
            raise GatewayError(_message(e), code=_error_code(e)) from e
        return PaymentIntent.from_processor(pi.to_dict())

    def retrieve_intent(self, intent_id: str) -> PaymentIntent:
        api_key = self._require_api_key()
        try:
            pi = stripe.PaymentIntent.retrieve(intent_id, api_key=api_key)
        except stripe.StripeError as e:
            logger.warning(f"Stripe retrieve_intent failed for {intent_id}: {_error_code(e)}")
            raise GatewayError(_message(e), code=_error_code(e)) from e
        return PaymentIntent.from_processor(pi.to_dict())

    def construct_event(self, payload: bytes, signature: Optional[str]) -> WebhookEvent:
        if not self._webhook_secret:
            raise AuthenticationError("STRIPE_WEBHOOK_SECRET is not configured")
        return verify_and_parse(payload, signature, self._webhook_secret)

    def health_check(self) -> Dict[str, Any]:
        return {
            "ok": True,
            "provider": "stripe",
            "api_key_configured": bool(self._api_key),
            "webhook_secret_configured": bool(self._webhook_secret),
        }


def verify_and_parse(payload: bytes, signature: Optional[str], secret: str) -> WebhookEvent:
    """Verify a Stripe-Signature header against the raw payload and parse it.

    Args:
        payload: The request body exactly as received.
        signature: Value of the Stripe-Signature header.
        secret: Endpoint signing secret.

    Returns:
        The parsed WebhookEvent.

    Raises:
        AuthenticationError: If the header is missing, the signature does not
            match, or the payload is not a well-formed JSON event object.
    """
    if not signature:
        raise AuthenticationError("Missing Stripe-Signature header")
    try:
        event = stripe.Webhook.construct_event(payload, signature, secret)
    except stripe.SignatureVerificationError as e:
        raise AuthenticationError(f"Invalid signature: {e}") from e
    except (ValueError, AttributeError, TypeError) as e:
        # JSON that is not an object fails inside stripe-python after the signature check
        raise AuthenticationError(f"Invalid payload: {e}") from e
    try:
        return WebhookEvent.from_processor(event.to_dict())
    except ValueError as e:
        raise AuthenticationError(f"Invalid payload: {e}") from e
