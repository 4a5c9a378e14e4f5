"""Intent service: the create/confirm/retrieve operations behind the HTTP API."""

import logging
from typing import Optional, Dict, Any, Mapping

from .errors import ValidationError
from .gateways.base import GatewayBase

logger = logging.getLogger(__name__)

MIN_CHARGE_AMOUNT = 50  # minor units, the processor's minimum charge
DEFAULT_CURRENCY = "usd"

# Processor limits on metadata
MAX_METADATA_KEYS = 50
MAX_METADATA_KEY_LENGTH = 40
MAX_METADATA_VALUE_LENGTH = 500


def validate_amount(amount: Any) -> int:
    """Validate a charge amount expressed in minor units.

    Args:
        amount: Raw amount from the request.

    Returns:
        The amount as an int.

    Raises:
        ValidationError: If the amount is missing, not an integer, or below
            the processor's minimum charge.
    """
    if amount is None or isinstance(amount, bool) or not isinstance(amount, int) or amount < MIN_CHARGE_AMOUNT:
        raise ValidationError("Invalid amount. Minimum amount is 50 cents ($0.50)")
    return amount


def validate_metadata(metadata: Optional[Mapping[str, Any]]) -> Dict[str, str]:
    """Validate caller-supplied metadata against the processor's limits.

    Raises:
        ValidationError: If metadata is not a string-to-string mapping or
            exceeds a limit.
    """
    if metadata is None:
        return {}
    if not isinstance(metadata, Mapping):
        raise ValidationError("Metadata must be an object")
    if len(metadata) > MAX_METADATA_KEYS:
        raise ValidationError(f"Metadata cannot have more than {MAX_METADATA_KEYS} keys")
    for key, value in metadata.items():
        if not isinstance(key, str) or not isinstance(value, str):
            raise ValidationError("Metadata keys and values must be strings")
        if len(key) > MAX_METADATA_KEY_LENGTH:
            raise ValidationError(f"Metadata key '{key[:MAX_METADATA_KEY_LENGTH]}...' exceeds {MAX_METADATA_KEY_LENGTH} characters")
        if len(value) > MAX_METADATA_VALUE_LENGTH:
            raise ValidationError(f"Metadata value for '{key}' exceeds {MAX_METADATA_VALUE_LENGTH} characters")
    return dict(metadata)


class IntentService:
    """Stateless request/response operations over a processor gateway.

    Every call is a fresh round trip to the processor; nothing is cached.
    """

    def __init__(self, gateway: GatewayBase):
        """Initialize the service with a gateway handle.

        Args:
            gateway: Processor gateway used for every operation.
        """
        self.gateway = gateway

    def create_intent(
        self,
        amount: Any,
        currency: Optional[str] = DEFAULT_CURRENCY,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> Dict[str, str]:
        """Create an intent and hand back the browser-side client secret.

        Args:
            amount: Amount in minor units, at least MIN_CHARGE_AMOUNT.
            currency: ISO currency code; lowercased before use.
            metadata: Caller-supplied string mapping, echoed back unmodified.

        Returns:
            ``{"clientSecret": ..., "paymentIntentId": ...}``

        Raises:
            ValidationError: On bad input; the gateway is not called.
            GatewayError: If the processor call fails.
        """
        amount = validate_amount(amount)
        metadata = validate_metadata(metadata)
        currency = (currency or DEFAULT_CURRENCY).lower()

        intent = self.gateway.create_intent(amount=amount, currency=currency, metadata=metadata)

        logger.info(f"Created payment intent {intent.id} for {amount} {currency}")
        return {
            "clientSecret": intent.client_secret,
            "paymentIntentId": intent.id,
        }

    def confirm_intent(self, intent_id: Optional[str]) -> Dict[str, Any]:
        """Report the processor's current view of an intent.

        This is a read; it never moves the intent forward.

        Raises:
            ValidationError: If no intent id is given.
            GatewayError: If the processor call fails (e.g. unknown id).
        """
        if not intent_id:
            raise ValidationError("Payment Intent ID is required")

        intent = self.gateway.retrieve_intent(intent_id)

        logger.info(f"Payment intent {intent.id} has status {intent.status}")
        return {
            "success": intent.succeeded,
            "paymentIntentId": intent.id,
            "status": intent.status,
            "amount": intent.amount,
            "currency": intent.currency,
            "message": "Payment confirmed successfully" if intent.succeeded else f"Payment status: {intent.status}",
        }

    def get_intent(self, intent_id: str) -> Dict[str, Any]:
        if not intent_id:
            raise ValidationError("Payment Intent ID is required")
        intent = self.gateway.retrieve_intent(intent_id)
        return {
            "id": intent.id,
            "amount": intent.amount,
            "currency": intent.currency,
            "status": intent.status,
            "created": intent.created,
            "metadata": intent.metadata,
        }
