"""Simulator gateway for exercising checkout flows without real processor calls."""

import hashlib
import hmac
import json
import secrets
import time
import uuid
import logging
from typing import Dict, Any, Optional
from dataclasses import dataclass, field
from enum import Enum

from ..errors import AuthenticationError, GatewayError
from .base import GatewayBase, PaymentIntent, WebhookEvent, PAYMENT_INTENT_OBJECT
from .stripe_gateway import verify_and_parse

logger = logging.getLogger(__name__)

DEFAULT_WEBHOOK_SECRET = "whsec_simulator"


class SimulatorScenario(str, Enum):
    """Outcomes a simulated card can produce on confirmation."""
    SUCCESS = "success"
    DECLINE = "decline"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    REQUIRES_ACTION = "requires_action"


@dataclass
class SimulatedIntent:
    """In-memory representation of a processor-side intent."""
    id: str
    amount: int
    currency: str
    client_secret: str
    status: str = "requires_payment_method"
    created: int = field(default_factory=lambda: int(time.time()))
    metadata: Dict[str, str] = field(default_factory=dict)
    billing_details: Dict[str, str] = field(default_factory=dict)
    last_payment_error: Optional[Dict[str, str]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "object": PAYMENT_INTENT_OBJECT,
            "amount": self.amount,
            "currency": self.currency,
            "status": self.status,
            "created": self.created,
            "metadata": dict(self.metadata),
            "client_secret": self.client_secret,
            "last_payment_error": dict(self.last_payment_error) if self.last_payment_error else None,
        }


class SimulatorGateway(GatewayBase):
    """
    In-memory stand-in for the payment processor.

    Features:
    - Intents with processor-shaped ids and client secrets
    - Client-secret scoped confirmation with special test cards
    - Webhook payloads signed the way the processor signs them, verified
      through the same code path as the real gateway
    """

    # Special card tokens for triggering specific behaviors
    CARD_SUCCESS = "sim_card_success"
    CARD_DECLINE = "sim_card_decline"
    CARD_INSUFFICIENT = "sim_card_insufficient"
    CARD_3DS = "sim_card_3ds"

    CARD_SCENARIOS = {
        CARD_SUCCESS: SimulatorScenario.SUCCESS,
        CARD_DECLINE: SimulatorScenario.DECLINE,
        CARD_INSUFFICIENT: SimulatorScenario.INSUFFICIENT_FUNDS,
        CARD_3DS: SimulatorScenario.REQUIRES_ACTION,
    }

    def __init__(self, webhook_secret: Optional[str] = DEFAULT_WEBHOOK_SECRET):
        self.webhook_secret = webhook_secret
        self._intents: Dict[str, SimulatedIntent] = {}
        self.calls: Dict[str, int] = {"create_intent": 0, "retrieve_intent": 0, "confirm": 0}
        logger.info("SimulatorGateway initialized")

    def _generate_id(self) -> str:
        return f"pi_sim_{uuid.uuid4().hex[:24]}"

    def _get(self, intent_id: str) -> SimulatedIntent:
        intent = self._intents.get(intent_id)
        if intent is None:
            raise GatewayError(f"No such payment_intent: '{intent_id}'", code="resource_missing")
        return intent

    def create_intent(self, amount: int, currency: str, metadata: Dict[str, str]) -> PaymentIntent:
        self.calls["create_intent"] += 1
        intent_id = self._generate_id()
        intent = SimulatedIntent(
            id=intent_id,
            amount=amount,
            currency=currency,
            client_secret=f"{intent_id}_secret_{secrets.token_hex(12)}",
            metadata=dict(metadata),
        )
        self._intents[intent_id] = intent
        return PaymentIntent.from_processor(intent.to_dict())

    def retrieve_intent(self, intent_id: str) -> PaymentIntent:
        self.calls["retrieve_intent"] += 1
        return PaymentIntent.from_processor(self._get(intent_id).to_dict())

    def confirm_with_client_secret(
        self,
        client_secret: str,
        card: str,
        billing_details: Optional[Dict[str, str]] = None,
    ) -> PaymentIntent:
        """Confirm an intent the way the browser does, holding only its client secret.

        Raises:
            GatewayError: If the secret does not belong to a known intent or the
                card is declined.
        """
        self.calls["confirm"] += 1
        intent_id = client_secret.split("_secret_")[0]
        intent = self._intents.get(intent_id)
        if intent is None or not hmac.compare_digest(intent.client_secret, client_secret):
            raise GatewayError("No such payment_intent for the provided client secret", code="resource_missing")
        if intent.status == "succeeded":
            raise GatewayError("This PaymentIntent has already succeeded.", code="payment_intent_unexpected_state")

        intent.billing_details = dict(billing_details or {})
        scenario = self.CARD_SCENARIOS.get(card)
        if scenario is None:
            self._fail_payment(intent, "Your card number is incorrect.", "incorrect_number")
        if scenario == SimulatorScenario.DECLINE:
            self._fail_payment(intent, "Your card was declined.", "card_declined")
        if scenario == SimulatorScenario.INSUFFICIENT_FUNDS:
            self._fail_payment(intent, "Your card has insufficient funds.", "insufficient_funds")

        intent.status = "requires_action" if scenario == SimulatorScenario.REQUIRES_ACTION else "succeeded"
        intent.last_payment_error = None
        return PaymentIntent.from_processor(intent.to_dict())

    def _fail_payment(self, intent: SimulatedIntent, message: str, code: str) -> None:
        """Record a failed attempt on the intent and raise it."""
        intent.status = "requires_payment_method"
        intent.last_payment_error = {"code": code, "message": message}
        logger.info(f"Simulated payment failed for {intent.id}: {code}")
        raise GatewayError(message, code=code)

    def construct_event(self, payload: bytes, signature: Optional[str]) -> WebhookEvent:
        if not self.webhook_secret:
            raise AuthenticationError("STRIPE_WEBHOOK_SECRET is not configured")
        return verify_and_parse(payload, signature, self.webhook_secret)

    def build_event_payload(self, event_type: str, intent_id: str) -> bytes:
        """Serialize a processor-shaped event for one of the stored intents."""
        data = self._get(intent_id).to_dict()
        data.pop("client_secret", None)
        event = {
            "id": f"evt_sim_{uuid.uuid4().hex[:24]}",
            "object": "event",
            "type": event_type,
            "created": int(time.time()),
            "data": {"object": data},
        }
        return json.dumps(event).encode()

    def sign_payload(self, payload: bytes, timestamp: Optional[int] = None, secret: Optional[str] = None) -> str:
        """Return a Stripe-Signature header value for *payload*."""
        timestamp = int(time.time()) if timestamp is None else timestamp
        key = secret or self.webhook_secret or ""
        signed = f"{timestamp}.".encode() + payload
        mac = hmac.new(key.encode(), signed, hashlib.sha256).hexdigest()
        return f"t={timestamp},v1={mac}"

    def get_intent(self, intent_id: str) -> Optional[SimulatedIntent]:
        """Get an intent from in-memory storage (for testing)."""
        return self._intents.get(intent_id)

    def clear(self) -> None:
        """Clear all stored intents (for test cleanup)."""
        self._intents.clear()

    def health_check(self) -> Dict[str, Any]:
        return {
            "ok": True,
            "provider": "simulator",
            "intent_count": len(self._intents),
        }
