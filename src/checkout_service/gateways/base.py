from abc import ABC, abstractmethod
from typing import Optional, Dict, Any, Mapping
from pydantic import BaseModel, Field

PAYMENT_INTENT_OBJECT = "payment_intent"
STATUS_SUCCEEDED = "succeeded"


# Canonical models
class PaymentIntent(BaseModel):
    id: str
    amount: int  # minor units
    currency: str
    status: str  # owned by the processor, treated as opaque
    created: Optional[int] = None  # unix seconds
    metadata: Dict[str, str] = Field(default_factory=dict)
    client_secret: Optional[str] = Field(default=None, repr=False)

    @classmethod
    def from_processor(cls, data: Dict[str, Any]) -> "PaymentIntent":
        """Build a PaymentIntent from a processor payload (dict form)."""
        return cls(
            id=data["id"],
            amount=data.get("amount", 0),
            currency=data.get("currency", ""),
            status=data.get("status", ""),
            created=data.get("created"),
            metadata=dict(data.get("metadata") or {}),
            client_secret=data.get("client_secret"),
        )

    @property
    def succeeded(self) -> bool:
        return self.status == STATUS_SUCCEEDED


class WebhookEvent(BaseModel):
    id: Optional[str] = None
    type: str
    data_object: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_processor(cls, data: Dict[str, Any]) -> "WebhookEvent":
        """Build a WebhookEvent; a ``data``/``object`` that is not a mapping reads as empty."""
        envelope = data.get("data")
        obj = envelope.get("object") if isinstance(envelope, Mapping) else None
        return cls(
            id=data.get("id"),
            type=data.get("type", ""),
            data_object=dict(obj) if isinstance(obj, Mapping) else {},
        )

    @property
    def intent(self) -> Optional[PaymentIntent]:
        """The PaymentIntent carried by the event, if the object is one."""
        if self.data_object.get("object") != PAYMENT_INTENT_OBJECT or "id" not in self.data_object:
            return None
        return PaymentIntent.from_processor(self.data_object)


class GatewayBase(ABC):
    """
    Processor gateway interface. Implementations are explicitly constructed
    handles, injected into services; they hold no request state.
    """

    @abstractmethod
    def create_intent(self, amount: int, currency: str, metadata: Dict[str, str]) -> PaymentIntent:
        """
        Create an intent with automatic payment method selection enabled.
        """
        raise NotImplementedError

    @abstractmethod
    def retrieve_intent(self, intent_id: str) -> PaymentIntent:
        raise NotImplementedError

    @abstractmethod
    def construct_event(self, payload: bytes, signature: Optional[str]) -> WebhookEvent:
        """
        Verify the signature over the raw payload bytes, then parse the event.
        Raises AuthenticationError when verification is impossible or fails.
        """
        raise NotImplementedError

    def health_check(self) -> Dict[str, Any]:
        return {"ok": True}
