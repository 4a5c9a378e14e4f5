"""Signature-gated intake of processor webhook events."""

import logging
from typing import Callable, Dict, Optional

from .gateways.base import GatewayBase, WebhookEvent

logger = logging.getLogger(__name__)

PAYMENT_SUCCEEDED = "payment_intent.succeeded"
PAYMENT_FAILED = "payment_intent.payment_failed"

EventHandler = Callable[[WebhookEvent], None]


def _object_id(event: WebhookEvent) -> Optional[str]:
    return event.data_object.get("id")


def handle_payment_succeeded(event: WebhookEvent) -> None:
    """Hand a successful payment over to fulfillment."""
    logger.info(f"PaymentIntent was successful: {_object_id(event)}")


def handle_payment_failed(event: WebhookEvent) -> None:
    """Hand a failed payment over to customer notification."""
    logger.info(f"PaymentIntent failed: {_object_id(event)}")


class WebhookReceiver:
    """Verifies inbound events and dispatches them by type.

    Handlers must tolerate the same event being delivered more than once;
    the processor delivers at least once.
    """

    def __init__(self, gateway: GatewayBase, handlers: Optional[Dict[str, EventHandler]] = None):
        self.gateway = gateway
        if handlers is None:
            handlers = {
                PAYMENT_SUCCEEDED: handle_payment_succeeded,
                PAYMENT_FAILED: handle_payment_failed,
            }
        self._handlers: Dict[str, EventHandler] = dict(handlers)

    def register(self, event_type: str, handler: EventHandler) -> None:
        self._handlers[event_type] = handler

    def on(self, event_type: str) -> Callable[[EventHandler], EventHandler]:
        """Decorator form of :meth:`register`."""
        def decorator(handler: EventHandler) -> EventHandler:
            self.register(event_type, handler)
            return handler
        return decorator

    @property
    def event_types(self):
        return sorted(self._handlers)

    def receive(self, payload: bytes, signature: Optional[str]) -> Dict[str, bool]:
        """Verify and dispatch one delivery.

        Args:
            payload: Raw request body, untouched since it was read.
            signature: Value of the Stripe-Signature header.

        Returns:
            ``{"received": True}`` once the signature verifies, whatever the
            event type or handler outcome.

        Raises:
            AuthenticationError: If verification fails; no handler runs.
        """
        event = self.gateway.construct_event(payload, signature)
        self.dispatch(event)
        return {"received": True}

    def dispatch(self, event: WebhookEvent) -> None:
        handler = self._handlers.get(event.type)
        if handler is None:
            logger.info(f"Unhandled event type {event.type}")
            return
        try:
            handler(event)
        except Exception:
            # Verified events are acknowledged even when their handler fails.
            logger.exception(f"Handler for {event.type} failed on event {event.id}")
