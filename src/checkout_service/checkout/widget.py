"""Hosted card widget abstraction.

The widget owns the raw card data; the checkout code only ever sees change
events and the result of a confirmation it asks the widget to perform.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Optional, Set

import stripe

from ..errors import GatewayError
from ..gateways.base import PaymentIntent
from ..gateways.simulator_gateway import SimulatorGateway

logger = logging.getLogger(__name__)


@dataclass
class CardChangeEvent:
    """Emitted by the widget as the shopper types."""
    error: Optional[str] = None
    complete: bool = False


@dataclass
class ConfirmResult:
    """Outcome of a client-side confirmation: exactly one field is set."""
    intent: Optional[PaymentIntent] = None
    error: Optional[str] = None


def intent_id_from_client_secret(client_secret: str) -> str:
    return client_secret.split("_secret_")[0]


class CardEventSubscription:
    """Async iterator over one subscriber's queue of widget events."""

    def __init__(self, widget: "CardWidget", queue: asyncio.Queue):
        self._widget = widget
        self._queue = queue

    def __aiter__(self) -> "CardEventSubscription":
        return self

    async def __anext__(self) -> CardChangeEvent:
        event = await self._queue.get()
        if event is None:
            self.close()
            raise StopAsyncIteration
        return event

    def close(self) -> None:
        self._widget._subscribers.discard(self._queue)


class CardWidget(ABC):
    """Base class for hosted card inputs.

    Change events are published to every subscriber queue; subscribers read
    them with ``async for event in widget.subscribe()``. ``unmount`` ends
    every subscription.
    """

    def __init__(self):
        self._mounted = False
        self._subscribers: Set[asyncio.Queue] = set()

    def mount(self) -> None:
        self._mounted = True

    def unmount(self) -> None:
        self._mounted = False
        for queue in list(self._subscribers):
            queue.put_nowait(None)

    @property
    def is_ready(self) -> bool:
        return self._mounted

    def emit(self, event: CardChangeEvent) -> None:
        for queue in list(self._subscribers):
            queue.put_nowait(event)

    def subscribe(self) -> CardEventSubscription:
        """Register a subscriber; events emitted from now on are delivered to it."""
        queue: asyncio.Queue = asyncio.Queue()
        self._subscribers.add(queue)
        return CardEventSubscription(self, queue)

    def clear(self) -> None:
        """Wipe whatever the shopper typed."""

    @abstractmethod
    async def confirm_card_payment(self, client_secret: str, billing_details: Dict[str, str]) -> ConfirmResult:
        """
        Confirm the intent identified by *client_secret* with the captured card.
        Declines and card validation errors come back as ``ConfirmResult.error``.
        """
        raise NotImplementedError


class StripeCardWidget(CardWidget):
    """
    Confirms through Stripe with the publishable key and client secret only,
    the same request Stripe.js makes from the browser. ``card_token`` stands in
    for what the shopper typed (e.g. the ``tok_visa`` test token).
    """

    def __init__(self, publishable_key: Optional[str], card_token: Optional[str] = None):
        super().__init__()
        self._publishable_key = publishable_key
        self.card_token = card_token

    @property
    def is_ready(self) -> bool:
        return self._mounted and bool(self._publishable_key)

    def clear(self) -> None:
        self.card_token = None

    def _confirm(self, client_secret: str, billing_details: Dict[str, str]) -> PaymentIntent:
        pi = stripe.PaymentIntent.confirm(
            intent_id_from_client_secret(client_secret),
            client_secret=client_secret,
            payment_method_data={
                "type": "card",
                "card": {"token": self.card_token},
                "billing_details": billing_details,
            },
            api_key=self._publishable_key,
        )
        return PaymentIntent.from_processor(pi.to_dict())

    async def confirm_card_payment(self, client_secret: str, billing_details: Dict[str, str]) -> ConfirmResult:
        if not self.card_token:
            return ConfirmResult(error="Your card number is incomplete.")
        try:
            intent = await asyncio.to_thread(self._confirm, client_secret, billing_details)
        except stripe.StripeError as e:
            logger.info(f"Card confirmation rejected by Stripe: {e.code or type(e).__name__}")
            return ConfirmResult(error=e.user_message or str(e) or "Payment failed")
        return ConfirmResult(intent=intent)


class SimulatedCardWidget(CardWidget):
    """Card widget backed by a :class:`SimulatorGateway` and one of its test cards."""

    def __init__(self, simulator: SimulatorGateway, card: Optional[str] = SimulatorGateway.CARD_SUCCESS):
        super().__init__()
        self.simulator = simulator
        self.card = card

    def clear(self) -> None:
        self.card = None

    async def confirm_card_payment(self, client_secret: str, billing_details: Dict[str, str]) -> ConfirmResult:
        if not self.card:
            return ConfirmResult(error="Your card number is incomplete.")
        try:
            intent = self.simulator.confirm_with_client_secret(client_secret, self.card, billing_details)
        except GatewayError as e:
            return ConfirmResult(error=e.message)
        return ConfirmResult(intent=intent)
