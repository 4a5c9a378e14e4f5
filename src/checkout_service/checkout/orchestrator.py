"""Checkout flow driving one payment from form submit to a final UI state.

States::

    IDLE --submit--> PROCESSING --> SUCCEEDED | FAILED
    SUCCEEDED | FAILED --reset--> IDLE

A failed precondition on submit moves straight from IDLE to FAILED without
touching the network.
"""

import asyncio
import enum
import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Optional, Set, Union

from ..errors import UIError
from .client import IntentAPIClient, GENERIC_ERROR
from .widget import CardChangeEvent, CardEventSubscription, CardWidget

logger = logging.getLogger(__name__)

DEFAULT_AMOUNT = Decimal("50.00")
DEFAULT_CURRENCY = "usd"

NOT_INITIALIZED_MESSAGE = "Payment processor has not been initialized"
MISSING_FIELDS_MESSAGE = "Please fill in all required fields"
INVALID_AMOUNT_MESSAGE = "Please enter a valid amount"


class CheckoutState(str, enum.Enum):
    IDLE = "idle"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class CheckoutForm:
    """What the shopper typed, amount in major units."""
    customer_name: str = ""
    customer_email: str = ""
    amount: Decimal = field(default_factory=lambda: DEFAULT_AMOUNT)
    currency: str = DEFAULT_CURRENCY

    def reset(self) -> None:
        self.customer_name = ""
        self.customer_email = ""
        self.amount = DEFAULT_AMOUNT


def to_minor_units(amount: Union[Decimal, float, int, str]) -> int:
    """Convert a major-unit amount to minor units, rounding half up.

    Raises:
        ValueError: If *amount* is not a finite number.
    """
    try:
        value = Decimal(str(amount))
    except InvalidOperation as e:
        raise ValueError(f"Invalid amount: {amount!r}") from e
    if not value.is_finite():
        raise ValueError(f"Invalid amount: {amount!r}")
    return int((value * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class CheckoutOrchestrator:
    """
    Sequences "create intent on the server" then "confirm with the processor"
    and tracks the resulting UI state.

    Attributes:
        state: Current CheckoutState.
        error_message: Why the last attempt failed; empty otherwise.
        card_error: Latest validation message from the card widget. Display
            only; it never changes ``state``.
        payment_intent_id: Intent of the last attempt that got one.
    """

    def __init__(self, api: IntentAPIClient, widget: CardWidget, form: Optional[CheckoutForm] = None):
        self.api = api
        self.widget = widget
        self.form = form or CheckoutForm()
        self.state = CheckoutState.IDLE
        self.error_message = ""
        self.card_error = ""
        self.payment_intent_id: Optional[str] = None
        self._background: Set[asyncio.Task] = set()
        self._listener: Optional[asyncio.Task] = None
        self._subscription: Optional[CardEventSubscription] = None

    @property
    def is_processing(self) -> bool:
        return self.state == CheckoutState.PROCESSING

    @property
    def payment_success(self) -> bool:
        return self.state == CheckoutState.SUCCEEDED

    # ------------------------------------------------------------------
    # Widget events
    # ------------------------------------------------------------------

    def on_card_change(self, event: CardChangeEvent) -> None:
        self.card_error = event.error or ""

    async def listen(self) -> None:
        """Consume widget change events until the widget is unmounted."""
        subscription = self._subscription or self.widget.subscribe()
        self._subscription = subscription
        try:
            async for event in subscription:
                self.on_card_change(event)
        finally:
            # An ended subscription is no longer registered with the widget.
            if self._subscription is subscription:
                self._subscription = None

    def start_listening(self) -> asyncio.Task:
        """Subscribe now and consume events in a background task."""
        if self._listener is None or self._listener.done():
            self._subscription = self.widget.subscribe()
            self._listener = asyncio.create_task(self.listen())
        return self._listener

    async def stop_listening(self) -> None:
        if self._subscription is not None:
            self._subscription.close()
            self._subscription = None
        if self._listener is not None:
            self._listener.cancel()
            try:
                await self._listener
            except asyncio.CancelledError:
                pass
            self._listener = None

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _fail(self, message: str) -> CheckoutState:
        self.state = CheckoutState.FAILED
        self.error_message = message or GENERIC_ERROR
        logger.info(f"Checkout failed: {self.error_message}")
        return self.state

    def reset(self) -> CheckoutState:
        """Return from SUCCEEDED or FAILED to IDLE."""
        if self.state in (CheckoutState.SUCCEEDED, CheckoutState.FAILED):
            self.state = CheckoutState.IDLE
            self.error_message = ""
        return self.state

    async def submit(self) -> CheckoutState:
        """Run one checkout attempt and return the resulting state.

        Only accepted from IDLE; in any other state it is a no-op.
        """
        if self.state != CheckoutState.IDLE:
            logger.debug(f"Ignoring submit while {self.state.value}")
            return self.state

        if not self.widget.is_ready:
            return self._fail(NOT_INITIALIZED_MESSAGE)
        name = self.form.customer_name.strip()
        email = self.form.customer_email.strip()
        if not name or not email:
            return self._fail(MISSING_FIELDS_MESSAGE)
        try:
            amount = to_minor_units(self.form.amount)
        except ValueError:
            return self._fail(INVALID_AMOUNT_MESSAGE)

        self.state = CheckoutState.PROCESSING
        self.error_message = ""

        try:
            # Step 1: create the intent on the server
            created = await self.api.create_payment_intent(
                amount,
                self.form.currency,
                {"customerName": name, "customerEmail": email},
            )
            client_secret = created.get("clientSecret")
            self.payment_intent_id = created.get("paymentIntentId")
            if not client_secret:
                return self._fail("Failed to create payment intent")

            # Step 2: confirm with the processor through the widget
            result = await self.widget.confirm_card_payment(client_secret, {"name": name, "email": email})
        except UIError as e:
            return self._fail(e.message)
        except Exception:
            logger.exception("Unexpected checkout failure")
            return self._fail(GENERIC_ERROR)

        if result.error:
            return self._fail(result.error)
        if result.intent is None or not result.intent.succeeded:
            status = result.intent.status if result.intent else "unknown"
            return self._fail(f"Payment status: {status}")

        self.state = CheckoutState.SUCCEEDED
        logger.info(f"Checkout succeeded for {result.intent.id}")
        self._confirm_in_background(result.intent.id)
        self._reset_form()
        return self.state

    def _reset_form(self) -> None:
        self.form.reset()
        self.widget.clear()

    # ------------------------------------------------------------------
    # Best-effort server confirmation
    # ------------------------------------------------------------------

    def _confirm_in_background(self, payment_intent_id: str) -> None:
        task = asyncio.create_task(self._confirm_on_server(payment_intent_id))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _confirm_on_server(self, payment_intent_id: str) -> None:
        try:
            confirmation = await self.api.confirm_payment(payment_intent_id)
        except UIError as e:
            logger.warning(f"Server confirmation error for {payment_intent_id}: {e.message}")
            return
        except Exception:
            logger.exception(f"Server confirmation error for {payment_intent_id}")
            return
        logger.info(f"Payment confirmed on server: {confirmation.get('paymentIntentId')} {confirmation.get('status')}")

    async def drain(self) -> None:
        """Wait for outstanding background confirmations to finish."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
