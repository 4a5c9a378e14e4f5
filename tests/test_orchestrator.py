"""Tests for the checkout orchestrator state machine."""

import asyncio
from decimal import Decimal

import pytest

from checkout_service.checkout import (
    CardChangeEvent,
    CheckoutForm,
    CheckoutOrchestrator,
    CheckoutState,
    SimulatedCardWidget,
    to_minor_units,
)
from checkout_service.checkout.orchestrator import (
    DEFAULT_AMOUNT,
    MISSING_FIELDS_MESSAGE,
    NOT_INITIALIZED_MESSAGE,
)
from checkout_service.errors import UIError
from checkout_service.gateways import SimulatorGateway


class FakeIntentAPI:
    """Backend client double driving the simulator directly."""

    def __init__(self, simulator: SimulatorGateway, confirm_error: Exception = None, create_error: Exception = None):
        self.simulator = simulator
        self.confirm_error = confirm_error
        self.create_error = create_error
        self.calls = []

    async def create_payment_intent(self, amount, currency="usd", metadata=None):
        self.calls.append(("create", amount, currency, metadata))
        if self.create_error:
            raise self.create_error
        intent = self.simulator.create_intent(amount, currency, metadata or {})
        return {"clientSecret": intent.client_secret, "paymentIntentId": intent.id}

    async def confirm_payment(self, payment_intent_id):
        self.calls.append(("confirm", payment_intent_id))
        await asyncio.sleep(0)
        if self.confirm_error:
            raise self.confirm_error
        intent = self.simulator.retrieve_intent(payment_intent_id)
        return {"success": intent.succeeded, "paymentIntentId": intent.id, "status": intent.status}


@pytest.fixture
def widget(simulator):
    card = SimulatedCardWidget(simulator)
    card.mount()
    return card


@pytest.fixture
def api(simulator):
    return FakeIntentAPI(simulator)


@pytest.fixture
def filled_form():
    return CheckoutForm(customer_name="Jane Doe", customer_email="jane@example.com", amount=Decimal("50.00"))


class TestToMinorUnits:
    @pytest.mark.parametrize("amount,expected", [
        (Decimal("50.00"), 5000),
        ("19.99", 1999),
        (0.1, 10),
        (1, 100),
        ("0.005", 1),
        (19.995, 2000),
    ])
    def test_conversion(self, amount, expected):
        assert to_minor_units(amount) == expected

    @pytest.mark.parametrize("amount", ["abc", "NaN", "Infinity"])
    def test_invalid(self, amount):
        with pytest.raises(ValueError):
            to_minor_units(amount)


class TestPreconditions:
    """Submit preconditions block every network call."""

    async def test_missing_name(self, api, widget):
        form = CheckoutForm(customer_name="", customer_email="jane@example.com")
        orchestrator = CheckoutOrchestrator(api, widget, form)

        state = await orchestrator.submit()

        assert state == CheckoutState.FAILED
        assert orchestrator.error_message == MISSING_FIELDS_MESSAGE
        assert api.calls == []

    async def test_missing_email(self, api, widget):
        form = CheckoutForm(customer_name="Jane", customer_email="   ")
        orchestrator = CheckoutOrchestrator(api, widget, form)

        assert await orchestrator.submit() == CheckoutState.FAILED
        assert api.calls == []

    async def test_widget_not_mounted(self, api, simulator, filled_form):
        orchestrator = CheckoutOrchestrator(api, SimulatedCardWidget(simulator), filled_form)

        assert await orchestrator.submit() == CheckoutState.FAILED
        assert orchestrator.error_message == NOT_INITIALIZED_MESSAGE
        assert api.calls == []

    async def test_invalid_amount(self, api, widget):
        form = CheckoutForm(customer_name="Jane", customer_email="jane@example.com", amount="ten")
        orchestrator = CheckoutOrchestrator(api, widget, form)

        assert await orchestrator.submit() == CheckoutState.FAILED
        assert api.calls == []


class TestSubmit:
    """The create -> confirm sequence."""

    async def test_success(self, api, widget, simulator, filled_form):
        """Test that a confirmed payment ends in SUCCEEDED with the form cleared."""
        orchestrator = CheckoutOrchestrator(api, widget, filled_form)

        state = await orchestrator.submit()
        await orchestrator.drain()

        assert state == CheckoutState.SUCCEEDED
        assert orchestrator.payment_success is True
        assert orchestrator.error_message == ""
        assert api.calls[0] == ("create", 5000, "usd", {"customerName": "Jane Doe", "customerEmail": "jane@example.com"})
        assert api.calls[1] == ("confirm", orchestrator.payment_intent_id)
        assert simulator.get_intent(orchestrator.payment_intent_id).status == "succeeded"
        assert simulator.get_intent(orchestrator.payment_intent_id).billing_details == {
            "name": "Jane Doe",
            "email": "jane@example.com",
        }
        assert filled_form.customer_name == ""
        assert filled_form.customer_email == ""
        assert filled_form.amount == DEFAULT_AMOUNT
        assert widget.card is None

    async def test_server_confirmation_failure_keeps_success(self, simulator, widget, filled_form):
        """Test that the best-effort confirmation cannot revert SUCCEEDED."""
        api = FakeIntentAPI(simulator, confirm_error=UIError("Server confirmation down"))
        orchestrator = CheckoutOrchestrator(api, widget, filled_form)

        state = await orchestrator.submit()
        await orchestrator.drain()

        assert state == CheckoutState.SUCCEEDED
        assert orchestrator.state == CheckoutState.SUCCEEDED
        assert orchestrator.error_message == ""
        assert filled_form.customer_name == ""

    async def test_unexpected_confirmation_error_is_contained(self, simulator, widget, filled_form):
        api = FakeIntentAPI(simulator, confirm_error=RuntimeError("boom"))
        orchestrator = CheckoutOrchestrator(api, widget, filled_form)

        await orchestrator.submit()
        await orchestrator.drain()

        assert orchestrator.state == CheckoutState.SUCCEEDED

    async def test_create_failure(self, simulator, widget, filled_form):
        """Test that a create failure stops before any card interaction."""
        api = FakeIntentAPI(simulator, create_error=UIError("Invalid amount. Minimum amount is 50 cents ($0.50)"))
        orchestrator = CheckoutOrchestrator(api, widget, filled_form)

        state = await orchestrator.submit()

        assert state == CheckoutState.FAILED
        assert orchestrator.error_message == "Invalid amount. Minimum amount is 50 cents ($0.50)"
        assert simulator.calls["confirm"] == 0
        assert filled_form.customer_name == "Jane Doe"

    async def test_unexpected_create_failure(self, simulator, widget, filled_form):
        api = FakeIntentAPI(simulator, create_error=RuntimeError("boom"))
        orchestrator = CheckoutOrchestrator(api, widget, filled_form)

        assert await orchestrator.submit() == CheckoutState.FAILED
        assert orchestrator.error_message == "An unexpected error occurred"

    async def test_declined_card(self, api, simulator, filled_form):
        """Test that a decline surfaces the processor's message."""
        widget = SimulatedCardWidget(simulator, SimulatorGateway.CARD_DECLINE)
        widget.mount()
        orchestrator = CheckoutOrchestrator(api, widget, filled_form)

        state = await orchestrator.submit()
        await orchestrator.drain()

        assert state == CheckoutState.FAILED
        assert orchestrator.error_message == "Your card was declined."
        assert all(call[0] != "confirm" for call in api.calls)

    async def test_requires_action_is_not_success(self, api, simulator, filled_form):
        widget = SimulatedCardWidget(simulator, SimulatorGateway.CARD_3DS)
        widget.mount()
        orchestrator = CheckoutOrchestrator(api, widget, filled_form)

        assert await orchestrator.submit() == CheckoutState.FAILED
        assert orchestrator.error_message == "Payment status: requires_action"

    async def test_submit_ignored_outside_idle(self, api, widget, filled_form):
        orchestrator = CheckoutOrchestrator(api, widget, filled_form)
        orchestrator.state = CheckoutState.PROCESSING

        assert await orchestrator.submit() == CheckoutState.PROCESSING
        assert api.calls == []


class TestReset:
    async def test_reset_after_failure(self, api, widget):
        orchestrator = CheckoutOrchestrator(api, widget, CheckoutForm())
        await orchestrator.submit()
        assert orchestrator.state == CheckoutState.FAILED

        assert orchestrator.reset() == CheckoutState.IDLE
        assert orchestrator.error_message == ""

    async def test_reset_after_success(self, api, widget, filled_form):
        orchestrator = CheckoutOrchestrator(api, widget, filled_form)
        await orchestrator.submit()
        await orchestrator.drain()

        assert orchestrator.reset() == CheckoutState.IDLE

    def test_reset_from_idle_is_noop(self, api, widget):
        orchestrator = CheckoutOrchestrator(api, widget)
        assert orchestrator.reset() == CheckoutState.IDLE


class TestCardEvents:
    """Widget change events only touch the display field."""

    async def test_card_error_displayed_without_transition(self, api, widget):
        orchestrator = CheckoutOrchestrator(api, widget)
        orchestrator.start_listening()

        widget.emit(CardChangeEvent(error="Your card number is incomplete."))
        await asyncio.sleep(0)
        await asyncio.sleep(0)

        assert orchestrator.card_error == "Your card number is incomplete."
        assert orchestrator.state == CheckoutState.IDLE

        widget.emit(CardChangeEvent(error=None, complete=True))
        await asyncio.sleep(0)
        await asyncio.sleep(0)

        assert orchestrator.card_error == ""
        assert orchestrator.state == CheckoutState.IDLE
        await orchestrator.stop_listening()

    async def test_unmount_ends_listening(self, api, widget):
        orchestrator = CheckoutOrchestrator(api, widget)
        task = orchestrator.start_listening()

        widget.unmount()
        await asyncio.wait_for(task, timeout=1)

        assert task.done()

    async def test_listen_again_after_unmount(self, api, widget):
        """Test that a new listen after an unmount gets a fresh subscription."""
        orchestrator = CheckoutOrchestrator(api, widget)
        first = asyncio.create_task(orchestrator.listen())
        await asyncio.sleep(0)
        widget.unmount()
        await asyncio.wait_for(first, timeout=1)

        widget.mount()
        task = asyncio.create_task(orchestrator.listen())
        await asyncio.sleep(0)
        widget.emit(CardChangeEvent(error="Your card's security code is incomplete."))
        await asyncio.sleep(0)
        await asyncio.sleep(0)

        assert orchestrator.card_error == "Your card's security code is incomplete."
        widget.unmount()
        await asyncio.wait_for(task, timeout=1)

    def test_on_card_change_sets_field(self, api, widget):
        orchestrator = CheckoutOrchestrator(api, widget)
        orchestrator.on_card_change(CardChangeEvent(error="Your card's expiration date is incomplete."))
        assert orchestrator.card_error == "Your card's expiration date is incomplete."
        assert orchestrator.state == CheckoutState.IDLE
