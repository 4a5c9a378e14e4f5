"""End-to-end checkout flows against the in-process backend and the simulator."""

import httpx
import pytest
from decimal import Decimal

from checkout_service.checkout import (
    CheckoutForm,
    CheckoutOrchestrator,
    CheckoutState,
    IntentAPIClient,
    SimulatedCardWidget,
)
from checkout_service.webhooks import PAYMENT_SUCCEEDED, WebhookReceiver
from checkout_service.api import create_app


@pytest.fixture
def received_events():
    return []


@pytest.fixture
def checkout_app(simulator, test_config, received_events):
    receiver = WebhookReceiver(simulator, handlers={PAYMENT_SUCCEEDED: received_events.append})
    return create_app(gateway=simulator, config=test_config, webhook_receiver=receiver)


@pytest.fixture
async def api_client(checkout_app):
    transport = httpx.ASGITransport(app=checkout_app)
    async with IntentAPIClient("http://testserver/api", transport=transport) as client:
        yield client


def make_form(amount: str) -> CheckoutForm:
    return CheckoutForm(customer_name="Jane Doe", customer_email="jane@example.com", amount=Decimal(amount))


class TestCheckoutFlow:
    """Form submit through HTTP, the widget and the simulated processor."""

    async def test_successful_payment(self, api_client, simulator):
        """Test the full happy path including server confirmation."""
        widget = SimulatedCardWidget(simulator)
        widget.mount()
        orchestrator = CheckoutOrchestrator(api_client, widget, make_form("50.00"))

        state = await orchestrator.submit()
        await orchestrator.drain()

        assert state == CheckoutState.SUCCEEDED
        stored = simulator.get_intent(orchestrator.payment_intent_id)
        assert stored.status == "succeeded"
        assert stored.amount == 5000
        assert stored.metadata == {"customerName": "Jane Doe", "customerEmail": "jane@example.com"}
        # create + background confirm on the server
        assert simulator.calls["create_intent"] == 1
        assert simulator.calls["retrieve_intent"] == 1

        details = await api_client.get_payment_details(orchestrator.payment_intent_id)
        assert details["status"] == "succeeded"

    async def test_amount_below_minimum(self, api_client, simulator):
        """Test that the backend's validation message reaches the form."""
        widget = SimulatedCardWidget(simulator)
        widget.mount()
        orchestrator = CheckoutOrchestrator(api_client, widget, make_form("0.10"))

        state = await orchestrator.submit()

        assert state == CheckoutState.FAILED
        assert orchestrator.error_message == "Invalid amount. Minimum amount is 50 cents ($0.50)"
        assert simulator.calls["create_intent"] == 0
        assert simulator.calls["confirm"] == 0

    async def test_declined_card(self, api_client, simulator):
        widget = SimulatedCardWidget(simulator, simulator.CARD_INSUFFICIENT)
        widget.mount()
        orchestrator = CheckoutOrchestrator(api_client, widget, make_form("25.00"))

        state = await orchestrator.submit()

        assert state == CheckoutState.FAILED
        assert orchestrator.error_message == "Your card has insufficient funds."
        assert simulator.get_intent(orchestrator.payment_intent_id).status == "requires_payment_method"

    async def test_retry_after_failure(self, api_client, simulator):
        """Test that a shopper can reset and pay with another card."""
        widget = SimulatedCardWidget(simulator, simulator.CARD_DECLINE)
        widget.mount()
        orchestrator = CheckoutOrchestrator(api_client, widget, make_form("50.00"))

        assert await orchestrator.submit() == CheckoutState.FAILED

        orchestrator.reset()
        widget.card = simulator.CARD_SUCCESS
        assert await orchestrator.submit() == CheckoutState.SUCCEEDED
        await orchestrator.drain()
        assert simulator.calls["create_intent"] == 2


class TestWebhookDelivery:
    async def test_signed_delivery_after_payment(self, api_client, checkout_app, simulator, received_events):
        """Test that the processor's notification is verified and dispatched."""
        widget = SimulatedCardWidget(simulator)
        widget.mount()
        orchestrator = CheckoutOrchestrator(api_client, widget, make_form("50.00"))
        await orchestrator.submit()
        await orchestrator.drain()

        payload = simulator.build_event_payload(PAYMENT_SUCCEEDED, orchestrator.payment_intent_id)
        async with httpx.AsyncClient(transport=httpx.ASGITransport(app=checkout_app), base_url="http://testserver") as http:
            response = await http.post(
                "/api/webhook",
                content=payload,
                headers={"Stripe-Signature": simulator.sign_payload(payload)},
            )

        assert response.status_code == 200
        assert response.json() == {"received": True}
        assert len(received_events) == 1
        assert received_events[0].intent.id == orchestrator.payment_intent_id
        assert received_events[0].intent.status == "succeeded"
