"""
Runs the checkout flow end to end without a Stripe account: the FastAPI app is
served in-process over httpx's ASGI transport and the card widget confirms
against the simulator. Swap SimulatedCardWidget for StripeCardWidget and point
IntentAPIClient at a running server to do the same against Stripe test mode.
"""
import asyncio
import logging
from decimal import Decimal

import httpx

from checkout_service.api import create_app
from checkout_service.config import CheckoutConfig
from checkout_service.gateways import SimulatorGateway
from checkout_service.checkout import (
    CheckoutForm,
    CheckoutOrchestrator,
    IntentAPIClient,
    SimulatedCardWidget,
)


async def pay(simulator, transport, card, amount):
    widget = SimulatedCardWidget(simulator, card)
    widget.mount()
    form = CheckoutForm(customer_name="Jane Doe", customer_email="jane@example.com", amount=Decimal(amount))

    async with IntentAPIClient("http://checkout.local/api", transport=transport) as api:
        orchestrator = CheckoutOrchestrator(api, widget, form)
        state = await orchestrator.submit()
        await orchestrator.drain()

    print(f"{card:<24} {amount:>7} -> {state.value:<10} {orchestrator.error_message}")
    return orchestrator


async def run():
    simulator = SimulatorGateway()
    app = create_app(gateway=simulator, config=CheckoutConfig(rate_limit_enabled=False))
    transport = httpx.ASGITransport(app=app)

    await pay(simulator, transport, SimulatorGateway.CARD_SUCCESS, "50.00")
    await pay(simulator, transport, SimulatorGateway.CARD_DECLINE, "19.99")
    await pay(simulator, transport, SimulatorGateway.CARD_3DS, "75.00")
    await pay(simulator, transport, SimulatorGateway.CARD_SUCCESS, "0.10")  # below the minimum charge

    print(f"Intents created: {simulator.health_check()['intent_count']}")


if __name__ == "__main__":
    logging.basicConfig(level=logging.WARNING)
    asyncio.run(run())
