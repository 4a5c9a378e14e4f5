"""Payment processor gateways."""

from .base import (
    GatewayBase,
    PaymentIntent,
    WebhookEvent,
    STATUS_SUCCEEDED,
)
from .stripe_gateway import StripeGateway, verify_and_parse
from .simulator_gateway import (
    SimulatorGateway,
    SimulatorScenario,
    SimulatedIntent,
)

__all__ = [
    # Base classes and models
    "GatewayBase",
    "PaymentIntent",
    "WebhookEvent",
    "STATUS_SUCCEEDED",
    # Gateways
    "StripeGateway",
    "verify_and_parse",
    "SimulatorGateway",
    "SimulatorScenario",
    "SimulatedIntent",
]
