"""Client-side checkout flow: backend client, card widget and orchestrator."""

from .client import IntentAPIClient
from .widget import (
    CardChangeEvent,
    CardWidget,
    ConfirmResult,
    SimulatedCardWidget,
    StripeCardWidget,
)
from .orchestrator import (
    CheckoutForm,
    CheckoutOrchestrator,
    CheckoutState,
    to_minor_units,
)

__all__ = [
    "IntentAPIClient",
    "CardChangeEvent",
    "CardWidget",
    "ConfirmResult",
    "SimulatedCardWidget",
    "StripeCardWidget",
    "CheckoutForm",
    "CheckoutOrchestrator",
    "CheckoutState",
    "to_minor_units",
]
