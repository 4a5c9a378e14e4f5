# checkout_service package
__version__ = "0.1.0"

from .config import CheckoutConfig
from .errors import (
    CheckoutError,
    ValidationError,
    AuthenticationError,
    GatewayError,
    UIError,
)
from .gateways import (
    GatewayBase,
    PaymentIntent,
    WebhookEvent,
    StripeGateway,
    SimulatorGateway,
)
from .services import IntentService
from .webhooks import WebhookReceiver
from .api import create_app
