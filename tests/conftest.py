"""Shared test fixtures and configuration."""

import json
import os
import pytest
from unittest.mock import MagicMock
from typing import Dict, Any

from fastapi.testclient import TestClient

# Set up test environment variables before importing modules
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_dummy_key_for_testing")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_secret")
os.environ.setdefault("CHECKOUT_RATE_LIMIT_ENABLED", "false")

from checkout_service.api import create_app
from checkout_service.config import CheckoutConfig
from checkout_service.gateways import SimulatorGateway


@pytest.fixture
def test_config() -> CheckoutConfig:
    """Configuration with rate limiting off."""
    return CheckoutConfig(
        stripe_secret_key="sk_test_mock_key",
        stripe_webhook_secret="whsec_test_secret",
        stripe_publishable_key="pk_test_mock_key",
        rate_limit_enabled=False,
    )


@pytest.fixture
def simulator() -> SimulatorGateway:
    """In-memory processor."""
    return SimulatorGateway(webhook_secret="whsec_test_secret")


@pytest.fixture
def app(simulator, test_config):
    """Application wired to the simulator."""
    return create_app(gateway=simulator, config=test_config)


@pytest.fixture
def client(app):
    """Create test client."""
    with TestClient(app) as c:
        yield c


@pytest.fixture
def valid_intent_id() -> str:
    return "pi_1234567890abcdefghijklmno"


@pytest.fixture
def stripe_intent_data(valid_intent_id) -> Dict[str, Any]:
    """Stripe PaymentIntent as returned by to_dict()."""
    return {
        "id": valid_intent_id,
        "object": "payment_intent",
        "amount": 5000,
        "currency": "usd",
        "status": "requires_payment_method",
        "created": 1700000000,
        "client_secret": f"{valid_intent_id}_secret_abcdef",
        "metadata": {"customerName": "Jane Doe"},
    }


@pytest.fixture
def mock_stripe_payment_intent(stripe_intent_data):
    """Create a mock Stripe PaymentIntent."""
    mock_pi = MagicMock()
    mock_pi.id = stripe_intent_data["id"]
    mock_pi.status = stripe_intent_data["status"]
    mock_pi.to_dict.return_value = stripe_intent_data
    return mock_pi


@pytest.fixture
def mock_stripe_succeeded_intent(stripe_intent_data):
    """Create a mock succeeded Stripe PaymentIntent."""
    data = dict(stripe_intent_data, status="succeeded")
    mock_pi = MagicMock()
    mock_pi.id = data["id"]
    mock_pi.status = "succeeded"
    mock_pi.to_dict.return_value = data
    return mock_pi


def make_event_payload(event_type: str, intent_id: str = "pi_1234567890abcdefghijklmno") -> bytes:
    """Serialize a processor-shaped webhook event."""
    return json.dumps({
        "id": "evt_test_123",
        "object": "event",
        "type": event_type,
        "data": {
            "object": {
                "id": intent_id,
                "object": "payment_intent",
                "amount": 5000,
                "currency": "usd",
                "status": "succeeded",
                "metadata": {},
            }
        },
    }).encode()


@pytest.fixture
def event_payload():
    return make_event_payload
