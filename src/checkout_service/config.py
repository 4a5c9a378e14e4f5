"""Environment driven configuration.

Values are read once into a :class:`CheckoutConfig`. Secrets may be absent;
the component that needs one reports the gap when it is first used.
"""

import os
from dataclasses import dataclass
from typing import Optional

DEFAULT_PORT = 3000
DEFAULT_RATE_LIMIT = "60/minute"


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class CheckoutConfig:
    """Runtime configuration for the checkout backend and client."""
    stripe_secret_key: Optional[str] = None
    stripe_webhook_secret: Optional[str] = None
    stripe_publishable_key: Optional[str] = None
    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    api_base_url: str = f"http://localhost:{DEFAULT_PORT}/api"
    rate_limit: str = DEFAULT_RATE_LIMIT
    rate_limit_enabled: bool = True
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "CheckoutConfig":
        port = int(os.getenv("PORT", str(DEFAULT_PORT)))
        return cls(
            stripe_secret_key=os.getenv("STRIPE_SECRET_KEY") or None,
            stripe_webhook_secret=os.getenv("STRIPE_WEBHOOK_SECRET") or None,
            stripe_publishable_key=os.getenv("STRIPE_PUBLISHABLE_KEY") or None,
            host=os.getenv("HOST", "0.0.0.0"),
            port=port,
            api_base_url=os.getenv("CHECKOUT_API_URL", f"http://localhost:{port}/api"),
            rate_limit=os.getenv("CHECKOUT_RATE_LIMIT", DEFAULT_RATE_LIMIT),
            rate_limit_enabled=_env_flag("CHECKOUT_RATE_LIMIT_ENABLED", True),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )
