"""Request rate limiting for the public API."""

import logging

from slowapi import Limiter
from slowapi.util import get_remote_address

from .config import CheckoutConfig

logger = logging.getLogger(__name__)


def build_limiter(config: CheckoutConfig) -> Limiter:
    """Create a per-application limiter keyed on the client address.

    Args:
        config: Supplies the limit string and the on/off switch.

    Returns:
        A Limiter whose ``limit`` decorators read ``config.rate_limit`` at
        request time.
    """
    limiter = Limiter(key_func=get_remote_address, enabled=config.rate_limit_enabled)
    if not config.rate_limit_enabled:
        logger.info("Rate limiting disabled")
    return limiter
