#!/usr/bin/env python3
"""Command-line interface for the checkout service.

Usage:
    checkout-service serve --port 3000
    checkout-service pay --amount 50.00 --name "Jane Doe" --email jane@example.com
    checkout-service status pi_123
"""

import argparse
import asyncio
import json
import logging
import sys
from decimal import Decimal, InvalidOperation
from typing import Optional

from .config import CheckoutConfig
from .errors import UIError
from .checkout import (
    CheckoutForm,
    CheckoutOrchestrator,
    CheckoutState,
    IntentAPIClient,
    StripeCardWidget,
)

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


def uvicorn_log_level(level: str) -> str:
    """Translate a logging level name (``WARN``, ``FATAL``, ...) into one uvicorn accepts."""
    from uvicorn.config import LOG_LEVELS

    name = level.strip().lower()
    if name in LOG_LEVELS:
        return name
    numeric = logging.getLevelName(name.upper())
    if isinstance(numeric, int):
        canonical = logging.getLevelName(numeric).lower()
        if canonical in LOG_LEVELS:
            return canonical
    return "info"


def serve(config: CheckoutConfig, host: Optional[str] = None, port: Optional[int] = None, reload: bool = False) -> int:
    """Run the API under uvicorn."""
    import uvicorn

    host = host or config.host
    port = port or config.port
    logger.info(f"API endpoints available at http://{host}:{port}/api")
    uvicorn.run(
        "checkout_service.api:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level=uvicorn_log_level(config.log_level),
    )
    return 0


async def pay_async(
    config: CheckoutConfig,
    amount: Decimal,
    currency: str,
    name: str,
    email: str,
    card_token: str,
    api_url: Optional[str] = None,
) -> int:
    """Drive one checkout against a running backend.

    Returns:
        Exit code (0 when the payment succeeded).
    """
    widget = StripeCardWidget(config.stripe_publishable_key, card_token=card_token)
    widget.mount()
    form = CheckoutForm(customer_name=name, customer_email=email, amount=amount, currency=currency)

    async with IntentAPIClient(api_url or config.api_base_url) as api:
        orchestrator = CheckoutOrchestrator(api, widget, form)
        state = await orchestrator.submit()
        await orchestrator.drain()

    print(json.dumps({
        "state": state.value,
        "paymentIntentId": orchestrator.payment_intent_id,
        "error": orchestrator.error_message or None,
    }, indent=2))
    return 0 if state == CheckoutState.SUCCEEDED else 1


async def status_async(config: CheckoutConfig, payment_intent_id: str, api_url: Optional[str] = None) -> int:
    async with IntentAPIClient(api_url or config.api_base_url) as api:
        try:
            details = await api.get_payment_details(payment_intent_id)
        except UIError as e:
            logger.error(e.message)
            return 1
    print(json.dumps(details, indent=2))
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI.

    Returns:
        Configured ArgumentParser.
    """
    parser = argparse.ArgumentParser(
        prog="checkout-service",
        description="Payment intent backend and checkout client.",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", help="Bind address (default: HOST or 0.0.0.0)")
    serve_parser.add_argument("--port", "-p", type=int, help="Port (default: PORT or 3000)")
    serve_parser.add_argument("--reload", action="store_true", help="Reload on code changes")

    pay_parser = subparsers.add_parser("pay", help="Run a checkout against a running API")
    pay_parser.add_argument("--amount", "-a", default="50.00", help="Amount in major units (default: 50.00)")
    pay_parser.add_argument("--currency", "-c", default="usd", help="Currency code (default: usd)")
    pay_parser.add_argument("--name", "-n", default="", help="Customer name")
    pay_parser.add_argument("--email", "-e", default="", help="Customer email")
    pay_parser.add_argument("--card", default="tok_visa", help="Stripe test card token (default: tok_visa)")
    pay_parser.add_argument("--api-url", help="Backend base URL (default: CHECKOUT_API_URL)")

    status_parser = subparsers.add_parser("status", help="Show a payment's details")
    status_parser.add_argument("payment_intent_id", help="Payment Intent ID")
    status_parser.add_argument("--api-url", help="Backend base URL (default: CHECKOUT_API_URL)")

    return parser


def main(args: Optional[list] = None) -> int:
    """Main entry point for the CLI.

    Args:
        args: Optional list of command-line arguments (for testing).

    Returns:
        Exit code.
    """
    parser = create_parser()
    parsed_args = parser.parse_args(args)

    if not parsed_args.command:
        parser.print_help()
        return 1

    config = CheckoutConfig.from_env()
    configure_logging(config.log_level)

    if parsed_args.command == "serve":
        return serve(config, parsed_args.host, parsed_args.port, parsed_args.reload)

    if parsed_args.command == "pay":
        try:
            amount = Decimal(parsed_args.amount)
        except InvalidOperation:
            logger.error(f"Invalid amount: {parsed_args.amount}")
            return 1
        return asyncio.run(pay_async(
            config,
            amount=amount,
            currency=parsed_args.currency,
            name=parsed_args.name,
            email=parsed_args.email,
            card_token=parsed_args.card,
            api_url=parsed_args.api_url,
        ))

    if parsed_args.command == "status":
        return asyncio.run(status_async(config, parsed_args.payment_intent_id, parsed_args.api_url))

    return 0


if __name__ == "__main__":
    sys.exit(main())
