"""HTTP surface of the checkout backend."""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional, Dict, Any

from fastapi import APIRouter, Depends, FastAPI, Header, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from .config import CheckoutConfig
from .errors import AuthenticationError, CheckoutError
from .gateways.base import GatewayBase
from .gateways.stripe_gateway import StripeGateway
from .limits import build_limiter
from .services import IntentService, DEFAULT_CURRENCY
from .webhooks import WebhookReceiver

logger = logging.getLogger(__name__)


class CreatePaymentIntentBody(BaseModel):
    amount: Optional[int] = None
    currency: Optional[str] = DEFAULT_CURRENCY
    metadata: Optional[Dict[str, str]] = None


class ConfirmPaymentBody(BaseModel):
    paymentIntentId: Optional[str] = None


def get_intent_service(request: Request) -> IntentService:
    return request.app.state.intent_service


def get_webhook_receiver(request: Request) -> WebhookReceiver:
    return request.app.state.webhook_receiver


def create_router(limiter: Limiter, config: CheckoutConfig) -> APIRouter:
    """Return the /api router with the create endpoint rate limited."""

    router = APIRouter(prefix="/api")

    @router.get("/health")
    async def health():
        return {"status": "Server is running", "timestamp": datetime.now(timezone.utc).isoformat()}

    @router.post("/create-payment-intent")
    @limiter.limit(lambda: config.rate_limit)
    def create_payment_intent(
        request: Request,
        body: CreatePaymentIntentBody,
        service: IntentService = Depends(get_intent_service),
    ):
        return service.create_intent(body.amount, body.currency, body.metadata)

    @router.post("/confirm-payment")
    def confirm_payment(body: ConfirmPaymentBody, service: IntentService = Depends(get_intent_service)):
        return service.confirm_intent(body.paymentIntentId)

    @router.get("/payment/{payment_intent_id}")
    def get_payment(payment_intent_id: str, service: IntentService = Depends(get_intent_service)):
        return service.get_intent(payment_intent_id)

    @router.post("/webhook")
    async def webhook(
        request: Request,
        stripe_signature: Optional[str] = Header(None),
        receiver: WebhookReceiver = Depends(get_webhook_receiver),
    ):
        # The signature covers the exact bytes sent; never parse before verifying.
        payload = await request.body()
        try:
            # Handlers are plain functions and may block.
            return await run_in_threadpool(receiver.receive, payload, stripe_signature)
        except AuthenticationError as e:
            logger.warning(f"Webhook signature verification failed: {e.message}")
            return PlainTextResponse(f"Webhook Error: {e.message}", status_code=400)

    return router


async def checkout_error_handler(request: Request, exc: CheckoutError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"Invalid request: {location + ': ' if location else ''}{first.get('msg', 'invalid value')}"
    else:
        message = "Invalid request"
    return JSONResponse(status_code=400, content={"error": message})


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Server error on {request.method} {request.url.path}")
    return JSONResponse(status_code=500, content={"error": "Internal server error", "message": str(exc)})


def create_app(
    gateway: Optional[GatewayBase] = None,
    config: Optional[CheckoutConfig] = None,
    webhook_receiver: Optional[WebhookReceiver] = None,
) -> FastAPI:
    """Build the FastAPI application.

    Args:
        gateway: Processor gateway handle. Defaults to a StripeGateway built
            from the configuration.
        config: Runtime configuration. Defaults to CheckoutConfig.from_env().
        webhook_receiver: Receiver with custom handlers. Defaults to one over
            the same gateway with the logging handlers.

    Returns:
        The configured application.
    """
    config = config or CheckoutConfig.from_env()
    if gateway is None:
        gateway = StripeGateway(
            api_key=config.stripe_secret_key,
            webhook_secret=config.stripe_webhook_secret,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Checkout API ready using {type(gateway).__name__}")
        yield
        logger.info("Checkout API shutting down")

    app = FastAPI(title="Checkout Service", lifespan=lifespan)
    app.state.config = config
    app.state.gateway = gateway
    app.state.intent_service = IntentService(gateway)
    app.state.webhook_receiver = webhook_receiver or WebhookReceiver(gateway)

    limiter = build_limiter(config)
    app.state.limiter = limiter

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(CheckoutError, checkout_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.include_router(create_router(limiter, config))
    return app
