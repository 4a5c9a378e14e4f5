"""HTTP client the checkout form uses to reach the backend."""

import logging
from typing import Any, Dict, Optional

import httpx

from ..errors import UIError

logger = logging.getLogger(__name__)

GENERIC_ERROR = "An unexpected error occurred"


class IntentAPIClient:
    """Thin async wrapper over the backend's /api endpoints.

    Every failure is raised as :class:`UIError` with the backend's ``error``
    message when it sent one. Nothing is retried.
    """

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout_seconds,
            headers={"Content-Type": "application/json"},
            transport=transport,
        )

    async def __aenter__(self) -> "IntentAPIClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, json: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        try:
            response = await self._client.request(method, path, json=json)
        except httpx.HTTPError as e:
            logger.error(f"{method} {path} failed: {e}")
            raise UIError(GENERIC_ERROR) from e

        if response.is_error:
            raise UIError(self._error_message(response))
        try:
            return response.json()
        except ValueError as e:
            raise UIError(GENERIC_ERROR) from e

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text or GENERIC_ERROR
        if isinstance(body, dict) and body.get("error"):
            return str(body["error"])
        return GENERIC_ERROR

    async def create_payment_intent(
        self,
        amount: int,
        currency: str = "usd",
        metadata: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """Create an intent on the server.

        Args:
            amount: Amount in minor units (e.g. 5000 = $50.00).
            currency: Currency code.
            metadata: Optional string mapping stored on the intent.

        Returns:
            ``{"clientSecret": ..., "paymentIntentId": ...}``
        """
        return await self._request(
            "POST",
            "/create-payment-intent",
            json={"amount": amount, "currency": currency, "metadata": metadata or {}},
        )

    async def confirm_payment(self, payment_intent_id: str) -> Dict[str, Any]:
        return await self._request("POST", "/confirm-payment", json={"paymentIntentId": payment_intent_id})

    async def get_payment_details(self, payment_intent_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/payment/{payment_intent_id}")
