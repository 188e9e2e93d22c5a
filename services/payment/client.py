"""
services/payment/client.py
Lemon Squeezy REST client: checkout creation, order refund, order lookup.

Constructed once per request from the process Settings; the HTTP transport can
be injected so tests run without network access.
"""

import json
import logging
from typing import Optional, Sequence
from datetime import date

import httpx

from config.settings import Settings, get_settings

logger = logging.getLogger(__name__)

JSON_API = "application/vnd.api+json"


class PaymentConfigError(Exception):
    """Provider credentials or variant ids are not configured."""


class PaymentProviderError(Exception):
    """The provider rejected the request or could not be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class LemonSqueezyClient:
    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        if not self.settings.LEMON_SQUEEZY_API_KEY:
            raise PaymentConfigError("LEMON_SQUEEZY_API_KEY is not set")
        return httpx.AsyncClient(
            base_url=self.settings.LEMON_SQUEEZY_API_URL.rstrip("/"),
            headers={
                "Accept": JSON_API,
                "Content-Type": JSON_API,
                "Authorization": f"Bearer {self.settings.LEMON_SQUEEZY_API_KEY}",
            },
            timeout=self.settings.PAYMENT_HTTP_TIMEOUT,
            transport=self._transport,
        )

    async def _request(self, method: str, path: str, payload: Optional[dict] = None) -> dict:
        async with self._client() as client:
            try:
                response = await client.request(
                    method,
                    path,
                    content=json.dumps(payload) if payload is not None else None,
                )
            except httpx.HTTPError as e:
                raise PaymentProviderError(f"Payment provider unreachable: {e}") from e

        try:
            body = response.json() if response.content else {}
        except ValueError:
            body = {}

        if response.is_error or body.get("errors"):
            errors = body.get("errors") or []
            detail = errors[0].get("detail") if errors else response.text
            logger.error(f"Lemon Squeezy {method} {path} failed ({response.status_code}): {detail}")
            raise PaymentProviderError(detail or "Payment provider error", response.status_code)
        return body

    # ── Checkout ──────────────────────────────────────────────

    async def create_checkout(
        self,
        dates: Sequence[date],
        image_url: str,
        link_url: str,
        ad_type: str,
    ) -> str:
        """Create a hosted checkout for len(dates) units of the ad type's variant. Returns its URL."""
        store_id = self.settings.LEMON_SQUEEZY_STORE_ID
        variant_id = self.settings.variant_for(ad_type)
        if not store_id or not variant_id:
            raise PaymentConfigError(f"Store or variant id missing for ad type '{ad_type}'")

        payload = {
            "data": {
                "type": "checkouts",
                "attributes": {
                    "checkout_data": {
                        "custom": {
                            "selected_dates": ",".join(d.isoformat() for d in dates),
                            "image_url": image_url,
                            "link_url": link_url,
                            "ad_type": ad_type,
                        },
                        "variant_quantities": [
                            {"variant_id": int(variant_id), "quantity": len(dates)},
                        ],
                    },
                },
                "relationships": {
                    "store": {"data": {"type": "stores", "id": str(store_id)}},
                    "variant": {"data": {"type": "variants", "id": str(variant_id)}},
                },
            }
        }
        body = await self._request("POST", "/checkouts", payload)
        url = body.get("data", {}).get("attributes", {}).get("url")
        if not url:
            raise PaymentProviderError("Checkout response did not include a URL")
        return url

    # ── Orders ────────────────────────────────────────────────

    async def refund_order(self, order_id: str) -> dict:
        """Issue a full refund for an order. Raises PaymentProviderError unless the provider accepts it."""
        payload = {"data": {"type": "orders", "id": str(order_id), "attributes": {}}}
        return await self._request("POST", f"/orders/{order_id}/refund", payload)

    async def get_order(self, order_id: str) -> dict:
        body = await self._request("GET", f"/orders/{order_id}")
        return body.get("data", {}).get("attributes", {})

    async def is_order_refunded(self, order_id: str) -> bool:
        attributes = await self.get_order(order_id)
        return bool(attributes.get("refunded")) or attributes.get("status") == "refunded"


def get_payment_client() -> LemonSqueezyClient:
    """FastAPI dependency. Overridden in tests."""
    return LemonSqueezyClient(get_settings())

