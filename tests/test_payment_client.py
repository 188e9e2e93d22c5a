"""
tests/test_payment_client.py
Tests for the Lemon Squeezy client against a mocked HTTP transport.
"""

import json
from datetime import date

import httpx
import pytest

from config.settings import get_settings
from services.payment.client import LemonSqueezyClient, PaymentConfigError, PaymentProviderError


def _settings(**overrides):
    values = {
        "LEMON_SQUEEZY_API_KEY": "test-key",
        "LEMON_SQUEEZY_STORE_ID": "1234",
        "LEMON_SQUEEZY_VARIANT_ID_TOP": "111",
        "LEMON_SQUEEZY_VARIANT_ID_BOTTOM": "222",
        "LEMON_SQUEEZY_VARIANT_ID_NEWSLETTER": "333",
    }
    values.update(overrides)
    return get_settings().model_copy(update=values)


class Recorder:
    """MockTransport handler that records requests and replays one canned response."""

    def __init__(self, status_code=200, body=None):
        self.status_code = status_code
        self.body = body if body is not None else {}
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, json=self.body)


@pytest.mark.asyncio
async def test_create_checkout_payload():
    handler = Recorder(201, {"data": {"attributes": {"url": "https://shop.example/checkout/1"}}})
    client = LemonSqueezyClient(_settings(), transport=httpx.MockTransport(handler))

    url = await client.create_checkout(
        [date(2025, 6, 1), date(2025, 6, 2)], "https://img", "https://link", "bottom"
    )
    assert url == "https://shop.example/checkout/1"

    request = handler.requests[0]
    assert request.method == "POST"
    assert request.url.path == "/v1/checkouts"
    assert request.headers["Authorization"] == "Bearer test-key"
    assert request.headers["Content-Type"] == "application/vnd.api+json"

    data = json.loads(request.content)["data"]
    checkout = data["attributes"]["checkout_data"]
    assert checkout["custom"] == {
        "selected_dates": "2025-06-01,2025-06-02",
        "image_url": "https://img",
        "link_url": "https://link",
        "ad_type": "bottom",
    }
    assert checkout["variant_quantities"] == [{"variant_id": 222, "quantity": 2}]
    assert data["relationships"]["store"]["data"]["id"] == "1234"
    assert data["relationships"]["variant"]["data"]["id"] == "222"


@pytest.mark.asyncio
async def test_create_checkout_requires_configuration():
    handler = Recorder()
    transport = httpx.MockTransport(handler)

    with pytest.raises(PaymentConfigError):
        await LemonSqueezyClient(_settings(LEMON_SQUEEZY_API_KEY=""), transport=transport).create_checkout(
            [date(2025, 6, 1)], "i", "l", "top"
        )
    with pytest.raises(PaymentConfigError):
        await LemonSqueezyClient(
            _settings(LEMON_SQUEEZY_VARIANT_ID_NEWSLETTER=""), transport=transport
        ).create_checkout([date(2025, 6, 1)], "i", "l", "newsletter")
    assert handler.requests == []


@pytest.mark.asyncio
async def test_provider_error_detail_is_surfaced():
    handler = Recorder(422, {"errors": [{"detail": "The variant is not available."}]})
    client = LemonSqueezyClient(_settings(), transport=httpx.MockTransport(handler))

    with pytest.raises(PaymentProviderError) as exc_info:
        await client.create_checkout([date(2025, 6, 1)], "i", "l", "top")
    assert str(exc_info.value) == "The variant is not available."
    assert exc_info.value.status_code == 422


@pytest.mark.asyncio
async def test_checkout_without_url_is_an_error():
    client = LemonSqueezyClient(_settings(), transport=httpx.MockTransport(Recorder(201, {"data": {}})))
    with pytest.raises(PaymentProviderError):
        await client.create_checkout([date(2025, 6, 1)], "i", "l", "top")


@pytest.mark.asyncio
async def test_unreachable_provider():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = LemonSqueezyClient(_settings(), transport=httpx.MockTransport(handler))
    with pytest.raises(PaymentProviderError):
        await client.refund_order("55")


@pytest.mark.asyncio
async def test_refund_order():
    handler = Recorder(200, {"data": {"id": "55", "attributes": {"refunded": True}}})
    client = LemonSqueezyClient(_settings(), transport=httpx.MockTransport(handler))

    await client.refund_order("55")
    request = handler.requests[0]
    assert request.method == "POST"
    assert request.url.path == "/v1/orders/55/refund"
    assert json.loads(request.content)["data"]["id"] == "55"


@pytest.mark.asyncio
@pytest.mark.parametrize("attributes,expected", [
    ({"refunded": True, "status": "paid"}, True),
    ({"refunded": False, "status": "refunded"}, True),
    ({"refunded": False, "status": "paid"}, False),
])
async def test_is_order_refunded(attributes, expected):
    handler = Recorder(200, {"data": {"id": "56", "attributes": attributes}})
    client = LemonSqueezyClient(_settings(), transport=httpx.MockTransport(handler))

    assert await client.is_order_refunded("56") is expected
    assert handler.requests[0].method == "GET"
    assert handler.requests[0].url.path == "/v1/orders/56"
