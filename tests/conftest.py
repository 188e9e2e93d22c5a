"""
tests/conftest.py
Shared fixtures: in-memory SQLite per test, HTTP client against the app,
fake Lemon Squeezy client and notifier, and request helpers.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret")
os.environ.setdefault("ADMIN_PASSWORD", "letmein")
os.environ.setdefault("LEMON_SQUEEZY_WEBHOOK_SECRET", "whsec_test")
os.environ.setdefault("APP_ENV", "test")

import json
from datetime import date
from typing import Optional

import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from config.database import Base, build_engine, build_sessionmaker, get_db
from config.settings import settings
from main import app
from services.notification.notifier import get_notifier
from services.payment.client import get_payment_client
from shared.models.models import AdBooking, AdType, BookingStatus
from shared.utils.security import compute_webhook_signature, create_access_token


# ── Fakes ─────────────────────────────────────────────────────

class FakePaymentClient:
    """Stands in for LemonSqueezyClient; records every call."""

    def __init__(self):
        self.checkouts = []
        self.refunds = []
        self.refunded_orders = set()
        self.checkout_url = "https://store.lemonsqueezy.com/checkout/custom/abc"
        self.checkout_error: Optional[Exception] = None
        self.refund_error: Optional[Exception] = None
        self.lookup_error: Optional[Exception] = None

    async def create_checkout(self, dates, image_url, link_url, ad_type):
        self.checkouts.append({
            "dates": list(dates),
            "quantity": len(dates),
            "image_url": image_url,
            "link_url": link_url,
            "ad_type": ad_type,
        })
        if self.checkout_error:
            raise self.checkout_error
        return self.checkout_url

    async def refund_order(self, order_id):
        self.refunds.append(order_id)
        if self.refund_error:
            raise self.refund_error
        self.refunded_orders.add(order_id)
        return {"data": {"id": order_id}}

    async def is_order_refunded(self, order_id):
        if self.lookup_error:
            raise self.lookup_error
        return order_id in self.refunded_orders


class FakeNotifier:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.messages = []

    async def notify(self, title, body):
        self.messages.append((title, body))
        if self.fail:
            raise RuntimeError("messaging endpoint down")


# ── Fixtures ──────────────────────────────────────────────────

@pytest_asyncio.fixture
async def engine():
    engine = build_engine("sqlite+aiosqlite://")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return build_sessionmaker(engine)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def payments():
    return FakePaymentClient()


@pytest_asyncio.fixture
async def notifier():
    return FakeNotifier()


@pytest_asyncio.fixture
async def client(session_factory, payments, notifier):
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_client] = lambda: payments
    app.dependency_overrides[get_notifier] = lambda: notifier

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def make_booking(session_factory):
    """Insert a booking directly (the webhook is the only API path that creates them)."""

    async def _make(
        selected_date: date,
        ad_type: AdType = AdType.TOP,
        status: BookingStatus = BookingStatus.PAID,
        order_id: Optional[str] = "5001",
        **fields,
    ) -> AdBooking:
        async with session_factory() as session:
            booking = AdBooking(
                selected_date=selected_date,
                ad_type=ad_type,
                status=status,
                buyer_name=fields.pop("buyer_name", "Test Buyer"),
                buyer_contact=fields.pop("buyer_contact", "buyer@example.com"),
                image_url=fields.pop("image_url", "https://cdn.example.com/banner.png"),
                link_url=fields.pop("link_url", "https://example.com"),
                order_id=order_id,
                **fields,
            )
            session.add(booking)
            await session.commit()
            return booking

    return _make


# ── Helpers ───────────────────────────────────────────────────

async def load_booking(session_factory, booking_id) -> Optional[AdBooking]:
    """Read the current row through a fresh session."""
    async with session_factory() as session:
        return await session.get(AdBooking, booking_id)


def auth_headers() -> dict:
    token, _ = create_access_token()
    return {"Authorization": f"Bearer {token}"}


def order_payload(
    dates,
    ad_type: Optional[str] = "bottom",
    order_id: str = "1001",
    event: str = "order_created",
    image_url: str = "https://cdn.example.com/ad.png",
    link_url: str = "https://advertiser.example.com",
) -> dict:
    custom = {
        "selected_dates": ",".join(dates),
        "image_url": image_url,
        "link_url": link_url,
    }
    if ad_type is not None:
        custom["ad_type"] = ad_type
    return {
        "meta": {"event_name": event, "custom_data": custom},
        "data": {
            "type": "orders",
            "id": order_id,
            "attributes": {"user_name": "Kim Buyer", "user_email": "kim@example.com"},
        },
    }


def signed(payload: dict, secret: Optional[str] = None) -> tuple[bytes, dict]:
    """Serialize a webhook payload and return (body, headers) with a valid X-Signature."""
    body = json.dumps(payload).encode()
    signature = compute_webhook_signature(body, secret or settings.LEMON_SQUEEZY_WEBHOOK_SECRET)
    return body, {"X-Signature": signature, "Content-Type": "application/json"}
