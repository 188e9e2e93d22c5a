"""
services/payment/router.py
Lemon Squeezy integration: checkout creation and the order webhook.

The webhook is the only writer of new bookings. Each purchased date is
claimed on its own; a taken or failing date never aborts the rest.
"""

import json
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from config.settings import Settings, get_settings
from services.booking.slots import CREATED, claim_slot, parse_date_list, taken_dates
from services.notification.notifier import Notifier, get_notifier
from services.payment.client import (
    LemonSqueezyClient,
    PaymentConfigError,
    PaymentProviderError,
    get_payment_client,
)
from shared.models.models import AdType
from shared.schemas.schemas import CheckoutRequest, CheckoutResponse, WebhookAck
from shared.utils.best_effort import run_non_critical
from shared.utils.security import verify_webhook_signature

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Payments"])

ORDER_CREATED = "order_created"


def _as_dict(value) -> dict:
    return value if isinstance(value, dict) else {}


# ── Checkout ──────────────────────────────────────────────────

@router.post("/checkout", response_model=CheckoutResponse)
async def create_checkout(
    data: CheckoutRequest,
    db: AsyncSession = Depends(get_db),
    payments: LemonSqueezyClient = Depends(get_payment_client),
    settings: Settings = Depends(get_settings),
):
    """
    Create a hosted checkout for the requested dates.
    Nothing is stored here; bookings appear when the order webhook arrives.
    """
    if len(data.dates) > settings.MAX_CHECKOUT_DAYS:
        raise HTTPException(
            status_code=400,
            detail=f"At most {settings.MAX_CHECKOUT_DAYS} dates can be booked at once",
        )

    ad_type = AdType(data.ad_type)
    taken = await taken_dates(db, ad_type, data.dates)
    if taken:
        raise HTTPException(
            status_code=409,
            detail={
                "message": "Some dates are already booked",
                "taken": [d.isoformat() for d in taken],
            },
        )

    try:
        url = await payments.create_checkout(data.dates, data.image_url, data.link_url, ad_type.value)
    except PaymentConfigError as e:
        logger.error(f"Checkout unavailable: {e}")
        raise HTTPException(status_code=500, detail="Server configuration missing")
    except PaymentProviderError as e:
        raise HTTPException(status_code=502, detail=f"Payment gateway error: {e}")

    logger.info(f"Checkout created for {len(data.dates)} {ad_type.value} date(s)")
    return CheckoutResponse(url=url)


# ── Lemon Squeezy Webhook ─────────────────────────────────────

@router.post("/payments/webhook", response_model=WebhookAck, include_in_schema=False)
async def lemon_squeezy_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
    settings: Settings = Depends(get_settings),
):
    """
    Lemon Squeezy webhook handler. Validates the X-Signature HMAC.
    Handles: order_created. Every other event is acknowledged and ignored.
    """
    secret = settings.LEMON_SQUEEZY_WEBHOOK_SECRET
    if not secret:
        logger.error("LEMON_SQUEEZY_WEBHOOK_SECRET is not set, refusing webhook")
        raise HTTPException(status_code=500, detail="Server configuration missing")

    body = await request.body()
    signature = request.headers.get("X-Signature", "")
    if not verify_webhook_signature(body, signature, secret):
        logger.warning("Webhook rejected: invalid signature")
        return JSONResponse(status_code=401, content={"detail": "Invalid signature"})

    try:
        payload = json.loads(body)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid JSON payload")
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Invalid JSON payload")

    meta = _as_dict(payload.get("meta"))
    event = meta.get("event_name")
    if event != ORDER_CREATED:
        logger.info(f"Webhook event '{event}' ignored")
        return WebhookAck(event=event)

    custom = _as_dict(meta.get("custom_data"))
    data = _as_dict(payload.get("data"))
    attributes = _as_dict(data.get("attributes"))
    order_id = data.get("id")
    order_id = str(order_id) if order_id is not None else None
    buyer_name = attributes.get("user_name")
    buyer_email = attributes.get("user_email")

    raw_dates = custom.get("selected_dates") or custom.get("selected_date") or ""
    dates, invalid = parse_date_list(raw_dates)
    skipped: List[str] = [f"{token}: invalid date" for token in invalid]

    try:
        ad_type = AdType(custom.get("ad_type") or AdType.TOP.value)
    except ValueError:
        logger.error(f"Order {order_id} carries unknown ad_type '{custom.get('ad_type')}', nothing booked")
        return WebhookAck(event=event, skipped=[f"{d.isoformat()}: unknown ad type" for d in dates] + skipped)

    if not dates:
        logger.warning(f"Order {order_id} has no usable dates in custom data")
        return WebhookAck(event=event, skipped=skipped)

    created = []
    for selected_date in dates:
        outcome = await claim_slot(
            db,
            selected_date,
            ad_type,
            buyer_name=buyer_name,
            buyer_contact=buyer_email,
            image_url=custom.get("image_url"),
            link_url=custom.get("link_url"),
            order_id=order_id,
        )
        if outcome == CREATED:
            created.append(selected_date)
        else:
            skipped.append(f"{selected_date.isoformat()}: {outcome}")

    logger.info(
        f"Order {order_id} [{ad_type.value}]: {len(created)} booked, {len(skipped)} skipped"
    )

    if created:
        await run_non_critical(
            "booking notification",
            notifier.notify,
            "New ad booking!",
            f"{buyer_name or 'Someone'} booked {ad_type.value} on "
            f"{', '.join(d.isoformat() for d in created)}",
        )

    return WebhookAck(event=event, created=created, skipped=skipped)
