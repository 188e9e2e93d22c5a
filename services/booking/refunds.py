"""
services/booking/refunds.py
Reject-with-refund saga and the reconciliation pass for stuck refunds.

    PAID | APPROVED ──mark──▶ REFUND_PENDING ──refund ok──▶ REJECTED
                                    │
                                    └──refund failed──▶ previous status

A crash between the refund call and the final status write leaves the row in
REFUND_PENDING; reconcile_pending_refunds() settles those against the provider.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from services.payment.client import (
    LemonSqueezyClient,
    PaymentConfigError,
    PaymentProviderError,
)
from shared.models.models import AdBooking, BookingStatus

logger = logging.getLogger(__name__)

REJECTABLE_STATUSES = (BookingStatus.PAID, BookingStatus.APPROVED)


class RejectError(Exception):
    """Booking cannot be rejected as requested (state or missing order id)."""


def resolve_order_id(booking: AdBooking, requested: Optional[str]) -> str:
    """Pick the order to refund. The stored order id wins; a different requested one is refused."""
    requested = (requested or "").strip() or None
    stored = booking.order_id
    if stored and requested and str(stored) != requested:
        raise RejectError(
            f"Order id {requested} does not match the booking's order {stored}"
        )
    order_id = stored or requested
    if not order_id:
        raise RejectError("Booking has no order id; refund must be handled manually")
    return str(order_id)


async def reject_with_refund(
    db: AsyncSession,
    booking: AdBooking,
    client: LemonSqueezyClient,
    requested_order_id: Optional[str] = None,
) -> AdBooking:
    """
    Refund the booking's order, then mark it REJECTED.
    On refund failure the previous status is restored and the provider
    error propagates; the booking is never REJECTED without a refund.
    """
    if booking.status == BookingStatus.REFUND_PENDING:
        raise RejectError("A refund for this booking is already in progress")
    if booking.status not in REJECTABLE_STATUSES:
        raise RejectError(f"Cannot reject booking in '{booking.status.value}' state")

    order_id = resolve_order_id(booking, requested_order_id)
    if not booking.order_id:
        booking.order_id = order_id

    # Step 1: record intent
    booking.previous_status = booking.status
    booking.status = BookingStatus.REFUND_PENDING
    booking.refund_requested_at = datetime.now(timezone.utc)
    await db.commit()

    # Step 2: refund
    try:
        await client.refund_order(order_id)
    except (PaymentProviderError, PaymentConfigError):
        logger.error(f"Refund failed for booking {booking.id} (order {order_id}), restoring status")
        booking.status = booking.previous_status or BookingStatus.PAID
        booking.previous_status = None
        booking.refund_requested_at = None
        await db.commit()
        raise

    # Step 3: settle
    booking.status = BookingStatus.REJECTED
    booking.previous_status = None
    await db.commit()
    logger.info(f"Booking {booking.id} rejected, order {order_id} refunded")
    return booking


async def reconcile_pending_refunds(
    db: AsyncSession,
    client: LemonSqueezyClient,
    older_than: timedelta,
) -> Dict[str, int]:
    """
    Settle bookings left in REFUND_PENDING for longer than older_than.
    Refunded orders become REJECTED, the rest go back to their previous status.
    Per-row provider errors are logged and the row is retried next run.
    """
    cutoff = datetime.now(timezone.utc) - older_than
    result = await db.execute(
        select(AdBooking).where(
            AdBooking.status == BookingStatus.REFUND_PENDING,
            AdBooking.refund_requested_at <= cutoff,
        )
    )
    stuck = result.scalars().all()

    counts = {"rejected": 0, "restored": 0, "errors": 0}
    for booking in stuck:
        try:
            refunded = bool(booking.order_id) and await client.is_order_refunded(booking.order_id)
        except (PaymentProviderError, PaymentConfigError) as e:
            logger.warning(f"Reconcile: could not query order {booking.order_id} for booking {booking.id}: {e}")
            counts["errors"] += 1
            continue

        if refunded:
            booking.status = BookingStatus.REJECTED
            counts["rejected"] += 1
        else:
            booking.status = booking.previous_status or BookingStatus.PAID
            booking.refund_requested_at = None
            counts["restored"] += 1
        booking.previous_status = None
        await db.commit()
        logger.info(f"Reconcile: booking {booking.id} → {booking.status.value}")

    return counts
