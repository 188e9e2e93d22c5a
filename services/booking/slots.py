"""
services/booking/slots.py
Slot rules for ad bookings. A slot is one (selected_date, ad_type) pair and
at most one booking may hold it with a status other than REJECTED.

The partial unique index on ad_bookings is the final authority; the reads
here decide the common case and give readable conflict messages.
"""

import logging
from datetime import date, timedelta
from typing import Iterable, List, Optional, Sequence
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from shared.models.models import ACTIVE_STATUSES, AdBooking, AdType, BookingStatus

logger = logging.getLogger(__name__)

CREATED = "created"
TAKEN = "taken"
CONFLICT = "conflict"
FAILED = "failed"


# ── Pure helpers ──────────────────────────────────────────────

def expand_date_range(start: date, end: date) -> List[date]:
    """Inclusive list of dates from start to end."""
    if end < start:
        raise ValueError("end must not be before start")
    return [start + timedelta(days=i) for i in range((end - start).days + 1)]


def parse_date_list(raw: Optional[str]) -> tuple[List[date], List[str]]:
    """
    Split a comma-separated list of ISO dates.
    Returns (dates in original order without duplicates, unparseable tokens).
    A value that is not a string is reported whole as one unparseable token.
    """
    dates: List[date] = []
    invalid: List[str] = []
    if raw is None:
        return dates, invalid
    if not isinstance(raw, str):
        return dates, [str(raw)]
    for token in raw.split(","):
        token = token.strip()
        if not token:
            continue
        try:
            parsed = date.fromisoformat(token[:10])
        except ValueError:
            invalid.append(token)
            continue
        if parsed not in dates:
            dates.append(parsed)
    return dates, invalid


def find_conflict(
    bookings: Iterable[AdBooking],
    ad_type: AdType,
    target_date: date,
    exclude_id: Optional[UUID] = None,
) -> Optional[AdBooking]:
    """Linear scan of loaded bookings for another slot-holder at (target_date, ad_type)."""
    for other in bookings:
        if exclude_id is not None and other.id == exclude_id:
            continue
        if other.status == BookingStatus.REJECTED:
            continue
        if other.ad_type == ad_type and other.selected_date == target_date:
            return other
    return None


# ── Queries ───────────────────────────────────────────────────

async def load_active_bookings(db: AsyncSession, ad_type: AdType) -> List[AdBooking]:
    result = await db.execute(
        select(AdBooking).where(
            AdBooking.ad_type == ad_type,
            AdBooking.status.in_(ACTIVE_STATUSES),
        )
    )
    return list(result.scalars().all())


async def taken_dates(db: AsyncSession, ad_type: AdType, dates: Sequence[date]) -> List[date]:
    """Which of the given dates already have a slot-holding booking for ad_type."""
    if not dates:
        return []
    result = await db.execute(
        select(AdBooking.selected_date)
        .where(
            AdBooking.ad_type == ad_type,
            AdBooking.status.in_(ACTIVE_STATUSES),
            AdBooking.selected_date.in_(list(dates)),
        )
        .order_by(AdBooking.selected_date)
    )
    return list(result.scalars().all())


# ── Webhook claim ─────────────────────────────────────────────

async def claim_slot(
    db: AsyncSession,
    selected_date: date,
    ad_type: AdType,
    *,
    buyer_name: Optional[str],
    buyer_contact: Optional[str],
    image_url: Optional[str],
    link_url: Optional[str],
    order_id: Optional[str],
) -> str:
    """
    Insert a PAID booking for one slot and commit it on its own.

    Existing REJECTED bookings for the slot are deleted first. If any other
    booking holds the slot nothing is written. Returns one of
    CREATED, TAKEN, CONFLICT (lost a race on the unique index) or FAILED.
    """
    result = await db.execute(
        select(AdBooking).where(
            AdBooking.selected_date == selected_date,
            AdBooking.ad_type == ad_type,
        )
    )
    existing = result.scalars().all()

    holder = find_conflict(existing, ad_type, selected_date)
    if holder is not None:
        logger.warning(
            f"Slot {selected_date} [{ad_type.value}] already held by booking "
            f"{holder.id} ({holder.status.value}), skipping order {order_id}"
        )
        return TAKEN

    try:
        rejected_ids = [b.id for b in existing if b.status == BookingStatus.REJECTED]
        if rejected_ids:
            await db.execute(delete(AdBooking).where(AdBooking.id.in_(rejected_ids)))
            logger.info(f"Freed slot {selected_date} [{ad_type.value}]: removed {len(rejected_ids)} rejected booking(s)")

        db.add(AdBooking(
            selected_date=selected_date,
            ad_type=ad_type,
            status=BookingStatus.PAID,
            buyer_name=buyer_name,
            buyer_contact=buyer_contact,
            image_url=image_url,
            link_url=link_url,
            order_id=order_id,
        ))
        await db.commit()
    except IntegrityError:
        await db.rollback()
        logger.warning(f"Slot {selected_date} [{ad_type.value}] was claimed concurrently, skipping order {order_id}")
        return CONFLICT
    except Exception as e:
        await db.rollback()
        logger.error(f"Failed to insert booking for {selected_date} [{ad_type.value}], order {order_id}: {e}")
        return FAILED

    return CREATED
