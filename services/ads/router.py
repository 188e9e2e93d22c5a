"""
services/ads/router.py
Public ad serving and admin management of legacy (always-on) ads.

Serving order for a placement today:
  1. the APPROVED booking for today's date and that ad type
  2. the highest-priority active legacy ad whose window covers now
"""

import logging
from datetime import date, datetime, timezone
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from services.booking.slots import expand_date_range, taken_dates
from shared.middleware.auth import TokenData, require_admin
from shared.models.models import AdBooking, AdType, BookingStatus, LegacyAd
from shared.schemas.schemas import (
    AvailabilityResponse,
    LegacyAdCreate,
    LegacyAdResponse,
    LegacyAdUpdate,
    MessageResponse,
    ServedAdResponse,
)
from shared.utils.best_effort import run_non_critical

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ads", tags=["Ads"])
admin_router = APIRouter(prefix="/admin/legacy-ads", tags=["Admin Legacy Ads"])

MAX_AVAILABILITY_DAYS = 366


# ── Helpers ───────────────────────────────────────────────────

def _today() -> date:
    return datetime.now(timezone.utc).date()


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


async def _bump_counter(db: AsyncSession, ad_id: UUID, column: str) -> None:
    """Increment view_count/click_count in its own commit."""
    col = getattr(LegacyAd, column)
    try:
        await db.execute(update(LegacyAd).where(LegacyAd.id == ad_id).values({col: col + 1}))
        await db.commit()
    except Exception:
        await db.rollback()
        raise


async def _get_legacy_or_404(ad_id: UUID, db: AsyncSession) -> LegacyAd:
    result = await db.execute(select(LegacyAd).where(LegacyAd.id == ad_id))
    ad = result.scalar_one_or_none()
    if not ad:
        raise HTTPException(status_code=404, detail="Ad not found")
    return ad


# ── Public ────────────────────────────────────────────────────

@router.get("/current", response_model=ServedAdResponse)
async def current_ad(
    ad_type: AdType = Query(AdType.TOP),
    db: AsyncSession = Depends(get_db),
):
    """The creative to show right now for a placement."""
    result = await db.execute(
        select(AdBooking).where(
            AdBooking.selected_date == _today(),
            AdBooking.ad_type == ad_type,
            AdBooking.status == BookingStatus.APPROVED,
        )
    )
    booking = result.scalars().first()
    if booking:
        return ServedAdResponse(
            id=booking.id,
            source="booking",
            ad_type=ad_type,
            title="Sponsored Ad",
            image_url=booking.image_url,
            link_url=booking.link_url or "#",
        )

    now = datetime.now(timezone.utc)
    result = await db.execute(
        select(LegacyAd)
        .where(
            LegacyAd.position == ad_type,
            LegacyAd.is_active.is_(True),
            or_(LegacyAd.start_date.is_(None), LegacyAd.start_date <= now),
            or_(LegacyAd.end_date.is_(None), LegacyAd.end_date >= now),
        )
        .order_by(LegacyAd.priority.desc(), LegacyAd.created_at.desc())
        .limit(1)
    )
    legacy = result.scalar_one_or_none()
    if not legacy:
        raise HTTPException(status_code=404, detail="No ad for this placement")

    served = ServedAdResponse(
        id=legacy.id,
        source="legacy",
        ad_type=ad_type,
        title=legacy.title,
        image_url=legacy.image_url,
        link_url=legacy.link_url,
    )
    await run_non_critical("legacy ad view count", _bump_counter, db, legacy.id, "view_count")
    return served


@router.post("/legacy/{ad_id}/click", response_model=MessageResponse)
async def record_click(ad_id: UUID, db: AsyncSession = Depends(get_db)):
    """Click tracking. Always acknowledged; counting is best-effort."""
    await run_non_critical("legacy ad click count", _bump_counter, db, ad_id, "click_count")
    return MessageResponse(message="ok")


@router.get("/availability", response_model=AvailabilityResponse)
async def availability(
    date_from: date,
    date_to: date,
    ad_type: AdType = Query(AdType.TOP),
    db: AsyncSession = Depends(get_db),
):
    """Dates in [date_from, date_to] that are already sold for the placement."""
    try:
        dates = expand_date_range(date_from, date_to)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if len(dates) > MAX_AVAILABILITY_DAYS:
        raise HTTPException(status_code=400, detail=f"Range too large (max {MAX_AVAILABILITY_DAYS} days)")

    return AvailabilityResponse(
        ad_type=ad_type,
        date_from=date_from,
        date_to=date_to,
        taken=await taken_dates(db, ad_type, dates),
    )


# ── Admin: Legacy Ads ─────────────────────────────────────────

@admin_router.get("", response_model=list[LegacyAdResponse])
async def list_legacy_ads(
    position: Optional[AdType] = None,
    admin: TokenData = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    query = select(LegacyAd).order_by(LegacyAd.priority.desc(), LegacyAd.created_at.desc())
    if position:
        query = query.where(LegacyAd.position == position)
    result = await db.execute(query)
    return result.scalars().all()


@admin_router.post("", response_model=LegacyAdResponse, status_code=201)
async def create_legacy_ad(
    data: LegacyAdCreate,
    admin: TokenData = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    ad = LegacyAd(**data.model_dump())
    db.add(ad)
    await db.commit()
    logger.info(f"Legacy ad {ad.id} created by {admin.subject}")
    return ad


@admin_router.patch("/{ad_id}", response_model=LegacyAdResponse)
async def update_legacy_ad(
    ad_id: UUID,
    data: LegacyAdUpdate,
    admin: TokenData = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    ad = await _get_legacy_or_404(ad_id, db)
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(ad, field, value)

    start, end = _as_utc(ad.start_date), _as_utc(ad.end_date)
    if start and end and end < start:
        raise HTTPException(status_code=400, detail="end_date must not be before start_date")

    await db.commit()
    return ad


@admin_router.delete("/{ad_id}", response_model=MessageResponse)
async def delete_legacy_ad(
    ad_id: UUID,
    admin: TokenData = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    ad = await _get_legacy_or_404(ad_id, db)
    await db.delete(ad)
    await db.commit()
    return MessageResponse(message="Ad deleted")
