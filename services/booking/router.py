"""
services/booking/router.py
Admin management of sold ad slots.
States: PAID → APPROVED
        PAID | APPROVED → REFUND_PENDING → REJECTED → (deleted)
Bookings are only ever created by the payment webhook.
"""

import logging
from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from config.database import get_db
from services.booking.refunds import RejectError, reject_with_refund
from services.booking.slots import find_conflict, load_active_bookings
from services.payment.client import (
    LemonSqueezyClient,
    PaymentConfigError,
    PaymentProviderError,
    get_payment_client,
)
from shared.middleware.auth import TokenData, require_admin
from shared.models.models import AdBooking, AdType, BookingStatus
from shared.schemas.schemas import (
    BookingRejectRequest,
    BookingResponse,
    BookingUpdateRequest,
    MessageResponse,
    PaginatedResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin/bookings", tags=["Admin Bookings"])


# ── Helpers ───────────────────────────────────────────────────

async def _get_booking_or_404(booking_id: UUID, db: AsyncSession) -> AdBooking:
    result = await db.execute(select(AdBooking).where(AdBooking.id == booking_id))
    booking = result.scalar_one_or_none()
    if not booking:
        raise HTTPException(status_code=404, detail="Booking not found")
    return booking


# ── Listing ───────────────────────────────────────────────────

@router.get("", response_model=PaginatedResponse)
async def list_bookings(
    ad_type: Optional[AdType] = None,
    status: Optional[BookingStatus] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    admin: TokenData = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Bookings ordered by date, optionally filtered by ad type, status and date window."""
    query = select(AdBooking)
    if ad_type:
        query = query.where(AdBooking.ad_type == ad_type)
    if status:
        query = query.where(AdBooking.status == status)
    if date_from:
        query = query.where(AdBooking.selected_date >= date_from)
    if date_to:
        query = query.where(AdBooking.selected_date <= date_to)

    total = await db.scalar(select(func.count()).select_from(query.subquery()))
    result = await db.execute(
        query.order_by(AdBooking.selected_date.asc(), AdBooking.created_at.asc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    bookings = result.scalars().all()

    return PaginatedResponse(
        items=[BookingResponse.model_validate(b) for b in bookings],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=-(-total // page_size),  # ceiling division
    )


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(
    booking_id: UUID,
    admin: TokenData = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    return await _get_booking_or_404(booking_id, db)


# ── Edit (date move / creative) ───────────────────────────────

@router.patch("/{booking_id}", response_model=BookingResponse)
async def update_booking(
    booking_id: UUID,
    data: BookingUpdateRequest,
    admin: TokenData = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """
    Replace the creative and/or move the booking to another date.
    A move is refused when another slot-holding booking of the same
    ad type already sits on the target date.
    """
    booking = await _get_booking_or_404(booking_id, db)

    if data.selected_date and data.selected_date != booking.selected_date:
        if booking.holds_slot:
            others = await load_active_bookings(db, booking.ad_type)
            conflict = find_conflict(others, booking.ad_type, data.selected_date, exclude_id=booking.id)
            if conflict:
                raise HTTPException(
                    status_code=409,
                    detail=f"{data.selected_date.isoformat()} is already booked for '{booking.ad_type.value}'",
                )
        booking.selected_date = data.selected_date

    if data.image_url is not None:
        booking.image_url = data.image_url
    if data.link_url is not None:
        booking.link_url = data.link_url

    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise HTTPException(status_code=409, detail="Slot was booked concurrently, please reload")

    logger.info(f"Booking {booking.id} updated by {admin.subject}")
    return booking


# ── Approve ───────────────────────────────────────────────────

@router.post("/{booking_id}/approve", response_model=BookingResponse)
async def approve_booking(
    booking_id: UUID,
    admin: TokenData = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Status: PAID → APPROVED. The ad goes live on its date."""
    booking = await _get_booking_or_404(booking_id, db)

    if booking.status != BookingStatus.PAID:
        raise HTTPException(
            status_code=400,
            detail=f"Cannot approve booking in '{booking.status.value}' state",
        )

    booking.status = BookingStatus.APPROVED
    await db.commit()
    logger.info(f"Booking {booking.id} approved by {admin.subject}")
    return booking


# ── Reject (refund, then status) ──────────────────────────────

@router.post("/{booking_id}/reject", response_model=BookingResponse)
async def reject_booking(
    booking_id: UUID,
    data: Optional[BookingRejectRequest] = None,
    admin: TokenData = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    payments: LemonSqueezyClient = Depends(get_payment_client),
):
    """
    Refund the order at Lemon Squeezy, then mark the booking REJECTED.
    If the refund fails the booking keeps its previous status.
    """
    booking = await _get_booking_or_404(booking_id, db)

    try:
        return await reject_with_refund(
            db, booking, payments, data.order_id if data else None
        )
    except RejectError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PaymentConfigError:
        raise HTTPException(status_code=500, detail="Server configuration missing")
    except PaymentProviderError as e:
        raise HTTPException(status_code=502, detail=f"Refund failed: {e}")


# ── Delete ────────────────────────────────────────────────────

@router.delete("/{booking_id}", response_model=MessageResponse)
async def delete_booking(
    booking_id: UUID,
    admin: TokenData = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Permanently remove a REJECTED booking, freeing its slot."""
    booking = await _get_booking_or_404(booking_id, db)

    if booking.status != BookingStatus.REJECTED:
        raise HTTPException(
            status_code=400,
            detail=f"Only rejected bookings can be deleted (current: '{booking.status.value}')",
        )

    await db.delete(booking)
    await db.commit()
    logger.info(f"Booking {booking_id} deleted by {admin.subject}")
    return MessageResponse(message="Booking deleted")
