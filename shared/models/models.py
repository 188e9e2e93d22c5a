"""
shared/models/models.py
SQLAlchemy ORM models for the ad booking back-office.
UUID primary keys throughout; enums stored as their lowercase values.
"""

import uuid
from datetime import date, datetime, timezone
from enum import Enum as PyEnum
from typing import Optional

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Enum,
    Index,
    Integer,
    String,
    Text,
    Uuid,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from config.database import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _enum_column(enum_cls):
    """Store enum values ("paid"), not member names ("PAID")."""
    return Enum(
        enum_cls,
        values_callable=lambda members: [m.value for m in members],
        native_enum=False,
        length=20,
    )


# ── Enumerations ──────────────────────────────────────────────

class AdType(str, PyEnum):
    TOP = "top"
    BOTTOM = "bottom"
    NEWSLETTER = "newsletter"


class BookingStatus(str, PyEnum):
    PENDING = "pending"
    PAID = "paid"
    APPROVED = "approved"
    REFUND_PENDING = "refund_pending"   # Refund requested, provider not yet confirmed
    REJECTED = "rejected"


# Statuses that hold a slot. Everything except REJECTED.
ACTIVE_STATUSES = tuple(s for s in BookingStatus if s != BookingStatus.REJECTED)


# ── Mixins ────────────────────────────────────────────────────

class TimestampMixin:
    """Adds created_at and updated_at to any model."""
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=_utcnow,
        server_default=func.now(),
        onupdate=_utcnow,
        nullable=False,
    )


# ── Models ────────────────────────────────────────────────────

class AdBooking(TimestampMixin, Base):
    """
    One sold slot: a single calendar date for one placement.
    Created only by the payment webhook, with status PAID.
    """
    __tablename__ = "ad_bookings"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    selected_date: Mapped[date] = mapped_column(Date, nullable=False)
    ad_type: Mapped[AdType] = mapped_column(
        _enum_column(AdType), nullable=False, default=AdType.TOP
    )
    status: Mapped[BookingStatus] = mapped_column(
        _enum_column(BookingStatus), nullable=False, default=BookingStatus.PENDING
    )

    buyer_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    buyer_contact: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    image_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    link_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    order_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    # Refund saga bookkeeping
    previous_status: Mapped[Optional[BookingStatus]] = mapped_column(
        _enum_column(BookingStatus), nullable=True
    )
    refund_requested_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        # At most one slot-holding booking per (date, ad_type).
        Index(
            "uq_ad_bookings_active_slot",
            "selected_date",
            "ad_type",
            unique=True,
            postgresql_where=text("status <> 'rejected'"),
            sqlite_where=text("status <> 'rejected'"),
        ),
        Index("ix_ad_bookings_status", "status"),
        Index("ix_ad_bookings_order_id", "order_id"),
    )

    @property
    def holds_slot(self) -> bool:
        return self.status != BookingStatus.REJECTED

    def __repr__(self) -> str:
        return f"<AdBooking {self.selected_date} {self.ad_type} ({self.status})>"


class LegacyAd(TimestampMixin, Base):
    """Always-on fallback creative shown when no approved booking covers today."""
    __tablename__ = "legacy_ads"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    position: Mapped[AdType] = mapped_column(_enum_column(AdType), nullable=False)
    image_url: Mapped[str] = mapped_column(Text, nullable=False)
    link_url: Mapped[str] = mapped_column(Text, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    priority: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    start_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    end_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    view_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    click_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    __table_args__ = (
        Index("ix_legacy_ads_position_active", "position", "is_active"),
    )

    def __repr__(self) -> str:
        return f"<LegacyAd {self.title} ({self.position})>"
