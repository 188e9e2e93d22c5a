"""
shared/schemas/schemas.py
All Pydantic v2 request/response schemas for the ad booking service.
"""

import uuid
from datetime import date, datetime, timedelta
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from shared.models.models import AdType, BookingStatus


# ── Base ──────────────────────────────────────────────────────

class BaseSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True, use_enum_values=True)


class PaginatedResponse(BaseSchema):
    items: List[Any]
    total: int
    page: int
    page_size: int
    total_pages: int


class MessageResponse(BaseSchema):
    message: str
    success: bool = True


# ── Auth ──────────────────────────────────────────────────────

class AdminVerifyRequest(BaseSchema):
    password: str = Field(..., min_length=1)


class TokenResponse(BaseSchema):
    access_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds


# ── Checkout ──────────────────────────────────────────────────

class CheckoutRequest(BaseSchema):
    """
    Either an explicit list of dates or an inclusive from/to range.
    After validation `dates` always holds the sorted, de-duplicated set.
    """
    dates: Optional[List[date]] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    image_url: str = Field(..., min_length=1)
    link_url: str = Field(..., min_length=1)
    ad_type: AdType = AdType.TOP

    @field_validator("image_url", "link_url")
    @classmethod
    def strip_required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    @model_validator(mode="after")
    def resolve_dates(self):
        if self.dates:
            resolved = set(self.dates)
        elif self.date_from and self.date_to:
            if self.date_to < self.date_from:
                raise ValueError("date_to must not be before date_from")
            span = (self.date_to - self.date_from).days
            resolved = {self.date_from + timedelta(days=i) for i in range(span + 1)}
        elif self.date_from:
            resolved = {self.date_from}
        else:
            resolved = set()

        if not resolved:
            raise ValueError("At least one date is required")
        self.dates = sorted(resolved)
        return self


class CheckoutResponse(BaseSchema):
    url: str


# ── Webhook ───────────────────────────────────────────────────

class WebhookAck(BaseSchema):
    received: bool = True
    event: Optional[str] = None
    created: List[date] = []
    skipped: List[str] = []


# ── Booking ───────────────────────────────────────────────────

class BookingResponse(BaseSchema):
    id: uuid.UUID
    selected_date: date
    ad_type: AdType
    status: BookingStatus
    buyer_name: Optional[str]
    buyer_contact: Optional[str]
    image_url: Optional[str]
    link_url: Optional[str]
    order_id: Optional[str]
    refund_requested_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class BookingUpdateRequest(BaseSchema):
    """Admin edit: move a booking to another date and/or replace its creative."""
    selected_date: Optional[date] = None
    image_url: Optional[str] = Field(None, min_length=1)
    link_url: Optional[str] = Field(None, min_length=1)


class BookingRejectRequest(BaseSchema):
    order_id: Optional[str] = None


# ── Legacy Ads ────────────────────────────────────────────────

class LegacyAdBase(BaseSchema):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    position: AdType
    image_url: str = Field(..., min_length=1)
    link_url: str = Field(..., min_length=1)
    is_active: bool = True
    priority: int = 0
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class LegacyAdCreate(LegacyAdBase):
    @model_validator(mode="after")
    def check_window(self):
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class LegacyAdUpdate(BaseSchema):
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    position: Optional[AdType] = None
    image_url: Optional[str] = Field(None, min_length=1)
    link_url: Optional[str] = Field(None, min_length=1)
    is_active: Optional[bool] = None
    priority: Optional[int] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class LegacyAdResponse(LegacyAdBase):
    id: uuid.UUID
    view_count: int
    click_count: int
    created_at: datetime


# ── Ad Serving ────────────────────────────────────────────────

class ServedAdResponse(BaseSchema):
    id: uuid.UUID
    source: str  # "booking" | "legacy"
    ad_type: AdType
    title: str
    image_url: Optional[str]
    link_url: str


class AvailabilityResponse(BaseSchema):
    ad_type: AdType
    date_from: date
    date_to: date
    taken: List[date]
