"""
tests/test_slots.py
Tests for the slot helpers and the partial unique index behind them.
"""

import uuid
from datetime import date

import pytest
from sqlalchemy.exc import IntegrityError

import services.booking.slots as slots
from services.booking.slots import (
    CONFLICT,
    CREATED,
    TAKEN,
    claim_slot,
    expand_date_range,
    find_conflict,
    parse_date_list,
    taken_dates,
)
from shared.models.models import AdBooking, AdType, BookingStatus


def _booking(day: int, ad_type=AdType.TOP, status=BookingStatus.PAID) -> AdBooking:
    return AdBooking(
        id=uuid.uuid4(), selected_date=date(2025, 3, day), ad_type=ad_type, status=status
    )


# ── Pure helpers ───────────────────────────────────────────────────────────────

def test_expand_date_range_is_inclusive():
    assert expand_date_range(date(2025, 2, 27), date(2025, 3, 2)) == [
        date(2025, 2, 27), date(2025, 2, 28), date(2025, 3, 1), date(2025, 3, 2),
    ]
    assert expand_date_range(date(2025, 3, 1), date(2025, 3, 1)) == [date(2025, 3, 1)]


def test_expand_date_range_rejects_inverted_range():
    with pytest.raises(ValueError):
        expand_date_range(date(2025, 3, 2), date(2025, 3, 1))


def test_parse_date_list_keeps_order_and_reports_bad_tokens():
    dates, invalid = parse_date_list(" 2025-03-02,2025-03-01 ,, nope,2025-03-02,2025-13-40")
    assert dates == [date(2025, 3, 2), date(2025, 3, 1)]
    assert invalid == ["nope", "2025-13-40"]


def test_parse_date_list_accepts_timestamps():
    dates, invalid = parse_date_list("2025-03-01T00:00:00.000Z")
    assert dates == [date(2025, 3, 1)]
    assert invalid == []


def test_parse_date_list_empty():
    assert parse_date_list("") == ([], [])
    assert parse_date_list(None) == ([], [])


def test_parse_date_list_reports_non_string_value_whole():
    assert parse_date_list(["2025-03-01"]) == ([], ["['2025-03-01']"])
    assert parse_date_list(20250301) == ([], ["20250301"])


def test_find_conflict_ignores_rejected_and_other_types():
    bookings = [
        _booking(1, status=BookingStatus.REJECTED),
        _booking(1, ad_type=AdType.BOTTOM),
        _booking(2),
    ]
    assert find_conflict(bookings, AdType.TOP, date(2025, 3, 1)) is None
    assert find_conflict(bookings, AdType.TOP, date(2025, 3, 2)) is bookings[2]


def test_find_conflict_excludes_self():
    me = _booking(5, status=BookingStatus.APPROVED)
    assert find_conflict([me], AdType.TOP, date(2025, 3, 5), exclude_id=me.id) is None


@pytest.mark.parametrize("status", [
    BookingStatus.PENDING,
    BookingStatus.PAID,
    BookingStatus.APPROVED,
    BookingStatus.REFUND_PENDING,
])
def test_every_non_rejected_status_holds_the_slot(status):
    holder = _booking(9, status=status)
    assert holder.holds_slot
    assert find_conflict([holder], AdType.TOP, date(2025, 3, 9)) is holder


# ── Database ───────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_unique_index_blocks_second_active_booking(db, make_booking):
    await make_booking(date(2025, 3, 1), AdType.TOP, BookingStatus.APPROVED)

    db.add(AdBooking(selected_date=date(2025, 3, 1), ad_type=AdType.TOP, status=BookingStatus.PAID))
    with pytest.raises(IntegrityError):
        await db.commit()
    await db.rollback()


@pytest.mark.asyncio
async def test_unique_index_allows_rejected_duplicates(db, make_booking):
    await make_booking(date(2025, 3, 1), AdType.TOP, BookingStatus.REJECTED)
    await make_booking(date(2025, 3, 1), AdType.TOP, BookingStatus.REJECTED)
    await make_booking(date(2025, 3, 1), AdType.TOP, BookingStatus.PAID)

    assert await taken_dates(db, AdType.TOP, [date(2025, 3, 1)]) == [date(2025, 3, 1)]


@pytest.mark.asyncio
async def test_taken_dates_filters_by_type_and_status(db, make_booking):
    await make_booking(date(2025, 3, 1), AdType.TOP, BookingStatus.PAID)
    await make_booking(date(2025, 3, 2), AdType.BOTTOM, BookingStatus.APPROVED)
    await make_booking(date(2025, 3, 3), AdType.TOP, BookingStatus.REJECTED)

    wanted = [date(2025, 3, 1), date(2025, 3, 2), date(2025, 3, 3)]
    assert await taken_dates(db, AdType.TOP, wanted) == [date(2025, 3, 1)]
    assert await taken_dates(db, AdType.BOTTOM, wanted) == [date(2025, 3, 2)]
    assert await taken_dates(db, AdType.NEWSLETTER, []) == []


@pytest.mark.asyncio
async def test_claim_slot_replaces_rejected_booking(db, make_booking, session_factory):
    old = await make_booking(date(2025, 4, 1), AdType.NEWSLETTER, BookingStatus.REJECTED)

    outcome = await claim_slot(
        db, date(2025, 4, 1), AdType.NEWSLETTER,
        buyer_name="New Buyer", buyer_contact=None,
        image_url="https://cdn.example.com/n.png", link_url=None, order_id="77",
    )
    assert outcome == CREATED

    async with session_factory() as fresh:
        assert await fresh.get(AdBooking, old.id) is None
        rows = (await fresh.execute(
            AdBooking.__table__.select().where(AdBooking.selected_date == date(2025, 4, 1))
        )).all()
    assert len(rows) == 1
    assert rows[0].status == BookingStatus.PAID.value
    assert rows[0].order_id == "77"


@pytest.mark.asyncio
async def test_claim_slot_leaves_existing_holder_alone(db, make_booking):
    await make_booking(date(2025, 4, 2), AdType.TOP, BookingStatus.REFUND_PENDING)

    outcome = await claim_slot(
        db, date(2025, 4, 2), AdType.TOP,
        buyer_name=None, buyer_contact=None, image_url=None, link_url=None, order_id="78",
    )
    assert outcome == TAKEN


@pytest.mark.asyncio
async def test_claim_slot_lost_race_reports_conflict(db, make_booking, monkeypatch):
    """The pre-insert read misses the holder; the unique index still refuses the row."""
    holder = await make_booking(date(2025, 4, 3), AdType.TOP, BookingStatus.APPROVED, order_id="first")
    monkeypatch.setattr(slots, "find_conflict", lambda *args, **kwargs: None)

    outcome = await claim_slot(
        db, date(2025, 4, 3), AdType.TOP,
        buyer_name=None, buyer_contact=None, image_url=None, link_url=None, order_id="second",
    )
    assert outcome == CONFLICT

    # Session was rolled back and is usable for the next date
    assert await taken_dates(db, AdType.TOP, [date(2025, 4, 3)]) == [date(2025, 4, 3)]
    assert (await db.get(AdBooking, holder.id)).order_id == "first"
    outcome = await claim_slot(
        db, date(2025, 4, 4), AdType.TOP,
        buyer_name=None, buyer_contact=None, image_url=None, link_url=None, order_id="second",
    )
    assert outcome == CREATED
