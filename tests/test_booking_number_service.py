"""
Tests for per-day booking number allocation and parsing.
"""

from datetime import date, datetime, timezone

import pytest

from rentaldesk.errors import AppError
from rentaldesk.extensions import db
from rentaldesk.models import BookingSequence
from rentaldesk.services import BookingNumberService

DAY = datetime(2025, 10, 22, 12, tzinfo=timezone.utc)


class TestAllocation:
    """Sequential allocation backed by the per-day counter row."""

    def test_first_number_of_the_day(self, app):
        assert BookingNumberService.next_booking_number(DAY) == "202510220001"

    def test_sequential_numbers_differ_by_one(self, app):
        first = BookingNumberService.next_booking_number(DAY)
        second = BookingNumberService.next_booking_number(DAY)
        assert first[:8] == second[:8]
        assert int(second[-4:]) - int(first[-4:]) == 1

    def test_days_have_independent_counters(self, app):
        BookingNumberService.next_booking_number(DAY)
        other = BookingNumberService.next_booking_number(datetime(2025, 10, 23, tzinfo=timezone.utc))
        assert other == "202510230001"

    def test_seeded_from_existing_bookings(self, app, make_vehicle, make_booking):
        booking = make_booking([make_vehicle("AAA111")], pickup=DAY, return_at=DAY.replace(day=25))
        booking.booking_number = "202510220041"
        db.session.query(BookingSequence).delete()
        db.session.commit()

        assert BookingNumberService.next_booking_number(DAY) == "202510220042"

    def test_counter_behind_existing_numbers_is_reconciled(self, app, make_vehicle, make_booking):
        booking = make_booking([make_vehicle("AAA111")], pickup=DAY, return_at=DAY.replace(day=25))
        booking.booking_number = "202510220007"
        db.session.commit()

        assert BookingNumberService.next_booking_number(DAY) == "202510220008"
        assert db.session.get(BookingSequence, "20251022").last_value == 8

    def test_daily_limit(self, app):
        db.session.add(BookingSequence(date_prefix="20251022", last_value=9999))
        db.session.commit()
        with pytest.raises(AppError) as exc:
            BookingNumberService.next_booking_number(DAY)
        assert exc.value.status_code == 409


class TestValidation:
    """Shape and calendar checks on booking numbers."""

    @pytest.mark.parametrize("value", ["202510220001", "202402290123", "209912319999"])
    def test_valid_numbers(self, value):
        assert BookingNumberService.validate_booking_number(value)

    @pytest.mark.parametrize("value", ["202513320001", "20251022001", "2025102200011", "20251022ABCD", "", None, 202510220001])
    def test_invalid_numbers(self, value):
        assert not BookingNumberService.validate_booking_number(value)

    def test_parse(self):
        parsed = BookingNumberService.parse_booking_number("202510220001")
        assert parsed == {"year": 2025, "month": 10, "day": 22, "sequence": 1, "date": date(2025, 10, 22)}

    def test_parse_rejects_impossible_date(self):
        assert BookingNumberService.validate_booking_number("202502310001")
        assert BookingNumberService.parse_booking_number("202502310001") is None

    def test_parse_invalid_returns_none(self):
        assert BookingNumberService.parse_booking_number("nope") is None

    def test_file_path(self):
        assert BookingNumberService.booking_file_path("202510220001", "inspections") == "bookings/202510220001/inspections/"
