"""Booking numbers: ``YYYYMMDD`` of the pickup date followed by a 4-digit daily sequence.

Example: ``202510220001`` is the first booking picked up on 22 October 2025.
"""

import re
from datetime import date

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from rentaldesk.errors import AppError
from rentaldesk.extensions import db
from rentaldesk.models import Booking, BookingSequence
from rentaldesk.models.base import utcnow

BOOKING_NUMBER_RE = re.compile(r"^\d{4}(0[1-9]|1[0-2])(0[1-9]|[12]\d|3[01])\d{4}$")
MAX_DAILY_SEQUENCE = 9999


class BookingNumberService:
    @staticmethod
    def date_prefix(for_date=None):
        target = for_date or utcnow()
        return f"{target.year:04d}{target.month:02d}{target.day:02d}"

    @staticmethod
    def _highest_existing_sequence(prefix):
        last_number = (
            db.session.query(Booking.booking_number)
            .filter(Booking.booking_number.like(f"{prefix}%"))
            .order_by(Booking.booking_number.desc())
            .limit(1)
            .scalar()
        )
        if last_number and BookingNumberService.validate_booking_number(last_number):
            return int(last_number[-4:])
        return 0

    @staticmethod
    def _increment(prefix):
        result = db.session.execute(
            update(BookingSequence)
            .where(BookingSequence.date_prefix == prefix)
            .values(last_value=BookingSequence.last_value + 1)
            .execution_options(synchronize_session=False)
        )
        if not result.rowcount:
            return None
        value = db.session.query(BookingSequence.last_value).filter_by(date_prefix=prefix).scalar()

        # Bookings imported with explicit numbers can be ahead of the counter.
        highest = BookingNumberService._highest_existing_sequence(prefix)
        if value <= highest:
            value = highest + 1
            db.session.execute(
                update(BookingSequence)
                .where(BookingSequence.date_prefix == prefix)
                .values(last_value=value)
                .execution_options(synchronize_session=False)
            )
        return value

    @staticmethod
    def next_booking_number(for_date=None, max_attempts=3):
        """Allocate the next booking number for ``for_date`` (today when omitted).

        The per-day counter row is incremented with a single UPDATE, which the
        database serializes. The first allocation of a day inserts the row,
        seeded from the highest booking number already stored for that day; a
        concurrent insert of the same row is retried as an increment.
        """
        prefix = BookingNumberService.date_prefix(for_date)
        value = None
        for _attempt in range(max_attempts):
            value = BookingNumberService._increment(prefix)
            if value is not None:
                break
            seed = BookingNumberService._highest_existing_sequence(prefix) + 1
            try:
                with db.session.begin_nested():
                    db.session.add(BookingSequence(date_prefix=prefix, last_value=seed))
                value = seed
                break
            except IntegrityError:
                current_app.logger.warning("Booking sequence %s created concurrently, retrying.", prefix)

        if value is None:
            raise AppError("Could not allocate a booking number. Please retry.", 503)
        if value > MAX_DAILY_SEQUENCE:
            raise AppError(f"Daily booking limit reached for {prefix}.", 409)
        return f"{prefix}{value:04d}"

    @staticmethod
    def validate_booking_number(booking_number):
        if not isinstance(booking_number, str):
            return False
        return BOOKING_NUMBER_RE.fullmatch(booking_number) is not None

    @staticmethod
    def parse_booking_number(booking_number):
        if not BookingNumberService.validate_booking_number(booking_number):
            return None
        year = int(booking_number[0:4])
        month = int(booking_number[4:6])
        day = int(booking_number[6:8])
        try:
            booking_date = date(year, month, day)
        except ValueError:
            return None
        return {
            "year": year,
            "month": month,
            "day": day,
            "sequence": int(booking_number[8:12]),
            "date": booking_date,
        }

    @staticmethod
    def booking_file_path(booking_number, file_type):
        return f"bookings/{booking_number}/{file_type}/"
