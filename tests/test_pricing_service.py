"""
Tests for rental day counting, tier selection and booking totals.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace

import pytest

from rentaldesk.errors import PricingError
from rentaldesk.services import PricingService

PICKUP = datetime(2025, 1, 1, 9, tzinfo=timezone.utc)


def group(short="50", medium="40", long_term="30", deposit="200"):
    return SimpleNamespace(
        name="Economy",
        price_1_3_days=Decimal(short),
        price_4_7_days=Decimal(medium),
        price_8_plus_days=Decimal(long_term),
        deposit_amount=Decimal(deposit),
    )


class TestRentalDays:
    """Partial days round up to whole rental days."""

    def test_exact_days(self):
        assert PricingService.rental_days(PICKUP, PICKUP + timedelta(days=4)) == 4

    def test_partial_day_counts_as_full(self):
        assert PricingService.rental_days(PICKUP, PICKUP + timedelta(days=2, minutes=1)) == 3

    def test_one_hour_is_one_day(self):
        assert PricingService.rental_days(PICKUP, PICKUP + timedelta(hours=1)) == 1

    def test_naive_datetimes_are_treated_as_utc(self):
        naive = PICKUP.replace(tzinfo=None)
        assert PricingService.rental_days(naive, PICKUP + timedelta(days=1)) == 1

    @pytest.mark.parametrize("delta", [timedelta(0), timedelta(hours=-3)])
    def test_non_positive_window_fails(self, delta):
        with pytest.raises(PricingError):
            PricingService.rental_days(PICKUP, PICKUP + delta)

    def test_missing_date_fails(self):
        with pytest.raises(PricingError):
            PricingService.rental_days(PICKUP, None)


class TestVehiclePrice:
    """Tier boundaries: up to 3 days, up to 7 days, 8 days and more."""

    @pytest.mark.parametrize(
        "days, expected",
        [(3, Decimal("150.00")), (4, Decimal("160.00")), (7, Decimal("280.00")), (8, Decimal("240.00"))],
    )
    def test_tier_boundaries(self, days, expected):
        price = PricingService.compute_vehicle_price(group(), PICKUP, PICKUP + timedelta(days=days))
        assert price == expected

    def test_four_day_rental(self):
        return_at = datetime(2025, 1, 5, 9, tzinfo=timezone.utc)
        assert PricingService.compute_vehicle_price(group(), PICKUP, return_at) == Decimal("160.00")

    def test_missing_group_fails(self):
        with pytest.raises(PricingError, match="No pricing group"):
            PricingService.compute_vehicle_price(None, PICKUP, PICKUP + timedelta(days=1))

    def test_non_positive_rate_fails(self):
        with pytest.raises(PricingError):
            PricingService.compute_vehicle_price(group(medium="0"), PICKUP, PICKUP + timedelta(days=1))

    def test_quote_includes_deposit_and_rate(self):
        quote = PricingService.quote(group(), PICKUP, PICKUP + timedelta(days=10))
        assert quote["days"] == 10
        assert quote["daily_rate"] == Decimal("30.00")
        assert quote["total"] == Decimal("300.00")
        assert quote["deposit"] == Decimal("200.00")


class TestBookingTotal:
    """Aggregation of vehicle prices, line items and discounts."""

    def test_sum_without_discount(self):
        assert PricingService.compute_booking_total([100, 150]) == Decimal("250.00")

    def test_percentage_discount(self):
        total = PricingService.compute_booking_total([100, 150], discount_type="percentage", discount_value=10)
        assert total == Decimal("225.00")

    def test_amount_discount(self):
        total = PricingService.compute_booking_total([100, 150], [Decimal("20")], "amount", "70")
        assert total == Decimal("200.00")

    def test_discount_never_goes_negative(self):
        assert PricingService.compute_booking_total([100], discount_type="amount", discount_value=500) == Decimal("0.00")

    def test_unknown_discount_type_fails(self):
        with pytest.raises(PricingError):
            PricingService.compute_booking_total([100], discount_type="coupon", discount_value=5)

    def test_zero_discount_ignores_type(self):
        assert PricingService.compute_booking_total([99.999], discount_type="coupon") == Decimal("100.00")


class TestPriceBooking:
    """Re-pricing a stored booking."""

    def test_unpriceable_vehicle_is_reported_not_fatal(self, make_group, make_vehicle, make_booking):
        priced = make_vehicle("AAA111", make_group())
        unpriced = make_vehicle("BBB222")
        booking = make_booking([priced, unpriced])

        warnings = PricingService.price_booking(booking)

        assert [w["registration_number"] for w in warnings] == ["BBB222"]
        assert booking.vehicles[0].vehicle_price == Decimal("160.00")
        assert booking.vehicles[1].vehicle_price == Decimal("100")
        assert booking.total_price == Decimal("260.00")

    def test_override_keeps_total(self, make_group, make_vehicle, make_booking):
        booking = make_booking([make_vehicle("AAA111", make_group())])
        booking.price_overridden = True
        booking.total_price = Decimal("99.00")

        PricingService.price_booking(booking)

        assert booking.total_price == Decimal("99.00")
        assert booking.vehicles[0].vehicle_price == Decimal("160.00")
