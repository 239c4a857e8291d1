from datetime import timedelta
from decimal import Decimal

from flask import current_app

from rentaldesk.errors import PricingError
from rentaldesk.utils import CENT, as_utc, parse_decimal, to_money

ONE_DAY = timedelta(days=1)


class PricingService:
    DISCOUNT_TYPES = {"amount", "percentage"}

    @staticmethod
    def rental_days(pickup_at, return_at):
        """Whole rental days between pickup and return; any partial day counts as a full day."""
        if pickup_at is None or return_at is None:
            raise PricingError("Pickup and return dates are required.")
        delta = as_utc(return_at) - as_utc(pickup_at)
        if delta <= timedelta(0):
            raise PricingError("Return date must be after pickup date.")
        days, remainder = divmod(delta, ONE_DAY)
        if remainder:
            days += 1
        return days

    @staticmethod
    def tier_rates(pricing_group):
        if pricing_group is None:
            raise PricingError("No pricing group assigned.")
        rates = []
        for raw in (pricing_group.price_1_3_days, pricing_group.price_4_7_days, pricing_group.price_8_plus_days):
            rate = Decimal(str(raw)) if raw is not None else Decimal("0")
            if rate <= 0:
                raise PricingError(f"Pricing group {pricing_group.name} has a non-positive daily rate.")
            rates.append(rate)
        return rates

    @staticmethod
    def tier_rate(pricing_group, days):
        short, medium, long_term = PricingService.tier_rates(pricing_group)
        if days <= 3:
            return short
        if days <= 7:
            return medium
        return long_term

    @staticmethod
    def quote(pricing_group, pickup_at, return_at):
        days = PricingService.rental_days(pickup_at, return_at)
        rate = PricingService.tier_rate(pricing_group, days)
        return {
            "days": days,
            "daily_rate": rate.quantize(CENT),
            "total": (rate * days).quantize(CENT),
            "deposit": to_money(pricing_group.deposit_amount),
            "pricing_group": pricing_group.name,
        }

    @staticmethod
    def compute_vehicle_price(pricing_group, pickup_at, return_at):
        return PricingService.quote(pricing_group, pickup_at, return_at)["total"]

    @staticmethod
    def compute_booking_total(vehicle_prices, line_item_totals=(), discount_type=None, discount_value=0):
        subtotal = sum((Decimal(str(p)) for p in vehicle_prices), Decimal("0"))
        subtotal += sum((Decimal(str(t)) for t in line_item_totals), Decimal("0"))

        discount = parse_decimal(discount_value, "Discount", default=0, minimum=0)
        if not discount_type or discount == 0:
            return subtotal.quantize(CENT)
        if discount_type not in PricingService.DISCOUNT_TYPES:
            raise PricingError("Discount type must be 'amount' or 'percentage'.")

        if discount_type == "percentage":
            total = subtotal - (subtotal * discount / Decimal("100"))
        else:
            total = subtotal - discount
        return max(Decimal("0"), total).quantize(CENT)

    @staticmethod
    def price_booking(booking):
        """Re-price each vehicle of a booking and re-derive its total.

        Vehicles that cannot be priced keep their previous price; the reasons
        are returned as warnings so the caller can surface them. The total is
        left untouched while the booking carries a manual override.
        """
        warnings = []
        for assignment in booking.vehicles:
            vehicle = assignment.vehicle
            try:
                assignment.vehicle_price = PricingService.compute_vehicle_price(
                    vehicle.pricing_group, booking.pickup_at, booking.return_at
                )
            except PricingError as exc:
                current_app.logger.warning(
                    "Pricing skipped for vehicle %s on booking %s: %s",
                    vehicle.registration_number,
                    booking.booking_number,
                    exc.message,
                )
                warnings.append(
                    {
                        "vehicle_id": vehicle.id,
                        "registration_number": vehicle.registration_number,
                        "error": exc.message,
                    }
                )

        if not booking.price_overridden:
            booking.total_price = PricingService.booking_total(booking)
        return warnings

    @staticmethod
    def booking_total(booking):
        return PricingService.compute_booking_total(
            [a.vehicle_price or 0 for a in booking.vehicles],
            [item.total_price or 0 for item in booking.line_items],
            booking.discount_type,
            booking.discount_value or 0,
        )
