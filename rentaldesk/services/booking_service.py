from decimal import Decimal

from flask import current_app
from sqlalchemy import or_

from rentaldesk.errors import AppError, IncompleteInspectionError
from rentaldesk.extensions import db
from rentaldesk.models import Booking, BookingLineItem, BookingVehicle, Customer, Vehicle
from rentaldesk.models.base import utcnow
from rentaldesk.services.booking_number_service import BookingNumberService
from rentaldesk.services.customer_service import CustomerService
from rentaldesk.services.inspection_service import InspectionService
from rentaldesk.services.pricing_service import PricingService
from rentaldesk.utils import CENT, as_utc, clean_text, parse_datetime, parse_decimal, parse_int

BOOKING_TRANSITIONS = {
    "pending": {"confirmed", "cancelled"},
    "confirmed": {"completed", "cancelled"},
    "completed": set(),
    "cancelled": set(),
}
ACTIVE_STATUSES = ("pending", "confirmed")
LINE_ITEM_KINDS = {"extra", "upgrade", "experience"}


class BookingService:
    @staticmethod
    def _has_conflict(vehicle_id, pickup_at, return_at, exclude_booking_id=None):
        query = (
            BookingVehicle.query.join(Booking, Booking.id == BookingVehicle.booking_id)
            .filter(BookingVehicle.vehicle_id == vehicle_id)
            .filter(Booking.status.in_(ACTIVE_STATUSES))
            .filter(Booking.pickup_at < return_at, Booking.return_at > pickup_at)
        )
        if exclude_booking_id is not None:
            query = query.filter(Booking.id != exclude_booking_id)
        return query.first() is not None

    @staticmethod
    def _parse_vehicle_requests(raw):
        """Accept ``[1, 2]`` or ``[{"vehicle_id": 1, "price": "120"}]``."""
        requests = []
        for entry in raw or []:
            if isinstance(entry, dict):
                vehicle_id = entry.get("vehicle_id", entry.get("id"))
                price = entry.get("price")
            else:
                vehicle_id, price = entry, None
            vehicle_id = parse_int(vehicle_id, "Vehicle id", minimum=1)
            price = None if price in (None, "") else parse_decimal(price, "Vehicle price", minimum=0)
            requests.append((vehicle_id, price))
        if not requests:
            raise AppError("At least one vehicle is required.", 400)
        ids = [vehicle_id for vehicle_id, _ in requests]
        if len(ids) != len(set(ids)):
            raise AppError("A vehicle can only be added once per booking.", 400)
        return requests

    @staticmethod
    def _load_bookable_vehicles(requests, pickup_at, return_at, exclude_booking_id=None):
        ids = [vehicle_id for vehicle_id, _ in requests]
        vehicles = {v.id: v for v in Vehicle.query.filter(Vehicle.id.in_(ids)).all()}
        missing = [vehicle_id for vehicle_id in ids if vehicle_id not in vehicles]
        if missing:
            raise AppError(f"Vehicles not found: {', '.join(str(v) for v in missing)}.", 404)

        for vehicle in vehicles.values():
            if vehicle.status != "available":
                raise AppError(f"Vehicle {vehicle.registration_number} is not available.", 409)
            if BookingService._has_conflict(vehicle.id, pickup_at, return_at, exclude_booking_id):
                raise AppError(
                    f"Vehicle {vehicle.registration_number} is already booked for the selected dates.", 409
                )
        return vehicles

    @staticmethod
    def _assign(booking, requests, vehicles):
        warnings = []
        for vehicle_id, price in requests:
            vehicle = vehicles[vehicle_id]
            if price is None:
                try:
                    price = PricingService.compute_vehicle_price(
                        vehicle.pricing_group, booking.pickup_at, booking.return_at
                    )
                except AppError as exc:
                    current_app.logger.warning(
                        "No price computed for vehicle %s: %s", vehicle.registration_number, exc.message
                    )
                    warnings.append(
                        {"vehicle_id": vehicle.id, "registration_number": vehicle.registration_number, "error": exc.message}
                    )
                    price = Decimal("0")
            booking.vehicles.append(BookingVehicle(vehicle=vehicle, vehicle_price=price.quantize(CENT)))
        return warnings

    @staticmethod
    def _parse_line_items(raw):
        items = []
        for entry in raw or []:
            kind = (clean_text(entry.get("kind")) or "extra").lower()
            if kind not in LINE_ITEM_KINDS:
                raise AppError("Line item kind must be extra, upgrade or experience.", 400)
            name = clean_text(entry.get("name"))
            if not name:
                raise AppError("Line item name is required.", 400)
            quantity = parse_int(entry.get("quantity"), "Quantity", default=1, minimum=1)
            unit_price = parse_decimal(entry.get("unit_price"), "Unit price", default=0, minimum=0).quantize(CENT)
            items.append(
                BookingLineItem(
                    kind=kind,
                    name=name,
                    quantity=quantity,
                    unit_price=unit_price,
                    total_price=(unit_price * quantity).quantize(CENT),
                )
            )
        return items

    @staticmethod
    def _parse_discount(payload):
        discount_type = clean_text(payload.get("discount_type"))
        discount_value = parse_decimal(payload.get("discount_value"), "Discount", default=0, minimum=0)
        if discount_type is None:
            return None, Decimal("0")
        discount_type = discount_type.lower()
        if discount_type not in PricingService.DISCOUNT_TYPES:
            raise AppError("Discount type must be 'amount' or 'percentage'.", 400)
        if discount_type == "percentage" and discount_value > 100:
            raise AppError("Percentage discount cannot exceed 100.", 400)
        return discount_type, discount_value

    @staticmethod
    def _resolve_customer(payload):
        if payload.get("customer_id") not in (None, ""):
            return CustomerService.get_customer(parse_int(payload.get("customer_id"), "Customer id", minimum=1))
        quick = payload.get("customer") or {}
        if quick:
            return CustomerService.find_or_create_quick(quick.get("name"), quick.get("phone"), quick.get("email"))
        raise AppError("A customer is required.", 400)

    @staticmethod
    def create_booking(payload):
        """Create a booking with its vehicles, line items and allocated number.

        Returns ``(booking, warnings)``; warnings list vehicles whose price
        could not be computed and were booked at zero.
        """
        pickup_at = parse_datetime(payload.get("pickup_at"), "Pickup date")
        return_at = parse_datetime(payload.get("return_at"), "Return date")
        if return_at <= pickup_at:
            raise AppError("Return date must be after pickup date.", 400)

        status = (clean_text(payload.get("status")) or "confirmed").lower()
        if status not in ACTIVE_STATUSES:
            raise AppError("New bookings must be pending or confirmed.", 400)

        requests = BookingService._parse_vehicle_requests(payload.get("vehicle_ids") or payload.get("vehicles"))
        vehicles = BookingService._load_bookable_vehicles(requests, pickup_at, return_at)
        discount_type, discount_value = BookingService._parse_discount(payload)
        line_items = BookingService._parse_line_items(payload.get("line_items"))
        customer = BookingService._resolve_customer(payload)

        booking = Booking(
            booking_number=BookingNumberService.next_booking_number(pickup_at),
            customer=customer,
            status=status,
            pickup_at=pickup_at,
            return_at=return_at,
            discount_type=discount_type,
            discount_value=discount_value,
            notes=clean_text(payload.get("notes")),
        )
        booking.line_items.extend(line_items)
        warnings = BookingService._assign(booking, requests, vehicles)

        if payload.get("total_price") not in (None, ""):
            booking.total_price = parse_decimal(payload.get("total_price"), "Total price", minimum=0).quantize(CENT)
            booking.price_overridden = True
        else:
            booking.total_price = PricingService.booking_total(booking)

        db.session.add(booking)
        db.session.commit()
        current_app.logger.info(
            "Booking %s created with %s vehicle(s).", booking.booking_number, len(booking.vehicles)
        )
        return booking, warnings

    @staticmethod
    def _ensure_editable(booking):
        if booking.status not in ACTIVE_STATUSES:
            raise AppError(f"Booking {booking.booking_number} is {booking.status} and can no longer be changed.", 409)

    @staticmethod
    def add_vehicles(booking, raw_vehicles):
        BookingService._ensure_editable(booking)
        requests = BookingService._parse_vehicle_requests(raw_vehicles)
        assigned = {a.vehicle_id for a in booking.vehicles}
        duplicates = [vehicle_id for vehicle_id, _ in requests if vehicle_id in assigned]
        if duplicates:
            raise AppError("Vehicle is already part of this booking.", 409)

        vehicles = BookingService._load_bookable_vehicles(
            requests, as_utc(booking.pickup_at), as_utc(booking.return_at), exclude_booking_id=booking.id
        )
        warnings = BookingService._assign(booking, requests, vehicles)
        if not booking.price_overridden:
            booking.total_price = PricingService.booking_total(booking)
        db.session.commit()
        return warnings

    @staticmethod
    def remove_vehicle(booking, vehicle_id):
        BookingService._ensure_editable(booking)
        assignment = InspectionService.assignment_for(booking, vehicle_id)
        if len(booking.vehicles) == 1:
            raise AppError("A booking must keep at least one vehicle.", 400)
        if booking.inspections.filter_by(booking_vehicle_id=assignment.id).first():
            raise AppError("Vehicle already has recorded inspections on this booking.", 409)

        booking.vehicles.remove(assignment)
        if not booking.price_overridden:
            booking.total_price = PricingService.booking_total(booking)
        db.session.commit()
        return booking

    @staticmethod
    def recalculate(booking):
        """Re-price every vehicle from its pricing group and drop any manual override."""
        booking.price_overridden = False
        warnings = PricingService.price_booking(booking)
        db.session.commit()
        return warnings

    @staticmethod
    def override_price(booking, total_price):
        booking.total_price = parse_decimal(total_price, "Total price", minimum=0).quantize(CENT)
        booking.price_overridden = True
        db.session.commit()
        current_app.logger.info("Booking %s total overridden to %s.", booking.booking_number, booking.total_price)
        return booking

    @staticmethod
    def update_discount(booking, payload):
        BookingService._ensure_editable(booking)
        booking.discount_type, booking.discount_value = BookingService._parse_discount(payload)
        if not booking.price_overridden:
            booking.total_price = PricingService.booking_total(booking)
        db.session.commit()
        return booking

    @staticmethod
    def transition_booking(booking, new_status):
        current = (booking.status or "").lower()
        new_status = (new_status or "").strip().lower()
        if new_status not in BOOKING_TRANSITIONS.get(current, set()):
            raise AppError(f"Invalid status transition from {current} to {new_status}.", 400)

        now = utcnow()
        if new_status == "completed":
            unrecorded = InspectionService.unrecorded_vehicles(booking, "return")
            if unrecorded:
                raise IncompleteInspectionError("return", unrecorded)
            booking.completed_at = now
        elif new_status == "cancelled":
            booking.cancelled_at = now

        booking.status = new_status
        db.session.commit()
        current_app.logger.info("Booking %s moved from %s to %s.", booking.booking_number, current, new_status)
        return booking

    @staticmethod
    def get_booking(booking_id):
        booking = db.session.get(Booking, booking_id)
        if not booking:
            raise AppError("Booking not found.", 404)
        return booking

    @staticmethod
    def get_by_number(booking_number):
        booking = Booking.query.filter_by(booking_number=booking_number).first()
        if not booking:
            raise AppError("Booking not found.", 404)
        return booking

    @staticmethod
    def list_bookings(status=None, search=None, date_from=None, date_to=None, page=1, per_page=25):
        query = Booking.query.order_by(Booking.pickup_at.desc(), Booking.id.desc())
        if status:
            if status not in BOOKING_TRANSITIONS:
                raise AppError("Invalid booking status.", 400)
            query = query.filter(Booking.status == status)
        if date_from:
            query = query.filter(Booking.return_at >= date_from)
        if date_to:
            query = query.filter(Booking.pickup_at <= date_to)
        term = clean_text(search)
        if term:
            like = f"%{term}%"
            query = query.outerjoin(Customer, Customer.id == Booking.customer_id).filter(
                or_(
                    Booking.booking_number.ilike(like),
                    Customer.first_name.ilike(like),
                    Customer.last_name.ilike(like),
                    Customer.phone.ilike(like),
                )
            )
        return query.paginate(page=page, per_page=per_page, error_out=False)
