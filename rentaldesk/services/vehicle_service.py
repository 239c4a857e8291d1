from sqlalchemy import select

from rentaldesk.errors import AppError
from rentaldesk.extensions import db
from rentaldesk.models import Booking, BookingVehicle, PricingGroup, Vehicle
from rentaldesk.utils import clean_text

ACTIVE_BOOKING_STATUSES = ("pending", "confirmed")


class VehicleService:
    STATUSES = {"available", "maintenance", "inactive"}

    @staticmethod
    def _normalize_registration(value):
        return "".join((clean_text(value) or "").upper().split())

    @staticmethod
    def _resolve_pricing_group(raw_id):
        if raw_id in (None, ""):
            return None
        group = db.session.get(PricingGroup, int(raw_id)) if str(raw_id).isdigit() else None
        if not group:
            raise AppError("Pricing group not found.", 404)
        return group

    @staticmethod
    def create_vehicle(payload):
        registration = VehicleService._normalize_registration(payload.get("registration_number"))
        if not registration:
            raise AppError("Registration number is required.", 400)
        if Vehicle.query.filter_by(registration_number=registration).first():
            raise AppError(f"Vehicle {registration} already exists.", 409)

        status = (clean_text(payload.get("status")) or "available").lower()
        if status not in VehicleService.STATUSES:
            raise AppError("Invalid vehicle status.", 400)

        vehicle = Vehicle(
            registration_number=registration,
            make=clean_text(payload.get("make")) or "",
            model=clean_text(payload.get("model")) or "",
            status=status,
            pricing_group=VehicleService._resolve_pricing_group(payload.get("pricing_group_id")),
        )
        db.session.add(vehicle)
        db.session.commit()
        return vehicle

    @staticmethod
    def update_vehicle(vehicle, payload):
        if "registration_number" in payload:
            registration = VehicleService._normalize_registration(payload.get("registration_number"))
            if not registration:
                raise AppError("Registration number is required.", 400)
            clash = Vehicle.query.filter(Vehicle.registration_number == registration, Vehicle.id != vehicle.id).first()
            if clash:
                raise AppError(f"Vehicle {registration} already exists.", 409)
            vehicle.registration_number = registration
        for field in ("make", "model"):
            if field in payload:
                setattr(vehicle, field, clean_text(payload.get(field)) or "")
        if "status" in payload:
            status = (clean_text(payload.get("status")) or "").lower()
            if status not in VehicleService.STATUSES:
                raise AppError("Invalid vehicle status.", 400)
            vehicle.status = status
        if "pricing_group_id" in payload:
            vehicle.pricing_group = VehicleService._resolve_pricing_group(payload.get("pricing_group_id"))
        db.session.commit()
        return vehicle

    @staticmethod
    def get_vehicle(vehicle_id):
        vehicle = db.session.get(Vehicle, vehicle_id)
        if not vehicle:
            raise AppError("Vehicle not found.", 404)
        return vehicle

    @staticmethod
    def list_vehicles(status=None, available_from=None, available_to=None):
        query = Vehicle.query.order_by(Vehicle.registration_number.asc())
        if status:
            if status not in VehicleService.STATUSES:
                raise AppError("Invalid vehicle status.", 400)
            query = query.filter_by(status=status)
        if available_from and available_to:
            busy = (
                select(BookingVehicle.vehicle_id)
                .join(Booking, Booking.id == BookingVehicle.booking_id)
                .where(Booking.status.in_(ACTIVE_BOOKING_STATUSES))
                .where(Booking.pickup_at < available_to, Booking.return_at > available_from)
            )
            query = query.filter(Vehicle.status == "available").filter(Vehicle.id.not_in(busy))
        return query.all()
