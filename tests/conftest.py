from datetime import datetime, timezone
from io import BytesIO

import pytest
from PIL import Image
from werkzeug.datastructures import FileStorage

from rentaldesk import create_app
from rentaldesk.extensions import cache, db
from rentaldesk.models import Booking, BookingVehicle, Customer, PricingGroup, Vehicle
from rentaldesk.services import BookingNumberService
from rentaldesk.services.inspection_service import PHOTO_SLOTS, InspectionService


@pytest.fixture
def app(tmp_path):
    app = create_app("testing", overrides={"UPLOAD_DIR": str(tmp_path / "media")})
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()
        cache.clear()


@pytest.fixture
def client(app):
    return app.test_client()


def png_bytes(color="red"):
    buffer = BytesIO()
    Image.new("RGB", (8, 8), color).save(buffer, format="PNG")
    return buffer.getvalue()


def png_upload(name="photo.png"):
    return FileStorage(stream=BytesIO(png_bytes()), filename=name, content_type="image/png")


@pytest.fixture
def make_group(app):
    def _make(name="Economy", rates=("50", "40", "30"), deposit="200"):
        group = PricingGroup(
            name=name,
            price_1_3_days=rates[0],
            price_4_7_days=rates[1],
            price_8_plus_days=rates[2],
            deposit_amount=deposit,
            status="active",
        )
        db.session.add(group)
        db.session.commit()
        return group

    return _make


@pytest.fixture
def make_vehicle(app):
    def _make(registration, group=None, status="available"):
        vehicle = Vehicle(registration_number=registration, make="Fiat", model="Panda", status=status, pricing_group=group)
        db.session.add(vehicle)
        db.session.commit()
        return vehicle

    return _make


@pytest.fixture
def make_customer(app):
    def _make(first_name="Ana", phone="+34600000000"):
        customer = Customer(first_name=first_name, last_name="Ruiz", phone=phone, email="ana@example.com")
        db.session.add(customer)
        db.session.commit()
        return customer

    return _make


@pytest.fixture
def make_booking(app, make_customer):
    """Insert a booking directly with the given vehicles, bypassing availability checks."""

    def _make(vehicles, pickup=None, return_at=None, status="confirmed"):
        pickup = pickup or datetime(2025, 1, 1, 9, tzinfo=timezone.utc)
        return_at = return_at or datetime(2025, 1, 5, 9, tzinfo=timezone.utc)
        booking = Booking(
            booking_number=BookingNumberService.next_booking_number(pickup),
            customer=make_customer(phone=f"+3460{len(vehicles)}{Booking.query.count():06d}"),
            status=status,
            pickup_at=pickup,
            return_at=return_at,
            total_price=0,
        )
        for vehicle in vehicles:
            booking.vehicles.append(BookingVehicle(vehicle=vehicle, vehicle_price=100))
        db.session.add(booking)
        db.session.commit()
        return booking

    return _make


@pytest.fixture
def complete_draft(app):
    """Fill every required draft field for one vehicle."""

    def _complete(booking, inspection_type, vehicle, odometer=1000, fuel="full"):
        for slot in PHOTO_SLOTS:
            InspectionService.attach_photo(booking, inspection_type, vehicle.id, slot, storage=png_upload())
        InspectionService.update_vehicle(
            booking, inspection_type, vehicle.id, {"odometer_reading": odometer, "fuel_level": fuel}
        )

    return _complete
