from rentaldesk.extensions import db
from rentaldesk.models.base import PKType, TimestampMixin


class BookingVehicle(TimestampMixin, db.Model):
    __tablename__ = "booking_vehicles"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    booking_id = db.Column(PKType, db.ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    vehicle_id = db.Column(PKType, db.ForeignKey("vehicles.id", ondelete="RESTRICT"), nullable=False, index=True)
    vehicle_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    booking = db.relationship("Booking", back_populates="vehicles")
    vehicle = db.relationship("Vehicle", back_populates="assignments")

    __table_args__ = (
        db.UniqueConstraint("booking_id", "vehicle_id", name="uq_booking_vehicle"),
    )
