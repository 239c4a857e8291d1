from rentaldesk.extensions import db
from rentaldesk.models.base import PKType, TimestampMixin


class Inspection(TimestampMixin, db.Model):
    __tablename__ = "inspections"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    booking_id = db.Column(PKType, db.ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    booking_vehicle_id = db.Column(
        PKType, db.ForeignKey("booking_vehicles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    vehicle_id = db.Column(PKType, db.ForeignKey("vehicles.id", ondelete="RESTRICT"), nullable=False, index=True)

    inspection_type = db.Column(db.String(16), nullable=False, index=True)
    inspected_at = db.Column(db.DateTime(timezone=True), nullable=False)
    odometer_reading = db.Column(db.Integer, nullable=False)
    fuel_level = db.Column(db.String(24), nullable=False)
    front_photo = db.Column(db.String(500), nullable=False)
    left_photo = db.Column(db.String(500), nullable=False)
    rear_photo = db.Column(db.String(500), nullable=False)
    right_photo = db.Column(db.String(500), nullable=False)
    odometer_photo = db.Column(db.String(500), nullable=False)
    general_condition = db.Column(db.String(40), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    inspector_name = db.Column(db.String(120), nullable=True)

    booking = db.relationship("Booking", back_populates="inspections")
    assignment = db.relationship("BookingVehicle")
    vehicle = db.relationship("Vehicle")
    damages = db.relationship(
        "InspectionDamage", back_populates="inspection", order_by="InspectionDamage.id", cascade="all, delete-orphan"
    )
    extras = db.relationship(
        "InspectionExtra", back_populates="inspection", order_by="InspectionExtra.id", cascade="all, delete-orphan"
    )

    __table_args__ = (
        db.UniqueConstraint("booking_id", "vehicle_id", "inspection_type", name="uq_inspection_vehicle_type"),
        db.CheckConstraint("odometer_reading >= 0", name="ck_inspection_odometer_non_negative"),
    )
