from rentaldesk.extensions import db
from rentaldesk.models.base import PKType, TimestampMixin


class Booking(TimestampMixin, db.Model):
    __tablename__ = "bookings"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    booking_number = db.Column(db.String(12), nullable=False, unique=True, index=True)
    customer_id = db.Column(PKType, db.ForeignKey("customers.id", ondelete="SET NULL"), nullable=True, index=True)

    status = db.Column(db.String(24), nullable=False, default="confirmed", index=True)
    pickup_at = db.Column(db.DateTime(timezone=True), nullable=False)
    return_at = db.Column(db.DateTime(timezone=True), nullable=False)

    total_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    price_overridden = db.Column(db.Boolean, nullable=False, default=False)
    discount_type = db.Column(db.String(16), nullable=True)
    discount_value = db.Column(db.Numeric(10, 2), nullable=False, default=0)

    notes = db.Column(db.Text, nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    customer = db.relationship("Customer", back_populates="bookings")
    vehicles = db.relationship(
        "BookingVehicle",
        back_populates="booking",
        order_by="BookingVehicle.id",
        cascade="all, delete-orphan",
    )
    line_items = db.relationship(
        "BookingLineItem",
        back_populates="booking",
        order_by="BookingLineItem.id",
        cascade="all, delete-orphan",
    )
    inspections = db.relationship("Inspection", back_populates="booking", lazy="dynamic", cascade="all, delete-orphan")

    __table_args__ = (
        db.Index("ix_bookings_status_pickup", "status", "pickup_at"),
        db.CheckConstraint("return_at > pickup_at", name="ck_booking_window_positive"),
    )
