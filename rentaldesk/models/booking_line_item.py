from rentaldesk.extensions import db
from rentaldesk.models.base import PKType, TimestampMixin


class BookingLineItem(TimestampMixin, db.Model):
    __tablename__ = "booking_line_items"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    booking_id = db.Column(PKType, db.ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    kind = db.Column(db.String(24), nullable=False, index=True)
    name = db.Column(db.String(140), nullable=False)
    quantity = db.Column(db.Integer, nullable=False, default=1)
    unit_price = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    total_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    booking = db.relationship("Booking", back_populates="line_items")

    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_line_item_quantity_positive"),
    )
