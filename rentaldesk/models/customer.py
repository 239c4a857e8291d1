from rentaldesk.extensions import db
from rentaldesk.models.base import PKType, TimestampMixin


class Customer(TimestampMixin, db.Model):
    __tablename__ = "customers"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    first_name = db.Column(db.String(120), nullable=False)
    last_name = db.Column(db.String(120), nullable=False, default="")
    email = db.Column(db.String(255), nullable=True, index=True)
    phone = db.Column(db.String(32), nullable=False, index=True)
    document_number = db.Column(db.String(64), nullable=True, index=True)
    address = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(24), nullable=False, default="active", index=True)
    notes = db.Column(db.Text, nullable=True)

    bookings = db.relationship("Booking", back_populates="customer", lazy="dynamic")

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()
