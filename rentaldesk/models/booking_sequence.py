from rentaldesk.extensions import db
from rentaldesk.models.base import TimestampMixin


class BookingSequence(TimestampMixin, db.Model):
    __tablename__ = "booking_sequences"

    date_prefix = db.Column(db.String(8), primary_key=True)
    last_value = db.Column(db.Integer, nullable=False, default=0)
