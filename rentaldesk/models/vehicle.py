from rentaldesk.extensions import db
from rentaldesk.models.base import PKType, TimestampMixin


class Vehicle(TimestampMixin, db.Model):
    __tablename__ = "vehicles"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    registration_number = db.Column(db.String(32), nullable=False, unique=True, index=True)
    make = db.Column(db.String(80), nullable=False, default="")
    model = db.Column(db.String(80), nullable=False, default="")
    status = db.Column(db.String(24), nullable=False, default="available", index=True)
    pricing_group_id = db.Column(
        PKType, db.ForeignKey("pricing_groups.id", ondelete="SET NULL"), nullable=True, index=True
    )

    pricing_group = db.relationship("PricingGroup", back_populates="vehicles")
    assignments = db.relationship("BookingVehicle", back_populates="vehicle", lazy="dynamic")

    @property
    def label(self):
        name = f"{self.make} {self.model}".strip()
        return f"{self.registration_number} ({name})" if name else self.registration_number
