from rentaldesk.extensions import db
from rentaldesk.models.base import PKType, TimestampMixin


class InspectionDamage(TimestampMixin, db.Model):
    __tablename__ = "inspection_damages"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    inspection_id = db.Column(PKType, db.ForeignKey("inspections.id", ondelete="CASCADE"), nullable=False, index=True)
    description = db.Column(db.Text, nullable=False)
    severity = db.Column(db.String(16), nullable=False, default="minor")
    location = db.Column(db.String(120), nullable=True)
    photo = db.Column(db.String(500), nullable=True)
    estimated_cost = db.Column(db.Numeric(10, 2), nullable=True)

    inspection = db.relationship("Inspection", back_populates="damages")


class InspectionExtra(TimestampMixin, db.Model):
    __tablename__ = "inspection_extras"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    inspection_id = db.Column(PKType, db.ForeignKey("inspections.id", ondelete="CASCADE"), nullable=False, index=True)
    description = db.Column(db.String(255), nullable=False)
    amount = db.Column(db.Numeric(10, 2), nullable=False, default=0)

    inspection = db.relationship("Inspection", back_populates="extras")
