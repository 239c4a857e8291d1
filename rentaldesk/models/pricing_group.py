from rentaldesk.extensions import db
from rentaldesk.models.base import PKType, TimestampMixin


class PricingGroup(TimestampMixin, db.Model):
    __tablename__ = "pricing_groups"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    name = db.Column(db.String(120), nullable=False, unique=True)
    description = db.Column(db.Text, nullable=True)
    price_1_3_days = db.Column(db.Numeric(10, 2), nullable=False)
    price_4_7_days = db.Column(db.Numeric(10, 2), nullable=False)
    price_8_plus_days = db.Column(db.Numeric(10, 2), nullable=False)
    deposit_amount = db.Column(db.Numeric(10, 2), nullable=False, default=0)
    status = db.Column(db.String(24), nullable=False, default="active", index=True)

    vehicles = db.relationship("Vehicle", back_populates="pricing_group", lazy="dynamic")

    __table_args__ = (
        db.CheckConstraint(
            "price_1_3_days > 0 AND price_4_7_days > 0 AND price_8_plus_days > 0",
            name="ck_pricing_group_rates_positive",
        ),
    )
