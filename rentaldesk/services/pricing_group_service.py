from rentaldesk.errors import AppError
from rentaldesk.extensions import db
from rentaldesk.models import PricingGroup, Vehicle
from rentaldesk.utils import clean_text, parse_decimal

RATE_FIELDS = ("price_1_3_days", "price_4_7_days", "price_8_plus_days")


class PricingGroupService:
    STATUSES = {"active", "inactive"}

    @staticmethod
    def _parse_rate(value, field):
        rate = parse_decimal(value, field.replace("_", " ").capitalize())
        if rate <= 0:
            raise AppError("Daily rates must be positive numbers.", 400)
        return rate

    @staticmethod
    def _assign_vehicles(group, vehicle_ids):
        ids = [int(v) for v in vehicle_ids or [] if str(v).isdigit()]
        if not ids:
            return
        vehicles = Vehicle.query.filter(Vehicle.id.in_(ids)).all()
        if len(vehicles) != len(set(ids)):
            raise AppError("One or more vehicles were not found.", 404)
        for vehicle in vehicles:
            vehicle.pricing_group = group

    @staticmethod
    def create_group(payload):
        name = clean_text(payload.get("name"))
        if not name:
            raise AppError("Pricing group name is required.", 400)
        if PricingGroup.query.filter_by(name=name).first():
            raise AppError("A pricing group with this name already exists.", 409)

        group = PricingGroup(
            name=name,
            description=clean_text(payload.get("description")),
            deposit_amount=parse_decimal(payload.get("deposit_amount"), "Deposit", default=0, minimum=0),
            status="active",
        )
        for field in RATE_FIELDS:
            setattr(group, field, PricingGroupService._parse_rate(payload.get(field), field))

        db.session.add(group)
        db.session.flush()
        PricingGroupService._assign_vehicles(group, payload.get("vehicle_ids"))
        db.session.commit()
        return group

    @staticmethod
    def update_group(group, payload):
        if "name" in payload:
            name = clean_text(payload.get("name"))
            if not name:
                raise AppError("Pricing group name is required.", 400)
            group.name = name
        if "description" in payload:
            group.description = clean_text(payload.get("description"))
        for field in RATE_FIELDS:
            if field in payload:
                setattr(group, field, PricingGroupService._parse_rate(payload.get(field), field))
        if "deposit_amount" in payload:
            group.deposit_amount = parse_decimal(payload.get("deposit_amount"), "Deposit", default=0, minimum=0)
        if "status" in payload:
            status = (payload.get("status") or "").strip().lower()
            if status not in PricingGroupService.STATUSES:
                raise AppError("Invalid pricing group status.", 400)
            group.status = status
        PricingGroupService._assign_vehicles(group, payload.get("vehicle_ids"))
        db.session.commit()
        return group

    @staticmethod
    def get_group(group_id):
        group = db.session.get(PricingGroup, group_id)
        if not group:
            raise AppError("Pricing group not found.", 404)
        return group

    @staticmethod
    def list_groups(include_inactive=False):
        query = PricingGroup.query.order_by(PricingGroup.name.asc())
        if not include_inactive:
            query = query.filter_by(status="active")
        return query.all()
