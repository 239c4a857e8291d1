from flask import Blueprint, jsonify, request

from rentaldesk.errors import AppError
from rentaldesk.routes.api.v1.serializers import pricing_group_dict
from rentaldesk.services import PricingGroupService, PricingService, VehicleService
from rentaldesk.utils import parse_datetime, parse_int

api_pricing_group_bp = Blueprint("api_pricing_group", __name__)


@api_pricing_group_bp.get("")
def list_groups():
    include_inactive = request.args.get("include_inactive", "").lower() in {"1", "true", "yes"}
    groups = PricingGroupService.list_groups(include_inactive=include_inactive)
    return jsonify({"items": [pricing_group_dict(g) for g in groups]})


@api_pricing_group_bp.post("")
def create_group():
    payload = request.get_json(silent=True) or {}
    group = PricingGroupService.create_group(payload)
    return jsonify(pricing_group_dict(group)), 201


@api_pricing_group_bp.get("/<int:group_id>")
def get_group(group_id):
    return jsonify(pricing_group_dict(PricingGroupService.get_group(group_id)))


@api_pricing_group_bp.patch("/<int:group_id>")
def update_group(group_id):
    payload = request.get_json(silent=True) or {}
    group = PricingGroupService.update_group(PricingGroupService.get_group(group_id), payload)
    return jsonify(pricing_group_dict(group))


@api_pricing_group_bp.post("/quote")
def quote():
    """Price a window for a pricing group or a set of vehicles without booking."""
    payload = request.get_json(silent=True) or {}
    pickup_at = parse_datetime(payload.get("pickup_at"), "Pickup date")
    return_at = parse_datetime(payload.get("return_at"), "Return date")

    if payload.get("pricing_group_id") is not None:
        group = PricingGroupService.get_group(parse_int(payload.get("pricing_group_id"), "Pricing group id"))
        result = PricingService.quote(group, pickup_at, return_at)
        return jsonify({k: str(v) if k in {"daily_rate", "total", "deposit"} else v for k, v in result.items()})

    vehicle_ids = payload.get("vehicle_ids") or []
    if not vehicle_ids:
        raise AppError("pricing_group_id or vehicle_ids is required.", 400)
    lines = []
    for vehicle_id in vehicle_ids:
        vehicle = VehicleService.get_vehicle(parse_int(vehicle_id, "Vehicle id"))
        price = PricingService.compute_vehicle_price(vehicle.pricing_group, pickup_at, return_at)
        lines.append({"vehicle_id": vehicle.id, "registration_number": vehicle.registration_number, "price": price})
    total = PricingService.compute_booking_total(
        [line["price"] for line in lines],
        discount_type=payload.get("discount_type"),
        discount_value=payload.get("discount_value") or 0,
    )
    return jsonify(
        {
            "days": PricingService.rental_days(pickup_at, return_at),
            "vehicles": [{**line, "price": str(line["price"])} for line in lines],
            "total": str(total),
        }
    )
