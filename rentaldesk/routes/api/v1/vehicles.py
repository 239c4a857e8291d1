from flask import Blueprint, jsonify, request

from rentaldesk.routes.api.v1.serializers import vehicle_dict
from rentaldesk.services import VehicleService
from rentaldesk.utils import parse_datetime

api_vehicle_bp = Blueprint("api_vehicle", __name__)


@api_vehicle_bp.get("")
def list_vehicles():
    available_from = request.args.get("available_from")
    available_to = request.args.get("available_to")
    vehicles = VehicleService.list_vehicles(
        status=request.args.get("status"),
        available_from=parse_datetime(available_from, "available_from") if available_from else None,
        available_to=parse_datetime(available_to, "available_to") if available_to else None,
    )
    return jsonify({"items": [vehicle_dict(v) for v in vehicles]})


@api_vehicle_bp.post("")
def create_vehicle():
    payload = request.get_json(silent=True) or {}
    vehicle = VehicleService.create_vehicle(payload)
    return jsonify(vehicle_dict(vehicle)), 201


@api_vehicle_bp.get("/<int:vehicle_id>")
def get_vehicle(vehicle_id):
    return jsonify(vehicle_dict(VehicleService.get_vehicle(vehicle_id)))


@api_vehicle_bp.patch("/<int:vehicle_id>")
def update_vehicle(vehicle_id):
    payload = request.get_json(silent=True) or {}
    vehicle = VehicleService.update_vehicle(VehicleService.get_vehicle(vehicle_id), payload)
    return jsonify(vehicle_dict(vehicle))
