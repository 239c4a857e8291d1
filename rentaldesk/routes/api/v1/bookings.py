from flask import Blueprint, Response, jsonify, request

from rentaldesk.errors import AppError
from rentaldesk.extensions import limiter
from rentaldesk.routes.api.v1.serializers import booking_dict, booking_summary, page_meta
from rentaldesk.services import BookingNumberService, BookingService, ContractService
from rentaldesk.utils import parse_datetime

api_booking_bp = Blueprint("api_booking", __name__)


@api_booking_bp.get("")
def list_bookings():
    page = request.args.get("page", default=1, type=int)
    per_page = request.args.get("per_page", default=25, type=int)
    date_from = request.args.get("from")
    date_to = request.args.get("to")
    paginated = BookingService.list_bookings(
        status=request.args.get("status"),
        search=request.args.get("q"),
        date_from=parse_datetime(date_from, "from") if date_from else None,
        date_to=parse_datetime(date_to, "to") if date_to else None,
        page=page,
        per_page=min(per_page, 100),
    )
    return jsonify({"items": [booking_summary(b) for b in paginated.items], "meta": page_meta(paginated)})


@api_booking_bp.post("")
@limiter.limit("30 per minute")
def create_booking():
    payload = request.get_json(silent=True) or {}
    booking, warnings = BookingService.create_booking(payload)
    return jsonify(booking_dict(booking, warnings)), 201


@api_booking_bp.get("/<int:booking_id>")
def get_booking(booking_id):
    return jsonify(booking_dict(BookingService.get_booking(booking_id)))


@api_booking_bp.get("/numbers/<booking_number>")
def inspect_booking_number(booking_number):
    parsed = BookingNumberService.parse_booking_number(booking_number)
    if parsed is None:
        return jsonify({"booking_number": booking_number, "valid": False}), 400
    booking = BookingService.get_by_number(booking_number)
    return jsonify(
        {
            "booking_number": booking_number,
            "valid": True,
            "date": parsed["date"].isoformat(),
            "sequence": parsed["sequence"],
            "booking_id": booking.id,
        }
    )


@api_booking_bp.patch("/<int:booking_id>/status")
def update_status(booking_id):
    payload = request.get_json(silent=True) or {}
    booking = BookingService.transition_booking(BookingService.get_booking(booking_id), payload.get("status"))
    return jsonify({"id": booking.id, "status": booking.status})


@api_booking_bp.post("/<int:booking_id>/vehicles")
def add_vehicles(booking_id):
    payload = request.get_json(silent=True) or {}
    booking = BookingService.get_booking(booking_id)
    warnings = BookingService.add_vehicles(booking, payload.get("vehicle_ids") or payload.get("vehicles"))
    return jsonify(booking_dict(booking, warnings))


@api_booking_bp.delete("/<int:booking_id>/vehicles/<int:vehicle_id>")
def remove_vehicle(booking_id, vehicle_id):
    booking = BookingService.remove_vehicle(BookingService.get_booking(booking_id), vehicle_id)
    return jsonify(booking_dict(booking))


@api_booking_bp.post("/<int:booking_id>/recalculate")
def recalculate(booking_id):
    booking = BookingService.get_booking(booking_id)
    warnings = BookingService.recalculate(booking)
    return jsonify(booking_dict(booking, warnings))


@api_booking_bp.patch("/<int:booking_id>/price")
def override_price(booking_id):
    payload = request.get_json(silent=True) or {}
    if "total_price" not in payload:
        raise AppError("total_price is required.", 400)
    booking = BookingService.override_price(BookingService.get_booking(booking_id), payload.get("total_price"))
    return jsonify(booking_dict(booking))


@api_booking_bp.patch("/<int:booking_id>/discount")
def update_discount(booking_id):
    payload = request.get_json(silent=True) or {}
    booking = BookingService.update_discount(BookingService.get_booking(booking_id), payload)
    return jsonify(booking_dict(booking))


@api_booking_bp.get("/<int:booking_id>/contract")
def contract(booking_id):
    booking = BookingService.get_booking(booking_id)
    return Response(
        ContractService.render_contract_pdf(booking),
        mimetype="application/pdf",
        headers={"Content-Disposition": f"attachment; filename=contract-{booking.booking_number}.pdf"},
    )

