from flask import Blueprint, Response, jsonify, request

from rentaldesk.errors import AppError
from rentaldesk.routes.api.v1.serializers import inspection_dict
from rentaldesk.services import BookingService, ContractService, InspectionService
from rentaldesk.services.inspection_service import PHOTO_SLOTS
from rentaldesk.utils import parse_int

api_inspection_bp = Blueprint("api_inspection", __name__)


def _form_or_json():
    if request.is_json:
        return request.get_json(silent=True) or {}
    return request.form.to_dict()


@api_inspection_bp.get("")
def list_inspections():
    booking_id = parse_int(request.args.get("booking_id"), "booking_id", minimum=1)
    booking = BookingService.get_booking(booking_id)
    inspections = InspectionService.list_inspections(booking, request.args.get("type"))
    return jsonify({"items": [inspection_dict(i) for i in inspections]})


@api_inspection_bp.post("")
def create_inspection():
    """Record a single complete inspection from a multipart form."""
    payload = request.form.to_dict()
    booking = BookingService.get_booking(parse_int(payload.get("booking_id"), "booking_id", minimum=1))
    vehicle_id = payload.get("vehicle_id")
    inspection = InspectionService.create_inspection(
        booking,
        payload.get("inspection_type"),
        payload,
        photos={slot: request.files.get(f"{slot}_photo") for slot in PHOTO_SLOTS},
        vehicle_id=parse_int(vehicle_id, "vehicle_id") if vehicle_id else None,
        inspector_name=payload.get("inspector_name"),
    )
    return jsonify(inspection_dict(inspection)), 201


@api_inspection_bp.get("/<int:inspection_id>")
def get_inspection(inspection_id):
    return jsonify(inspection_dict(InspectionService.get_inspection(inspection_id)))


@api_inspection_bp.get("/bookings/<int:booking_id>/<inspection_type>/draft")
def get_draft(booking_id, inspection_type):
    booking = BookingService.get_booking(booking_id)
    vehicles = InspectionService.booking_progress(booking, inspection_type)
    return jsonify(
        {
            "booking_id": booking.id,
            "inspection_type": InspectionService.normalize_type(inspection_type),
            "ready": InspectionService.is_booking_ready_to_finalize(booking, inspection_type),
            "vehicles": vehicles,
        }
    )


@api_inspection_bp.patch("/bookings/<int:booking_id>/<inspection_type>/draft/vehicles/<int:vehicle_id>")
def update_draft_vehicle(booking_id, inspection_type, vehicle_id):
    booking = BookingService.get_booking(booking_id)
    payload = request.get_json(silent=True) or {}
    return jsonify(InspectionService.update_vehicle(booking, inspection_type, vehicle_id, payload))


@api_inspection_bp.post("/bookings/<int:booking_id>/<inspection_type>/draft/vehicles/<int:vehicle_id>/photos/<slot>")
def upload_draft_photo(booking_id, inspection_type, vehicle_id, slot):
    booking = BookingService.get_booking(booking_id)
    snapshot = InspectionService.attach_photo(
        booking,
        inspection_type,
        vehicle_id,
        slot,
        storage=request.files.get("photo"),
        data_url=_form_or_json().get("camera_data"),
    )
    return jsonify(snapshot), 201


@api_inspection_bp.post("/bookings/<int:booking_id>/<inspection_type>/draft/vehicles/<int:vehicle_id>/damages")
def add_draft_damage(booking_id, inspection_type, vehicle_id):
    booking = BookingService.get_booking(booking_id)
    snapshot = InspectionService.add_damage(
        booking, inspection_type, vehicle_id, _form_or_json(), photo=request.files.get("photo")
    )
    return jsonify(snapshot), 201


@api_inspection_bp.delete(
    "/bookings/<int:booking_id>/<inspection_type>/draft/vehicles/<int:vehicle_id>/damages/<int:damage_id>"
)
def remove_draft_damage(booking_id, inspection_type, vehicle_id, damage_id):
    booking = BookingService.get_booking(booking_id)
    return jsonify(InspectionService.remove_damage(booking, inspection_type, vehicle_id, damage_id))


@api_inspection_bp.post("/bookings/<int:booking_id>/<inspection_type>/draft/vehicles/<int:vehicle_id>/extras")
def add_draft_extra(booking_id, inspection_type, vehicle_id):
    booking = BookingService.get_booking(booking_id)
    snapshot = InspectionService.add_extra(booking, inspection_type, vehicle_id, _form_or_json())
    return jsonify(snapshot), 201


@api_inspection_bp.post("/bookings/<int:booking_id>/<inspection_type>/draft/submit")
def submit_draft(booking_id, inspection_type):
    booking = BookingService.get_booking(booking_id)
    payload = request.get_json(silent=True) or {}
    result = InspectionService.submit(booking, inspection_type, inspector_name=payload.get("inspector_name"))
    if not result.ok:
        body = result.to_dict()
        body["error"] = "Inspection batch could not be saved. Nothing was recorded; please retry."
        return jsonify(body), 500
    body = result.to_dict()
    body["inspections"] = [inspection_dict(i) for i in result.inspections]
    return jsonify(body), 201


@api_inspection_bp.delete("/bookings/<int:booking_id>/<inspection_type>/draft")
def discard_draft(booking_id, inspection_type):
    InspectionService.discard_draft(BookingService.get_booking(booking_id), inspection_type)
    return "", 204


@api_inspection_bp.get("/bookings/<int:booking_id>/comparison")
def comparison(booking_id):
    booking = BookingService.get_booking(booking_id)
    return jsonify({"booking_id": booking.id, "vehicles": InspectionService.compare(booking)})


@api_inspection_bp.get("/bookings/<int:booking_id>/<inspection_type>/report")
def report(booking_id, inspection_type):
    booking = BookingService.get_booking(booking_id)
    if not InspectionService.list_inspections(booking, inspection_type):
        raise AppError("No inspections recorded for this booking yet.", 404)
    pdf = ContractService.render_inspection_report_pdf(booking, inspection_type)
    return Response(
        pdf,
        mimetype="application/pdf",
        headers={
            "Content-Disposition": f"attachment; filename={inspection_type}-{booking.booking_number}.pdf"
        },
    )
