from flask import Blueprint, jsonify, request

from rentaldesk.routes.api.v1.serializers import booking_summary, customer_dict, page_meta
from rentaldesk.services import CustomerService

api_customer_bp = Blueprint("api_customer", __name__)


@api_customer_bp.get("")
def list_customers():
    page = request.args.get("page", default=1, type=int)
    per_page = request.args.get("per_page", default=25, type=int)
    paginated = CustomerService.list_customers(
        search=request.args.get("q"),
        status=request.args.get("status"),
        page=page,
        per_page=min(per_page, 100),
    )
    return jsonify({"items": [customer_dict(c) for c in paginated.items], "meta": page_meta(paginated)})


@api_customer_bp.post("")
def create_customer():
    payload = request.get_json(silent=True) or {}
    customer = CustomerService.create_customer(payload)
    return jsonify(customer_dict(customer)), 201


@api_customer_bp.get("/<int:customer_id>")
def get_customer(customer_id):
    customer = CustomerService.get_customer(customer_id)
    body = customer_dict(customer)
    body["bookings"] = [booking_summary(b) for b in customer.bookings.all()]
    return jsonify(body)


@api_customer_bp.patch("/<int:customer_id>")
def update_customer(customer_id):
    payload = request.get_json(silent=True) or {}
    customer = CustomerService.update_customer(CustomerService.get_customer(customer_id), payload)
    return jsonify(customer_dict(customer))
