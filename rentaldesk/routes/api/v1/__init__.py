from flask import Blueprint

from rentaldesk.routes.api.v1.bookings import api_booking_bp
from rentaldesk.routes.api.v1.customers import api_customer_bp
from rentaldesk.routes.api.v1.inspections import api_inspection_bp
from rentaldesk.routes.api.v1.pricing_groups import api_pricing_group_bp
from rentaldesk.routes.api.v1.vehicles import api_vehicle_bp

api_v1_bp = Blueprint("api_v1", __name__)
api_v1_bp.register_blueprint(api_pricing_group_bp, url_prefix="/pricing-groups")
api_v1_bp.register_blueprint(api_vehicle_bp, url_prefix="/vehicles")
api_v1_bp.register_blueprint(api_customer_bp, url_prefix="/customers")
api_v1_bp.register_blueprint(api_booking_bp, url_prefix="/bookings")
api_v1_bp.register_blueprint(api_inspection_bp, url_prefix="/inspections")


@api_v1_bp.get("/health")
def health():
    return {"status": "ok"}
