from flask import jsonify
from sqlalchemy.exc import IntegrityError

from rentaldesk.extensions import db


class AppError(Exception):
    status_code = 400

    def __init__(self, message, status_code=None, payload=None):
        super().__init__(message)
        self.message = message
        self.payload = payload or {}
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self):
        body = dict(self.payload)
        body["error"] = self.message
        return body


class PricingError(AppError):
    """Raised when a price cannot be computed for the given inputs."""

    status_code = 400


class IncompleteInspectionError(AppError):
    status_code = 409

    def __init__(self, inspection_type, incomplete_vehicles):
        labels = ", ".join(v["registration_number"] for v in incomplete_vehicles)
        super().__init__(
            f"Missing {inspection_type} inspections for: {labels}.",
            payload={"inspection_type": inspection_type, "incomplete_vehicles": incomplete_vehicles},
        )
        self.incomplete_vehicles = incomplete_vehicles


def register_error_handlers(app):
    @app.errorhandler(AppError)
    def handle_app_error(err):
        return jsonify(err.to_dict()), err.status_code

    @app.errorhandler(IntegrityError)
    def handle_integrity_error(_err):
        db.session.rollback()
        app.logger.warning("Database integrity error")
        return jsonify({"error": "Conflict. Resource already exists."}), 409

    @app.errorhandler(400)
    def bad_request(_err):
        return jsonify({"error": "Bad request"}), 400

    @app.errorhandler(404)
    def not_found(_err):
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(405)
    def method_not_allowed(_err):
        return jsonify({"error": "Method not allowed"}), 405

    @app.errorhandler(413)
    def payload_too_large(_err):
        return jsonify({"error": "Upload too large"}), 413

    @app.errorhandler(429)
    def rate_limited(_err):
        return jsonify({"error": "Too many requests"}), 429

    @app.errorhandler(500)
    def server_error(_err):
        app.logger.exception("Internal server error")
        return jsonify({"error": "Internal server error"}), 500
