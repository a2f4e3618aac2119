import logging
import uuid

from flask import jsonify, request
from werkzeug.exceptions import HTTPException

from maintenance_gate.schemas.error import ErrorResponse
from maintenance_gate.utils.exceptions import MaintenanceGateError

logger = logging.getLogger(__name__)


def _error_response(status_code: int, code: str, message: str, field=None, details=None):
    payload = ErrorResponse(
        error={
            "code": code,
            "message": message,
            "field": field,
            "details": details,
        },
        request_id=str(uuid.uuid4()),
    )
    return jsonify(payload.model_dump()), status_code


def register_error_handlers(app):
    """Convert exceptions raised by routes to structured error responses."""

    @app.errorhandler(MaintenanceGateError)
    def handle_gate_error(e: MaintenanceGateError):
        logger.warning(f"Maintenance gate error: {e.code} - {e.message}")
        return _error_response(e.status_code, e.code, e.message, e.field, e.details)

    @app.errorhandler(HTTPException)
    def handle_http_exception(e: HTTPException):
        if not request.path.startswith("/api/"):
            return e
        logger.warning(f"HTTP Exception: {e.code} - {e.description}")
        return _error_response(
            e.code or 500,
            "HTTP_EXCEPTION",
            e.description or e.name,
            details={"status_code": e.code},
        )

    @app.errorhandler(Exception)
    def handle_unexpected(e: Exception):
        logger.error(f"Unexpected error: {str(e)}", exc_info=True)
        return _error_response(
            500,
            "INTERNAL_SERVER_ERROR",
            "An unexpected error occurred",
            details={"error_type": type(e).__name__},
        )
