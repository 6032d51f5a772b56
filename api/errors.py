from flask import jsonify, current_app
from werkzeug.exceptions import HTTPException
from marshmallow import ValidationError
from sqlalchemy.exc import IntegrityError
import logging


class ApiError(Exception):
    """Base class for errors that carry their own HTTP status."""

    status_code = 500
    error = "INTERNAL_ERROR"
    default_message = "An unexpected error occurred"

    def __init__(self, message: str | None = None, details: dict | None = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class BadRequest(ApiError):
    status_code = 400
    error = "BAD_REQUEST"
    default_message = "Bad request"


class Unauthorized(ApiError):
    status_code = 401
    error = "UNAUTHORIZED"
    default_message = "Unauthorized request"


class NotFound(ApiError):
    status_code = 404
    error = "NOT_FOUND"
    default_message = "Resource not found"


class Conflict(ApiError):
    status_code = 409
    error = "CONFLICT"
    default_message = "Conflict"


class InternalFailure(ApiError):
    status_code = 500
    error = "INTERNAL_ERROR"


def error_response(error: str, message: str, status: int, details: dict | None = None):
    payload = {"status": status, "error": error, "message": message, "success": False}
    if details:
        payload["errors"] = details
    return jsonify(payload), status


def register_error_handlers(app):
    @app.errorhandler(ApiError)
    def handle_api_error(err: ApiError):
        if err.status_code >= 500:
            logging.exception("Request failed", exc_info=err)
        elif current_app and current_app.debug:
            logging.debug("%s: %s", err.error, err.message)
        return error_response(err.error, err.message, err.status_code, details=err.details)

    # Marshmallow validation errors map to 400
    @app.errorhandler(ValidationError)
    def handle_validation_error(err: ValidationError):
        # err.messages contains field-level details
        if current_app and current_app.debug:
            logging.debug("Validation failed: %s", err.messages)
        return error_response("VALIDATION_ERROR", "Invalid input", 400, details=err.messages)

    # Unique constraints that slipped past the pre-checks (concurrent registration)
    @app.errorhandler(IntegrityError)
    def handle_integrity_error(err: IntegrityError):
        message = str(getattr(err, "orig", err))
        lower_msg = message.lower()
        if current_app and current_app.debug:
            logging.exception("Integrity error", exc_info=err)
        if "unique constraint" in lower_msg or "unique violation" in lower_msg or "duplicate" in lower_msg:
            return error_response("CONFLICT", "User with email or username already exists", 409)
        return error_response("BAD_REQUEST", "Integrity error.", 400)

    # Werkzeug HTTPExceptions map to their status codes
    @app.errorhandler(HTTPException)
    def handle_http_exception(err: HTTPException):
        code = err.code or 400
        return error_response(err.name.upper().replace(" ", "_"), err.description, code)

    # 500 Internal Error (catch-all)
    @app.errorhandler(Exception)
    def internal_error(err: Exception):
        logging.exception("Unhandled exception", exc_info=err)
        details = None
        if current_app and current_app.debug:
            details = {"type": err.__class__.__name__, "message": str(err)}
        return error_response("INTERNAL_ERROR", "An unexpected error occurred", 500, details=details)
