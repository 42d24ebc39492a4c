import logging

from flask import jsonify, request
from marshmallow import ValidationError as SchemaValidationError
from werkzeug.exceptions import HTTPException

from .exceptions import BaseAPIException

logger = logging.getLogger(__name__)


def handle_api_exception(error):
    """Translate domain exceptions into JSON error responses"""
    if error.status_code >= 500:
        logger.error(f"{error.__class__.__name__}: {error.message}")
    else:
        logger.info(f"{error.__class__.__name__} on {request.path}: {error.message}")
    response = jsonify(error.to_dict())
    response.status_code = error.status_code
    return response


def handle_schema_error(error):
    """Marshmallow failures are reported as validation errors"""
    response = jsonify(
        {"error": "validation_error", "message": "Invalid request", "fields": error.messages}
    )
    response.status_code = 400
    return response


def handle_http_exception(error):
    response = jsonify({"error": error.name, "message": error.description})
    response.status_code = error.code
    return response


def handle_unexpected(error):
    logger.error(f"Unhandled Exception: {str(error)}", exc_info=True)
    return jsonify({"error": "server_error", "message": "Internal server error"}), 500


def register_error_handlers(app):
    """Register error handlers with the Flask app"""
    app.register_error_handler(BaseAPIException, handle_api_exception)
    app.register_error_handler(SchemaValidationError, handle_schema_error)
    app.register_error_handler(HTTPException, handle_http_exception)
    app.register_error_handler(Exception, handle_unexpected)
