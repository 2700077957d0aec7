import logging

from flask import jsonify, request
from werkzeug.exceptions import HTTPException

from howisyourday.errors import ValidationError

logger = logging.getLogger(__name__)


def success_response(data, status=200):
    return jsonify({'success': True, 'data': data}), status


def error_response(message, status=400):
    return jsonify({'success': False, 'error': message}), status


def get_json_body():
    """Request body as a dict; anything else is a validation error."""
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        raise ValidationError('Invalid JSON body')
    return body


def register_api_error_handlers(blueprint):
    """Make sure nothing leaves an API blueprint without the envelope."""

    @blueprint.errorhandler(ValidationError)
    def handle_validation_error(error):
        return error_response(str(error), 400)

    @blueprint.errorhandler(HTTPException)
    def handle_http_exception(error):
        return error_response(error.description or error.name, error.code)

    @blueprint.errorhandler(Exception)
    def handle_unexpected_error(error):
        logger.exception(f"API error on {request.method} {request.path}: {error}")
        return error_response('Internal server error', 500)
