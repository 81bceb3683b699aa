"""
Mapping of service errors to JSON error responses.
"""
from flask import jsonify

from services.exceptions import (
    ServiceError,
    NotFoundError,
    AlreadyExistsError,
    AlreadySubmittedError,
    ValidationError
)

ERROR_STATUS_CODES = (
    (NotFoundError, 404),
    (AlreadyExistsError, 409),
    (AlreadySubmittedError, 409),
    (ValidationError, 400),
)


def service_error_response(error: ServiceError):
    """Build the (response, status) pair for a service error."""
    for error_class, status_code in ERROR_STATUS_CODES:
        if isinstance(error, error_class):
            return jsonify({'success': False, 'error': str(error)}), status_code
    return jsonify({'success': False, 'error': str(error)}), 400
