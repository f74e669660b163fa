"""
Error Handlers for BandScore

Every failure the listening engine can report is a ``BandScoreError``
subclass carrying its HTTP status and a machine-readable ``code``. The
handlers registered here turn them, and bare 404/405/500s on ``/api/``
paths, into the same JSON envelope:
``{"success": false, "message": ..., "code": ..., "details": ...}``.
"""

from flask import jsonify, request, current_app
from typing import Optional, Dict, Any

RETRY_AFTER_SECONDS = 1


class BandScoreError(Exception):
    """Base exception class for BandScore."""

    def __init__(
        self,
        message: str,
        code: str = 'UNKNOWN_ERROR',
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        """Convert error to dictionary for JSON response."""
        return {
            'success': False,
            'message': self.message,
            'code': self.code,
            'details': self.details
        }


class NotFoundError(BandScoreError):
    """Resource not found, or not visible to the caller."""

    def __init__(self, message: str = 'Resource not found', resource: str = None):
        super().__init__(
            message=message,
            code='NOT_FOUND',
            status_code=404,
            details={'resource': resource} if resource else None
        )


class ValidationError(BandScoreError):
    """Input validation failed."""

    def __init__(self, message: str = 'Validation failed', errors: Dict = None):
        super().__init__(
            message=message,
            code='VALIDATION_ERROR',
            status_code=400,
            details={'errors': errors} if errors else None
        )


class AuthorizationError(BandScoreError):
    """Access denied."""

    def __init__(self, message: str = 'Access denied'):
        super().__init__(
            message=message,
            code='FORBIDDEN',
            status_code=403
        )


class DataIntegrityError(BandScoreError):
    """A test or its question set is structurally invalid. Not retryable."""

    def __init__(self, message: str = 'Question data is inconsistent', details: Dict = None):
        super().__init__(
            message=message,
            code='DATA_INTEGRITY_ERROR',
            status_code=400,
            details=details
        )


class AttemptClosedError(BandScoreError):
    """The attempt already reached a terminal status."""

    def __init__(self, message: str = 'Attempt already submitted', attempt_id: int = None):
        super().__init__(
            message=message,
            code='ATTEMPT_CLOSED',
            status_code=409,
            details={'attempt_id': attempt_id} if attempt_id is not None else None
        )


class StorageError(BandScoreError):
    """Transient read/write failure. Safe to retry the whole call."""

    def __init__(self, message: str = 'Storage operation failed', operation: str = None):
        details = {'retryable': True}
        if operation:
            details['operation'] = operation
        super().__init__(
            message=message,
            code='STORAGE_ERROR',
            status_code=500,
            details=details
        )


def error_response(
    message: str,
    code: str = 'ERROR',
    status_code: int = 400,
    details: Dict = None
) -> tuple:
    """Create a standardized error response."""
    response = {
        'success': False,
        'message': message,
        'code': code
    }
    if details:
        response['details'] = details

    return jsonify(response), status_code


def register_error_handlers(app):
    """Register error handlers with Flask app."""

    @app.errorhandler(BandScoreError)
    def handle_bandscore_error(error):
        log = current_app.logger.error if error.status_code >= 500 else current_app.logger.warning
        log(f"{error.code} on {request.method} {request.path}: {error.message}")

        response = jsonify(error.to_dict())
        response.status_code = error.status_code
        if error.details.get('retryable'):
            # Clients may replay the whole call; submit is idempotent
            response.headers['Retry-After'] = str(RETRY_AFTER_SECONDS)
        return response

    @app.errorhandler(404)
    def handle_not_found(error):
        if request.path.startswith('/api/'):
            return error_response('Endpoint not found', 'NOT_FOUND', 404)
        return error

    @app.errorhandler(405)
    def handle_method_not_allowed(error):
        if request.path.startswith('/api/'):
            return error_response('Method not allowed', 'METHOD_NOT_ALLOWED', 405)
        return error

    @app.errorhandler(500)
    def handle_internal_error(error):
        current_app.logger.exception('Internal server error')
        if request.path.startswith('/api/'):
            return error_response('Internal server error', 'SERVER_ERROR', 500)
        return error
