"""API error types and the project-wide DRF exception handler.

Every error response carries an ``error`` string; field validation failures
also carry a ``details`` object with the per-field messages.
"""

import logging

from rest_framework import status
from rest_framework.exceptions import APIException, ValidationError
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class BusinessRuleError(APIException):
    """A domain rule rejected the request (e.g. editing a paid invoice)."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Request violates a business rule.'
    default_code = 'business_rule'


class Conflict(APIException):
    """The resource already exists in the requested form."""

    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Conflict.'
    default_code = 'conflict'

    def __init__(self, detail=None, code=None, extra=None):
        super().__init__(detail, code)
        self.extra = extra or {}


def _first_message(data):
    if isinstance(data, (list, tuple)):
        return _first_message(data[0]) if data else ''
    if isinstance(data, dict):
        for value in data.values():
            return _first_message(value)
        return ''
    return str(data)


def error_message(exc: APIException) -> str:
    """Single readable message for an API exception (used by bulk endpoints)."""
    return _first_message(exc.detail) or exc.default_detail


def api_exception_handler(exc, context):
    """Normalize DRF error payloads into ``{"error": ..., "details": ...}``."""
    response = exception_handler(exc, context)

    if response is None:
        view = context.get('view')
        logger.exception('Unhandled error in %s', view.__class__.__name__ if view else 'view')
        return Response({'error': 'Internal server error'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    data = response.data
    if isinstance(exc, ValidationError):
        if isinstance(data, dict):
            body = {'error': _first_message(data) or 'Invalid request', 'details': data}
        else:
            body = {'error': _first_message(data) or 'Invalid request'}
    elif isinstance(data, dict) and 'detail' in data:
        body = {'error': str(data['detail'])}
    else:
        body = {'error': _first_message(data)}

    if isinstance(exc, Conflict):
        body.update(exc.extra)

    response.data = body
    return response
