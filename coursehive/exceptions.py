"""
Error taxonomy and the API error envelope.

Services raise these exceptions; the DRF exception handler below turns every
error into ``{"success": false, "message": ...}`` with the matching status code.
"""
import logging

from rest_framework import exceptions, status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class ValidationError(exceptions.ValidationError):
    """Malformed input: missing required fields, bad index ranges."""


class NotFoundError(exceptions.NotFound):
    """Missing entity, or one the caller is not allowed to see."""


class ForbiddenError(exceptions.PermissionDenied):
    """The caller does not own the resource."""


class ConflictError(exceptions.APIException):
    """The request clashes with the stored state (retake blocked, double submit)."""
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Request conflicts with the current state of the resource.'
    default_code = 'conflict'


UNEXPECTED_ERROR_MESSAGE = 'Internal server error.'


def _first_message(detail):
    if isinstance(detail, dict):
        if 'detail' in detail:
            return _first_message(detail['detail'])
        for key, value in detail.items():
            message = _first_message(value)
            if key == 'non_field_errors':
                return message
            return f"{key}: {message}"
        return ''
    if isinstance(detail, (list, tuple)):
        return _first_message(detail[0]) if detail else ''
    return str(detail)


def api_exception_handler(exc, context):
    response = exception_handler(exc, context)

    if response is None:
        view = context.get('view')
        logger.exception(
            "Unhandled error in %s: %s",
            view.__class__.__name__ if view else 'unknown view', exc
        )
        return Response(
            {'success': False, 'message': UNEXPECTED_ERROR_MESSAGE},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    payload = {'success': False, 'message': _first_message(response.data)}
    if isinstance(exc, exceptions.ValidationError) and isinstance(response.data, (dict, list)):
        payload['errors'] = response.data
    response.data = payload
    return response
