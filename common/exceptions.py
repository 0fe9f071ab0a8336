# task_manager/common/exceptions.py
import logging

from django.core.exceptions import PermissionDenied as DjangoPermissionDenied
from django.db import DatabaseError
from django.http import Http404
from rest_framework import exceptions, status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class ErrorCode:
    VALIDATION_ERROR = 'VALIDATION_ERROR'
    BAD_REQUEST = 'BAD_REQUEST'
    INVALID_RESET_TOKEN = 'INVALID_RESET_TOKEN'
    UNAUTHORIZED = 'UNAUTHORIZED'
    FORBIDDEN = 'FORBIDDEN'
    NOT_FOUND = 'NOT_FOUND'
    CONFLICT = 'CONFLICT'
    INTERNAL_ERROR = 'INTERNAL_ERROR'
    DATABASE_ERROR = 'DATABASE_ERROR'


class BadRequest(exceptions.APIException):
    """A well-formed request that breaks a business rule."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Bad request.'
    default_code = 'bad_request'
    error_code = ErrorCode.BAD_REQUEST


class InvalidResetToken(BadRequest):
    default_detail = 'Invalid or expired token.'
    default_code = 'invalid_reset_token'
    error_code = ErrorCode.INVALID_RESET_TOKEN


class Conflict(exceptions.APIException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'The resource was modified or already exists.'
    default_code = 'conflict'
    error_code = ErrorCode.CONFLICT


STATUS_ERROR_CODES = {
    400: ErrorCode.BAD_REQUEST,
    401: ErrorCode.UNAUTHORIZED,
    403: ErrorCode.FORBIDDEN,
    404: ErrorCode.NOT_FOUND,
    409: ErrorCode.CONFLICT,
}


def error_body(status_code, message, error_code, errors=None):
    return {
        'status_code': status_code,
        'message': message,
        'error_code': error_code,
        'errors': errors,
    }


def _message_from_detail(detail):
    if isinstance(detail, dict) and 'detail' in detail:
        return str(detail['detail'])
    if isinstance(detail, (list, dict)):
        return 'Validation failed'
    return str(detail)


def api_exception_handler(exc, context):
    """
    Wraps every error in the same envelope:
    {"status_code", "message", "error_code", "errors"}.
    Anything DRF does not know how to render becomes a generic 500.
    """
    if isinstance(exc, Http404):
        exc = exceptions.NotFound()
    elif isinstance(exc, DjangoPermissionDenied):
        exc = exceptions.PermissionDenied()

    response = exception_handler(exc, context)
    view = context.get('view')

    if response is None:
        if isinstance(exc, DatabaseError):
            logger.error("Database error in %s", view.__class__.__name__, exc_info=exc)
            return Response(
                error_body(500, 'Database operation failed', ErrorCode.DATABASE_ERROR),
                status=status.HTTP_500_INTERNAL_SERVER_ERROR,
            )
        logger.error("Unhandled error in %s", view.__class__.__name__, exc_info=exc)
        return Response(
            error_body(500, 'An unexpected error occurred', ErrorCode.INTERNAL_ERROR),
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    if isinstance(exc, exceptions.ValidationError):
        response.data = error_body(
            response.status_code, 'Validation failed', ErrorCode.VALIDATION_ERROR, exc.detail
        )
        return response

    error_code = getattr(exc, 'error_code', None) or STATUS_ERROR_CODES.get(
        response.status_code, str(getattr(exc, 'default_code', 'error')).upper()
    )
    response.data = error_body(response.status_code, _message_from_detail(exc.detail), error_code)
    return response
