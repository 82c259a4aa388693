"""
Domain exceptions and the DRF exception handler.

Every error leaving the API has the same body:
    {"success": false, "message": ..., "code": ..., "request_id": ...}
"""
import logging
from rest_framework import exceptions as drf_exceptions
from rest_framework import status
from rest_framework.response import Response
from django.http import JsonResponse

logger = logging.getLogger(__name__)


class TeamflowException(Exception):
    """Base exception for Teamflow-specific errors."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = 'ERROR'

    def __init__(self, message, details=None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class AuthenticationError(TeamflowException):
    """Raised when the caller has no valid credential."""
    status_code = status.HTTP_401_UNAUTHORIZED
    code = 'UNAUTHENTICATED'


class PermissionDeniedError(TeamflowException):
    """Raised when role or record ownership does not permit the call."""
    status_code = status.HTTP_403_FORBIDDEN
    code = 'FORBIDDEN'


class NotFoundError(TeamflowException):
    """Raised when a referenced record does not exist."""
    status_code = status.HTTP_404_NOT_FOUND
    code = 'NOT_FOUND'


class ConflictError(TeamflowException):
    """Raised when the store already holds a conflicting record."""
    status_code = status.HTTP_409_CONFLICT
    code = 'CONFLICT'


class ValidationError(TeamflowException):
    """Raised when input validation fails."""
    status_code = status.HTTP_400_BAD_REQUEST
    code = 'VALIDATION_ERROR'


class TransientStoreError(TeamflowException):
    """Raised when the store times out or is unreachable."""
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = 'STORE_UNAVAILABLE'


class IdentifierAllocationError(ConflictError):
    """Raised when identifier allocation keeps colliding past IDENTIFIER_MAX_RETRIES."""
    code = 'IDENTIFIER_ALLOCATION_FAILED'


def _error_body(message, code, request_id=None, details=None):
    body = {
        'success': False,
        'message': message,
        'code': code,
    }
    if details:
        body['details'] = details
    if request_id:
        body['request_id'] = request_id
    return body


def ratelimit_view(request, exception):
    """
    View used by django-ratelimit when a blocking limit is hit.

    Returns 429 with a Retry-After header instead of django-ratelimit's 403.
    """
    from apps.core.logging import SecurityLogger

    ip_address = request.META.get('REMOTE_ADDR', 'unknown')
    retry_after = 60

    SecurityLogger.log_rate_limit_exceeded(
        endpoint=request.path,
        ip_address=ip_address,
        limit='Rate limit exceeded'
    )

    response = JsonResponse(
        _error_body(
            'Rate limit exceeded. Please try again later.',
            'RATE_LIMIT_EXCEEDED',
            request_id=getattr(request, 'request_id', None),
        ),
        status=429
    )
    response['Retry-After'] = str(retry_after)
    return response


def custom_exception_handler(exc, context):
    """
    Render domain and DRF exceptions in the common error body and log them.

    Unknown exceptions become a generic 500 with no internal detail.
    """
    # Importing DRF views loads the authentication classes, which import this module
    from rest_framework.views import exception_handler

    request = context.get('request')
    request_id = getattr(request, 'request_id', None) if request else None
    log_extra = {
        'request_id': request_id,
        'path': request.path if request else None,
        'method': request.method if request else None,
        'view': context['view'].__class__.__name__ if context.get('view') else None,
    }

    if isinstance(exc, TeamflowException):
        level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
        logger.log(
            level,
            f"{exc.__class__.__name__}: {exc.message}",
            extra={**log_extra, 'status_code': exc.status_code}
        )
        return Response(
            _error_body(exc.message, exc.code, request_id, exc.details),
            status=exc.status_code
        )

    response = exception_handler(exc, context)

    if response is None:
        logger.error(
            f"Unhandled API exception: {exc.__class__.__name__}",
            extra={**log_extra, 'exception': str(exc)},
            exc_info=True
        )
        return Response(
            _error_body('An unexpected error occurred', 'INTERNAL_ERROR', request_id),
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    logger.warning(
        f"API exception: {exc.__class__.__name__}",
        extra={**log_extra, 'status_code': response.status_code}
    )

    if isinstance(exc, drf_exceptions.ValidationError):
        response.data = _error_body('Validation error', 'VALIDATION_ERROR', request_id, response.data)
    else:
        detail = getattr(exc, 'detail', None)
        code = exc.get_codes() if isinstance(exc, drf_exceptions.APIException) else 'ERROR'
        response.data = _error_body(
            str(detail) if detail is not None else str(exc),
            str(code).upper(),
            request_id,
        )

    return response
