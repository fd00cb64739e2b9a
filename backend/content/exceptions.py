"""
Engine Errors and the DRF Exception Handler

The engine raises typed ContentError subclasses and knows nothing about
HTTP. custom_exception_handler is the single place where they become
status codes, with a consistent {"error": ...} body across the API.
"""
from rest_framework.views import exception_handler
from rest_framework.response import Response
from rest_framework import status
from django.db import IntegrityError
import logging

logger = logging.getLogger(__name__)


class ContentError(Exception):
    """Base class for every failure the engine reports to its caller."""
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message, **details):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(ContentError):
    """Malformed or missing required input. Never retried."""
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(ContentError):
    status_code = status.HTTP_404_NOT_FOUND


class PermissionDeniedError(ContentError):
    """Authenticated, but the role or ownership is insufficient."""
    status_code = status.HTTP_403_FORBIDDEN


class ForbiddenError(ContentError):
    """The resource exists but does not allow this operation (e.g. download)."""
    status_code = status.HTTP_403_FORBIDDEN


class ConflictError(ContentError):
    """Uniqueness violation. The caller may retry with different input."""
    status_code = status.HTTP_409_CONFLICT


class StateError(ContentError):
    """Operation is invalid for the entity's current lifecycle state."""
    status_code = status.HTTP_409_CONFLICT


class PartialConversionError(ContentError):
    """
    Submission -> Post conversion created the post but could not mark the
    submission as converted. Carries the post id so the caller can reconcile.
    """
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message, post_id):
        super().__init__(message, post_id=post_id)
        self.post_id = post_id


def custom_exception_handler(exc, context):
    """
    Custom exception handler that:
    1. Maps engine errors to status codes
    2. Logs all unexpected exceptions
    3. Provides consistent error format
    """
    if isinstance(exc, ContentError):
        if isinstance(exc, PartialConversionError):
            logger.error(f"Partial conversion, post {exc.post_id} left unlinked: {exc}")
        body = {'error': exc.message}
        if exc.details:
            body['details'] = exc.details
        return Response(body, status=exc.status_code)

    # Call DRF's default exception handler first
    response = exception_handler(exc, context)

    if response is not None:
        if not isinstance(response.data, dict) or 'error' not in response.data:
            response.data = {
                'error': str(exc),
                'details': response.data
            }
        return response

    if isinstance(exc, IntegrityError):
        logger.warning(f"IntegrityError: {exc}")
        return Response(
            {'error': 'Data integrity error. This may be a duplicate entry.'},
            status=status.HTTP_409_CONFLICT
        )

    logger.exception(f"Unhandled exception: {exc}")

    return Response(
        {'error': 'An unexpected error occurred.'},
        status=status.HTTP_500_INTERNAL_SERVER_ERROR
    )
