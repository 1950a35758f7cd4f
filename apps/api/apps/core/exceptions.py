"""
DRF exception handler.

Every error response uses the same envelope:
    {"error": "<message>", "code": "<code>", "errors": {...optional...}}
"""
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

from apps.scheduling.exceptions import BookingError

from .observability import metrics
from .observability.logging import get_sanitized_logger

logger = get_sanitized_logger(__name__)


def api_exception_handler(exc, context):
    if isinstance(exc, BookingError):
        view = context.get('view')
        logger.info(
            'Booking request rejected',
            extra={
                'event': 'booking_error',
                'code': exc.code,
                'status_code': exc.status_code,
                'view': view.__class__.__name__ if view else None,
            }
        )
        return Response(exc.to_dict(), status=exc.status_code)

    resp = drf_exception_handler(exc, context)
    if resp is None:
        # Unhandled: let Django's 500 machinery log the traceback
        metrics.exceptions_total.labels(
            exception_type=exc.__class__.__name__,
            location='api',
        ).inc()
        return None

    if isinstance(resp.data, dict) and set(resp.data) == {'detail'}:
        detail = resp.data['detail']
        payload = {
            'error': str(detail),
            'code': getattr(detail, 'code', 'error'),
        }
    elif isinstance(resp.data, dict):
        payload = {
            'error': 'Invalid input',
            'code': 'validation_error',
            'errors': resp.data,
        }
    else:
        payload = {
            'error': 'Invalid input' if resp.status_code == status.HTTP_400_BAD_REQUEST else str(resp.data),
            'code': 'validation_error' if resp.status_code == status.HTTP_400_BAD_REQUEST else 'error',
            'errors': resp.data,
        }

    resp.data = payload
    return resp
