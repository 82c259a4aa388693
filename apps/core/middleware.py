"""
Core middleware for request processing.
"""
import threading
import uuid
import logging
from django.utils.deprecation import MiddlewareMixin

logger = logging.getLogger(__name__)

_local = threading.local()


class RequestIDMiddleware(MiddlewareMixin):
    """
    Inject a unique request_id into each request for tracing.

    The id comes from the ``X-Request-ID`` header when the caller sends one.
    It is attached to the request, echoed on the response, and made
    available to log records through RequestIDLogFilter.
    """

    def process_request(self, request):
        request_id = request.META.get('HTTP_X_REQUEST_ID') or str(uuid.uuid4())
        request.request_id = request_id
        _local.request_id = request_id

    def process_response(self, request, response):
        if hasattr(request, 'request_id'):
            response['X-Request-ID'] = request.request_id
        _local.request_id = None
        return response


class RequestIDLogFilter(logging.Filter):
    """Add the current request_id to log records that don't carry one."""

    def filter(self, record):
        if not getattr(record, 'request_id', None):
            record.request_id = getattr(_local, 'request_id', None)
        return True
