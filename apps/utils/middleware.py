import logging
import time
from django.utils.deprecation import MiddlewareMixin
from django.http import JsonResponse

logger = logging.getLogger("apps.requests")


class RequestLogMiddleware(MiddlewareMixin):
    """
    One INFO line per API request: method, path, status, duration, user.
    """

    def process_request(self, request):
        request._started_at = time.monotonic()

    def process_response(self, request, response):
        started = getattr(request, "_started_at", None)
        if started is not None and request.path.startswith('/api/'):
            user = getattr(request, "user", None)
            logger.info(
                f"{request.method} {request.path} -> {response.status_code}",
                extra={
                    "actor_id": getattr(user, "pk", None),
                    "duration_ms": round((time.monotonic() - started) * 1000, 1),
                },
            )
        return response


class GlobalExceptionMiddleware(MiddlewareMixin):
    """
    Last line of defense for non-DRF views.
    """
    def process_exception(self, request, exception):
        logger.exception(f"Unhandled Middleware Exception: {str(exception)}")
        if request.path.startswith('/api/'):
            return JsonResponse(
                {"error": "Internal System Error"},
                status=500
            )
        return None
