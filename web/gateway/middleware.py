"""Middleware that assigns a request identifier and logs API calls.

Every incoming request gets a request id: the client's ``X-Request-Id``
header when present, a fresh UUIDv4 otherwise. The id is stored on the
request and in a ContextVar so log records emitted anywhere during the
request (service, repository, hooks, event listeners) can carry it through
``gateway.logging_filters.RequestIdFilter``. Responses echo it in
``X-Request-ID``.

Requests under ``/api/`` additionally produce one access log line with
method, path, status and duration.
"""

import contextvars
import logging
import time
import uuid

REQUEST_ID_CTX = contextvars.ContextVar("request_id", default="-")

access_logger = logging.getLogger("gateway.access")


class RequestIdMiddleware:
    """Django middleware that sets, propagates and returns a per-request id.

    Attributes:
        HEADER (str): Incoming header name in ``request.META`` casing.
        RESPONSE_HEADER (str): Header added to outgoing responses.
    """

    HEADER = "HTTP_X_REQUEST_ID"
    RESPONSE_HEADER = "X-Request-ID"

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        rid = request.META.get(self.HEADER) or str(uuid.uuid4())
        request.request_id = rid
        token = REQUEST_ID_CTX.set(rid)
        started = time.monotonic()
        try:
            response = self.get_response(request)
            response[self.RESPONSE_HEADER] = rid
            if request.path.startswith("/api/"):
                access_logger.info(
                    "%s %s %s",
                    request.method,
                    request.path,
                    response.status_code,
                    extra={
                        "status_code": response.status_code,
                        "duration_ms": round((time.monotonic() - started) * 1000, 2),
                    },
                )
            return response
        finally:
            REQUEST_ID_CTX.reset(token)
