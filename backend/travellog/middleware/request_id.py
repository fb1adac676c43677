"""
Travel Log API — Request ID Middleware
========================================

What:  Tags every request with an ID, returned in the X-Request-ID response
       header and attached to every log record emitted while handling it.
How:   A client-supplied X-Request-ID is reused; otherwise a short random ID
       is generated. The ID lives in a ContextVar, which RequestIDLogFilter
       copies onto log records as `request_id`.
When:  Outermost application middleware, so that the access log and all
       service logs of a request share the same ID.
"""

import logging
import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"

# Coroutine-local: concurrent requests on the same thread each see their own ID
request_id_var: ContextVar[str] = ContextVar("request_id", default="-")


def generate_request_id() -> str:
    return uuid.uuid4().hex[:8]


class RequestIDMiddleware(BaseHTTPMiddleware):

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = request.headers.get(REQUEST_ID_HEADER) or generate_request_id()

        token = request_id_var.set(rid)
        request.state.request_id = rid
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)

        response.headers[REQUEST_ID_HEADER] = rid
        return response


class RequestIDLogFilter(logging.Filter):
    """Adds the current request ID to log records (`-` outside of requests)."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get()
        return True
