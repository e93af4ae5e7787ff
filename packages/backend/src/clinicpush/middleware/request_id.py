"""Request ID middleware — one ID per gateway callback or publish call.

Learn: The push gateway forwards its own request id when it calls the
integration routes; the clinic API sends X-Request-ID on publish calls.
Whichever arrives is bound to structlog's contextvars so every log entry
for a handshake or broadcast can be correlated. Otherwise a new UUID is
generated. It is echoed back in X-Request-ID.
"""

import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADERS = ("X-Request-ID", "X-Amzn-RequestId")


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Bind an incoming or generated request ID to the logging context."""

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = next(
            (request.headers[h] for h in REQUEST_ID_HEADERS if h in request.headers),
            None,
        ) or str(uuid.uuid4())

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        response: Response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response
