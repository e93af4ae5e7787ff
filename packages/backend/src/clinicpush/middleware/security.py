"""Security headers middleware.

Learn: Every response here is JSON for the gateway, the clinic API or
an admin tool, never a page to render. So the headers lock down
anything a browser might do with a stray response:
- X-Content-Type-Options: no MIME-type sniffing
- X-Frame-Options: never framed
- Referrer-Policy: no referrer leaks
- X-XSS-Protection: "0" disables the legacy filter (modern guidance)
- Cache-Control: connection snapshots and publish reports aren't cacheable
- Strict-Transport-Security: only on HTTPS connections
"""

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next) -> Response:
        response: Response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "no-referrer"
        response.headers["X-XSS-Protection"] = "0"
        response.headers.setdefault("Cache-Control", "no-store")
        if request.url.scheme == "https":
            response.headers["Strict-Transport-Security"] = (
                "max-age=31536000; includeSubDomains"
            )
        return response
