"""
HTTP middleware: security headers and the active connection counter.
"""

from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

CONTENT_SECURITY_POLICY = (
    "default-src 'self'; img-src 'self' data:; media-src 'self'; "
    "script-src 'self' 'unsafe-inline' https://cdn.tailwindcss.com https://cdnjs.cloudflare.com; "
    "style-src 'self' 'unsafe-inline' https://cdn.tailwindcss.com https://cdnjs.cloudflare.com; "
    "font-src 'self' https://cdnjs.cloudflare.com; frame-src 'self'"
)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "SAMEORIGIN"  # pdf preview embeds /raw/
        response.headers["X-XSS-Protection"] = "1; mode=block"
        response.headers["Referrer-Policy"] = "no-referrer-when-downgrade"
        response.headers["Content-Security-Policy"] = CONTENT_SECURITY_POLICY
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains; preload"
        return response


class ConnectionCounterMiddleware(BaseHTTPMiddleware):
    """Tracks in-flight requests on the app context (shown on /admin)."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        ctx = request.app.state.ctx
        ctx.active_connections += 1
        try:
            return await call_next(request)
        finally:
            ctx.active_connections -= 1
