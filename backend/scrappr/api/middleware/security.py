from __future__ import annotations

import time
from typing import TYPE_CHECKING

from starlette.middleware.base import BaseHTTPMiddleware

from scrappr.utils.logging import get_logger

if TYPE_CHECKING:
    from fastapi import Request
    from starlette.types import ASGIApp

logger = get_logger(__name__)

# JSON-only API: nothing may be framed, scripted or cached
SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Content-Security-Policy": "default-src 'none'; connect-src 'self' https://*.supabase.co; frame-ancestors 'none';",
    "Cache-Control": "no-store, no-cache, must-revalidate, max-age=0",
    "Pragma": "no-cache",
}


class SecurityMiddleware(BaseHTTPMiddleware):
    """Adds security headers and logs calls to the transcription procedure."""

    def __init__(self, app: ASGIApp):
        super().__init__(app)

    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)

        response.headers.update(SECURITY_HEADERS)
        if request.url.scheme == "https":
            response.headers["Strict-Transport-Security"] = "max-age=15552000; includeSubDomains"

        # Transcription is the only call that leaves for a paid upstream
        if request.url.path.endswith("/transcribeAudio"):
            logger.info(
                "Transcription request finished",
                extra={
                    "status_code": response.status_code,
                    "ip": request.client.host if request.client else "unknown",
                    "content_length": request.headers.get("content-length", "unknown"),
                    "duration_ms": round((time.perf_counter() - started) * 1000),
                },
            )

        return response
