"""
UserMgmt Backend — Request Logging Middleware
===============================================

What:  One access-log line per HTTP request.
Why:   Status and latency per route, tied to the correlation id that the
       client also sees in the response header and in any error envelope.
How:   Starlette middleware wrapping the whole app. It sits outside every
       middleware chain, so the ambient correlation scope has already been
       closed when the response comes back; the id is read from the
       response header instead.

What we log vs what we DON'T log (privacy):
    ✅ Log: method, path, status, duration, client IP, correlation id
    ❌ Don't log: request body, CSRF token, Authorization header, cookies
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from usermgmt.config import settings

logger = logging.getLogger("usermgmt.access")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs method, path, status, duration and correlation id for each request.

    Log level follows the status class: 5xx ERROR, 4xx WARNING, else INFO.
    Health checks are not logged.
    """

    SKIPPED_PATHS = {"/health"}

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path in self.SKIPPED_PATHS:
            return await call_next(request)

        start_time = time.perf_counter()
        client_ip = getattr(request.client, "host", "unknown") if request.client else "unknown"

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        status = response.status_code
        cid = response.headers.get(settings.correlation_header, "-")

        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        logger.log(
            log_level,
            "%s %s %d %.1fms from %s",
            request.method,
            path,
            status,
            duration_ms,
            client_ip,
            extra={
                "correlation_id": cid,
                "method": request.method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "client_ip": client_ip,
            },
        )

        return response
