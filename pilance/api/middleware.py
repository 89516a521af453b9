import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from pilance.common.logging import get_logger

logger = get_logger("middleware")


class AuditMiddleware(BaseHTTPMiddleware):
    """Access log line per request, with the acting token's presence noted."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000

        level = "warning" if response.status_code >= 500 else "info"
        getattr(logger, level)(
            "%s %s %d %.1fms%s",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
            "" if "authorization" in request.headers else " (anonymous)",
        )

        response.headers["X-Request-Duration-Ms"] = f"{duration_ms:.1f}"
        return response
