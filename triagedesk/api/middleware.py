import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from triagedesk.common.logging import get_logger

logger = get_logger("middleware")


class TimingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000

        logger.info("%s %s %d %.1fms", request.method, request.url.path, response.status_code, duration_ms)
        response.headers["X-Request-Duration-Ms"] = f"{duration_ms:.1f}"
        return response
