"""Request tracing middleware for the BOQ API."""
import re
import time
import uuid
import logging
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("boq-api.middleware")

SKIP_LOG_PATHS = {"/health"}

_VERSION_PATH = re.compile(r"^/api/boq-versions/([0-9a-fA-F-]{36})")


class RequestTimingMiddleware(BaseHTTPMiddleware):
    """
    Tags every request with X-Request-ID, reports X-Process-Time (ms) and
    logs one line per request. Version-scoped paths also log the version id.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        start = time.perf_counter()

        response: Response = await call_next(request)

        duration_ms = round((time.perf_counter() - start) * 1000, 2)
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time"] = str(duration_ms)

        path = request.url.path
        if path in SKIP_LOG_PATHS:
            return response

        extra = {
            "request_id": request_id,
            "duration_ms": duration_ms,
            "http_method": request.method,
            "http_path": path,
            "http_status": response.status_code,
        }
        match = _VERSION_PATH.match(path)
        if match:
            extra["version_id"] = match.group(1)
        level = logging.WARNING if response.status_code >= 500 else logging.INFO
        logger.log(level, "%s %s -> %d", request.method, path, response.status_code, extra=extra)
        return response
