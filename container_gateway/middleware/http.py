"""HTTP access logging for the REST routes."""

import time
import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from ..core.logging_config import get_access_logger

REQUEST_ID_HEADER = "X-Request-ID"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs method, path, status and duration of every HTTP request.

    A request id is taken from the incoming ``X-Request-ID`` header (or
    generated), bound into the structlog context for the duration of the
    request and echoed back on the response.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        logger = get_access_logger()
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        start_time = time.perf_counter()

        with structlog.contextvars.bound_contextvars(request_id=request_id):
            try:
                response = await call_next(request)
            except Exception as e:
                logger.error(
                    "HTTP request failed",
                    method=request.method,
                    path=request.url.path,
                    duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise

            logger.info(
                "HTTP request",
                method=request.method,
                path=request.url.path,
                query=request.url.query or None,
                status=response.status_code,
                duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
                client=request.client.host if request.client else None,
            )

        response.headers[REQUEST_ID_HEADER] = request_id
        return response
