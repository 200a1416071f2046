"""FastAPI middleware for cross-cutting concerns."""

import logging
import time
import uuid
from typing import Awaitable, Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from processing_inventory.logging_config import correlation_id_var

CORRELATION_HEADER = "X-Correlation-ID"

logger = logging.getLogger("processing_inventory.access")


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """
    Tag each request with a correlation ID and write one access log line.

    The ID comes from the ``X-Correlation-ID`` header or a fresh UUID4, is
    visible to every log call made while serving the request, and is echoed
    back on the response.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())
        token = correlation_id_var.set(correlation_id)
        started = time.perf_counter()

        try:
            response = await call_next(request)
            response.headers[CORRELATION_HEADER] = correlation_id
            logger.info(
                "%s %s -> %d",
                request.method,
                request.url.path,
                response.status_code,
                extra={"duration_ms": round((time.perf_counter() - started) * 1000, 1)},
            )
            return response
        finally:
            correlation_id_var.reset(token)
