# ==== CORRELATION ID MIDDLEWARE ==== #

"""
Correlation ID middleware for request tracing in Procurement Hub.

Propagates or generates ``X-Correlation-Id``, opens a request span and
records request latency by route template.
"""

import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from app.observability.metrics import http_request_latency_seconds
from app.observability.tracing import get_tracer


tracer = get_tracer(__name__)


class CorrelationMiddleware(BaseHTTPMiddleware):
    """
    Middleware to add correlation IDs to requests and responses.

    The ID is stored on ``request.state.correlation_id`` for error handlers
    and log records, and echoed on every response.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        # --► CORRELATION ID MANAGEMENT
        correlation_id = request.headers.get("X-Correlation-Id") or str(uuid.uuid4())
        request.state.correlation_id = correlation_id

        start_time = time.perf_counter()

        with tracer.start_as_current_span("http_request") as span:
            span.set_attribute("http.method", request.method)
            span.set_attribute("http.url", str(request.url))
            span.set_attribute("correlation_id", correlation_id)

            response = await call_next(request)

            response.headers["X-Correlation-Id"] = correlation_id

            # --► METRICS COLLECTION
            # Route template keeps label cardinality bounded
            route = request.scope.get("route")
            route_path = getattr(route, "path", "unmatched")

            http_request_latency_seconds.labels(
                method=request.method,
                route=route_path,
                status=str(response.status_code)
            ).observe(time.perf_counter() - start_time)

            span.set_attribute("http.status_code", response.status_code)

            return response
