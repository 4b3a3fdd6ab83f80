"""Custom middleware for request tracking and logging."""

import logging
import time
import uuid
from typing import Callable, Optional

import structlog
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from .config import settings
from .observability import metrics_collector

logger = logging.getLogger(__name__)

# Bodies on these paths carry card data or credentials and are never logged
SENSITIVE_PATH_PREFIXES = (
    "/api/checkout",
    "/api/create-payment",
    "/api/create-clover-payment",
    "/api/create-payment-intent",
    "/api/clover/",
    "/api/admin/settings",
)


def is_sensitive_path(path: str) -> bool:
    return path.startswith(SENSITIVE_PATH_PREFIXES) or (
        path.startswith("/api/bookings/") and path.endswith("/pay")
    )


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Middleware that adds a unique request ID to each request.

    The request ID is either extracted from the X-Request-ID header
    or generated if not present. It's added to the response headers
    and bound into the structlog context for every log line of the request.
    """

    def __init__(self, app: ASGIApp, header_name: str = "X-Request-ID"):
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(self.header_name) or str(uuid.uuid4())
        request.state.request_id = request_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        response = await call_next(request)
        response.headers[self.header_name] = request_id
        return response


class LoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware that logs HTTP requests and responses.

    Logs request and response information including timing,
    status codes, and correlation IDs for debugging and monitoring.
    """

    def __init__(
        self,
        app: ASGIApp,
        log_request_body: bool = False,
        skip_paths: Optional[list] = None,
    ):
        super().__init__(app)
        self.log_request_body = log_request_body
        self.skip_paths = skip_paths or ["/health", "/ready", "/metrics", "/favicon.ico"]

    def _should_log(self, path: str) -> bool:
        return path not in self.skip_paths

    def _get_client_ip(self, request: Request) -> str:
        """Extract client IP address from request."""
        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()

        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            return real_ip

        if request.client:
            return request.client.host

        return "unknown"

    @staticmethod
    def _endpoint(request: Request) -> str:
        # Route template keeps metric label cardinality bounded
        route = request.scope.get("route")
        return getattr(route, "path", "unmatched")

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if not self._should_log(request.url.path):
            return await call_next(request)

        start_time = time.perf_counter()
        path = request.url.path

        log_data = {
            "request_id": getattr(request.state, "request_id", "unknown"),
            "method": request.method,
            "path": path,
            "client_ip": self._get_client_ip(request),
            "user_agent": request.headers.get("User-Agent", "unknown"),
            "content_length": request.headers.get("Content-Length"),
        }

        if (
            self.log_request_body
            and request.method in ("POST", "PUT", "PATCH")
            and not is_sensitive_path(path)
        ):
            body = await request.body()
            if body:
                log_data["request_body"] = body.decode("utf-8", errors="replace")[:1000]

        logger.info("HTTP request started", extra=log_data)

        try:
            response = await call_next(request)
        except Exception as e:
            duration = time.perf_counter() - start_time
            metrics_collector.record_request(request.method, self._endpoint(request), 500, duration)
            logger.error(
                "HTTP request failed",
                extra={**log_data, "duration_ms": round(duration * 1000, 2), "error": str(e)}
            )
            raise

        duration = time.perf_counter() - start_time
        status_code = response.status_code
        metrics_collector.record_request(request.method, self._endpoint(request), status_code, duration)

        log_data.update({
            "status_code": status_code,
            "duration_ms": round(duration * 1000, 2),
            "response_size": response.headers.get("Content-Length"),
        })

        if status_code >= 500:
            logger.error("HTTP request completed with server error", extra=log_data)
        elif status_code >= 400:
            logger.warning("HTTP request completed with client error", extra=log_data)
        else:
            logger.info("HTTP request completed successfully", extra=log_data)

        return response


def setup_middleware(app, enable_logging: bool = True) -> None:
    """
    Setup all middleware on the FastAPI app.

    Args:
        app: FastAPI application instance
        enable_logging: Whether to enable request logging middleware
    """
    # Last added runs first
    if enable_logging:
        # Bodies only in development, and never for payment paths
        app.add_middleware(LoggingMiddleware, log_request_body=settings.debug)

    app.add_middleware(RequestIDMiddleware)
