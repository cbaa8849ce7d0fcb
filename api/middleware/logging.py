# WORKFLOW: Structured logging middleware for request/response monitoring.
# Used by: All API endpoints, operational monitoring, debugging
# Functions:
# 1. _log_request() - Log incoming request (method, path, compliance record id, body size)
# 2. _log_response() - Log response details (status, timing, content type)
# 3. _log_error() - Log error details with context
#
# Logging flow: Request -> Log request -> Process -> Log response/error
# Every log line carries a request id so the engine's module logs can be correlated
# with the HTTP exchange that triggered them.

from typing import Callable, Optional
import time
import uuid

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp
import structlog

logger = structlog.get_logger()

REQUEST_ID_HEADER = "X-Request-ID"


def _record_id_from_path(path: str) -> Optional[str]:
    """Extract the compliance record id from /.../compliance/{id}[/...] paths."""
    parts = [p for p in path.split("/") if p]
    if "compliance" in parts:
        index = parts.index("compliance")
        if index + 1 < len(parts):
            return parts[index + 1]
    return None


class LoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for structured request/response logging."""

    def __init__(self, app: ASGIApp):
        super().__init__(app)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process request and log details."""
        start_time = time.time()
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        log = logger.bind(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            compliance_id=_record_id_from_path(request.url.path),
        )

        self._log_request(log, request)

        try:
            response = await call_next(request)
        except Exception as e:
            self._log_error(log, e, time.time() - start_time)
            raise

        self._log_response(log, response, time.time() - start_time)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response

    def _log_request(self, log, request: Request) -> None:
        """Log incoming request details."""
        log.info(
            "Incoming request",
            query_params=dict(request.query_params),
            content_length=request.headers.get("content-length"),
            client_ip=request.client.host if request.client else None,
            user_agent=request.headers.get("user-agent"),
        )

    def _log_response(self, log, response: Response, process_time: float) -> None:
        """Log response details."""
        log_method = log.warning if response.status_code >= 400 else log.info
        log_method(
            "Response sent",
            status_code=response.status_code,
            process_time_ms=round(process_time * 1000, 2),
            content_length=response.headers.get("content-length"),
            content_type=response.headers.get("content-type"),
        )

    def _log_error(self, log, error: Exception, process_time: float) -> None:
        """Log error details."""
        log.error(
            "Request failed",
            error_type=type(error).__name__,
            error_message=str(error),
            process_time_ms=round(process_time * 1000, 2),
        )
