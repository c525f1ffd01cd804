"""
Middleware for hdstore
"""

import logging
import time
from typing import Callable, Optional
from fastapi import FastAPI, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from .metrics import metrics_manager
from .responses import failure
from .utils import format_duration

logger = logging.getLogger(__name__)


def get_client_ip(request: Request) -> str:
    """Client address, honouring a reverse proxy's X-Forwarded-For"""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "-"


class AccessLogMiddleware(BaseHTTPMiddleware):
    """Access logging middleware"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()
        client_ip = get_client_ip(request)

        response = await call_next(request)

        duration = time.time() - start_time
        self._log_access(
            request=request,
            response=response,
            duration=duration,
            client_ip=client_ip,
        )
        metrics_manager.record_response(response.status_code, duration)

        return response

    def _log_access(
        self,
        request: Request,
        response: Optional[Response],
        duration: float,
        client_ip: str,
    ):
        """Log access information"""

        status_code = response.status_code if response else 500
        content_length = response.headers.get("content-length", "-") if response else "-"

        log_data = {
            "method": request.method,
            "path": str(request.url.path),
            "action": request.query_params.get("action", "-"),
            "status": status_code,
            "size": content_length,
            "duration": format_duration(duration),
            "ip": client_ip,
            "user_agent": request.headers.get("user-agent", "-"),
        }

        # Log level based on status code
        if status_code >= 500:
            logger.error(f"ACCESS {log_data}")
        elif status_code >= 400:
            logger.warning(f"ACCESS {log_data}")
        else:
            logger.info(f"ACCESS {log_data}")


class ExceptionHandlerMiddleware(BaseHTTPMiddleware):
    """Turn unexpected exceptions into a failure envelope"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)

        except Exception as e:
            logger.exception(f"Unhandled exception: {e}")
            metrics_manager.increment_errors()
            return failure("Internal server error")


class RequestMetricsMiddleware(BaseHTTPMiddleware):
    """Request metrics collection middleware"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        with metrics_manager.request_context():
            return await call_next(request)


def setup_middleware(app: FastAPI):
    """Setup all middleware for the application"""

    # Exception handling (innermost)
    app.add_middleware(ExceptionHandlerMiddleware)

    # Access logging
    app.add_middleware(AccessLogMiddleware)

    # Request metrics (outermost)
    app.add_middleware(RequestMetricsMiddleware)

    logger.info("Middleware setup complete")
