"""
Request logging middleware.
Assigns every request an id and reports how long it took.
"""

from typing import Callable
from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp
import logging
import time
import uuid

logger = logging.getLogger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Sets ``request.state.request_id`` (reusing an incoming ``X-Request-ID``) and adds
    ``X-Request-ID`` and ``X-Process-Time`` headers to the response.
    """

    def __init__(self, app: ASGIApp, slow_request_threshold: float = 2.0):
        super().__init__(app)
        self.slow_request_threshold = slow_request_threshold

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())[:8]
        request.state.request_id = request_id
        start_time = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as exc:
            processing_time = time.perf_counter() - start_time
            logger.error(
                f"Request error [{request_id}]: {request.method} {request.url.path} "
                f"{type(exc).__name__} ({processing_time:.3f}s)",
                exc_info=True
            )
            raise

        processing_time = time.perf_counter() - start_time
        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time"] = f"{processing_time:.3f}"

        message = (
            f"[{request_id}] {request.method} {request.url.path} "
            f"-> {response.status_code} ({processing_time:.3f}s)"
        )
        if processing_time > self.slow_request_threshold:
            logger.warning(f"Slow request {message}")
        else:
            logger.info(message)

        return response
