import time
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from cv_optimizer.core.logging import get_logger

logger = get_logger("cv_optimizer.http")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms:.0f} ms)")
        return response
