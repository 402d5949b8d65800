"""
HTTP middleware: request correlation and access logging.
"""

import time
import uuid

from fastapi import FastAPI, Request
from starlette.middleware.base import BaseHTTPMiddleware

from hoarding_rental.core.logging import get_logger, request_id

logger = get_logger(__name__)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Assigns a correlation id to every request and logs its outcome"""

    excluded_paths = {'/health', '/docs', '/redoc', '/openapi.json'}

    async def dispatch(self, request: Request, call_next):
        correlation_id = request.headers.get('X-Request-ID') or str(uuid.uuid4())
        request.state.correlation_id = correlation_id
        token = request_id.set(correlation_id)

        try:
            if request.url.path in self.excluded_paths:
                return await call_next(request)

            start_time = time.time()
            response = await call_next(request)
            process_time = time.time() - start_time

            logger.info(
                f"{request.method} {request.url.path} -> {response.status_code}",
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "status_code": response.status_code,
                    "process_time": round(process_time, 4),
                    "user_role": request.headers.get('X-User-Role'),
                },
            )

            response.headers["X-Correlation-ID"] = correlation_id
            response.headers["X-Process-Time"] = f"{process_time:.4f}"
            return response
        finally:
            request_id.reset(token)


def register_middlewares(app: FastAPI) -> None:
    app.add_middleware(RequestLoggingMiddleware)
