import logging
import os
import sys
import time
import uuid
from pathlib import Path
from typing import Callable

from fastapi import FastAPI, Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from admissions.config import settings

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Configure logging
def setup_logging():
    """Configure logging for the admissions service and return its root logger."""
    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    handlers = [logging.StreamHandler(sys.stdout)]
    if settings.LOG_FILE:
        os.makedirs(Path(settings.LOG_FILE).parent, exist_ok=True)
        handlers.append(logging.FileHandler(settings.LOG_FILE))

    logging.basicConfig(level=log_level, format=LOG_FORMAT, handlers=handlers)

    # Quiet noisy libraries
    for name in ("uvicorn", "sqlalchemy", "alembic", "httpx", "passlib"):
        logging.getLogger(name).setLevel(logging.WARNING)

    logger = logging.getLogger("admissions")
    logger.setLevel(log_level)
    return logger

class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every request with a request id, its outcome and duration."""

    def __init__(self, app: ASGIApp):
        super().__init__(app)
        self.logger = logging.getLogger("admissions.request")

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        start_time = time.time()
        request.state.request_id = request_id
        client = request.client.host if request.client else 'unknown'

        self.logger.info(
            f"Request started: {request.method} {request.url.path} "
            f"[client: {client}] [request_id: {request_id}]"
        )

        try:
            response = await call_next(request)
        except Exception as e:
            self.logger.error(
                f"Request failed: {request.method} {request.url.path} "
                f"[error: {str(e)}] [request_id: {request_id}]",
                exc_info=True
            )
            raise

        duration = time.time() - start_time
        # Refused workflow operations surface as 4xx; keep them visible
        level = logging.WARNING if response.status_code >= 400 else logging.INFO
        self.logger.log(
            level,
            f"Request completed: {request.method} {request.url.path} "
            f"[status: {response.status_code}] [duration: {duration:.3f}s] "
            f"[request_id: {request_id}]"
        )
        response.headers["X-Request-ID"] = request_id
        return response

def add_logging_middleware(app: FastAPI):
    """Add request logging middleware to the FastAPI app."""
    app.add_middleware(RequestLoggingMiddleware)
