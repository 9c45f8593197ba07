import logging
import threading
import time
from datetime import datetime, timezone

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger("api_metrics")


class PipelineMetrics:
    """Process-wide diagnostics: how many pipeline requests were handled.

    Owned by the application; ``reset`` is called on every startup.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._requests = 0
        self.started_at = datetime.now(timezone.utc)

    def increment(self) -> int:
        with self._lock:
            self._requests += 1
            return self._requests

    @property
    def total_requests(self) -> int:
        with self._lock:
            return self._requests

    def reset(self):
        with self._lock:
            self._requests = 0
            self.started_at = datetime.now(timezone.utc)

    def uptime(self) -> str:
        seconds = int((datetime.now(timezone.utc) - self.started_at).total_seconds())
        hours, remainder = divmod(seconds, 3600)
        minutes, seconds = divmod(remainder, 60)
        return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


metrics = PipelineMetrics()


class MetricsMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start_time = time.perf_counter()

        response = await call_next(request)

        process_time = time.perf_counter() - start_time

        logger.info(
            f"{request.method} {request.url.path} | "
            f"Status: {response.status_code} | "
            f"Duration: {process_time:.4f}s | "
            f"Requests processed: {metrics.total_requests}"
        )

        return response
