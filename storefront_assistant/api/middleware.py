"""API middleware: rate limiting of model-backed routes and request logging."""

from collections import defaultdict, deque
from typing import Deque, Dict, Sequence
import time

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from storefront_assistant.analytics.logger import logger


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Sliding-window limit per client on the paths that reach the model.

    Health probes and error statistics are never limited.
    """

    def __init__(self, app, calls: int = 60, period: int = 60, paths: Sequence[str] = ("/assistant",)):
        super().__init__(app)
        self.calls = calls
        self.period = period
        self.paths = tuple(paths)
        self.clients: Dict[str, Deque[float]] = defaultdict(deque)
        self._last_sweep = time.monotonic()

    def _evict_idle(self, now: float):
        """Drop clients with no request inside the window."""
        idle = [ip for ip, window in self.clients.items() if not window or now - window[-1] >= self.period]
        for ip in idle:
            del self.clients[ip]
        self._last_sweep = now

    async def dispatch(self, request: Request, call_next):
        if not request.url.path.startswith(self.paths):
            return await call_next(request)

        client_ip = request.client.host if request.client else "unknown"
        now = time.monotonic()
        if now - self._last_sweep >= self.period:
            self._evict_idle(now)
        window = self.clients[client_ip]
        while window and now - window[0] >= self.period:
            window.popleft()

        if len(window) >= self.calls:
            logger.warning(f"Rate limit exceeded for {client_ip} on {request.url.path}")
            return JSONResponse(
                status_code=429,
                content={"error": "Túl sok kérés. Kérlek várj egy kicsit!"},
                headers={"Retry-After": str(int(self.period - (now - window[0])) + 1)},
            )

        window.append(now)
        return await call_next(request)


class LoggingMiddleware(BaseHTTPMiddleware):
    """Request logging middleware."""

    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        client_ip = request.client.host if request.client else "unknown"

        logger.info(f"{request.method} {request.url.path} - {client_ip}")

        response = await call_next(request)

        # For streamed replies this is time to first byte, not total duration
        elapsed = time.perf_counter() - start
        logger.info(
            f"{request.method} {request.url.path} - "
            f"Status: {response.status_code} - "
            f"Time: {elapsed:.3f}s"
        )

        return response
