"""
Rate Limiting Middleware for the GBV case tracker
Per-IP sliding window; login attempts and case submissions get tighter budgets
"""
from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from typing import Callable, Deque, Dict, Optional, Tuple
from collections import defaultdict, deque
import logging
import os
import time

logger = logging.getLogger(__name__)

RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"

WINDOW_SECONDS = 15 * 60

# Path prefix -> requests allowed per window; first match wins
BUCKETS: Tuple[Tuple[str, int], ...] = (
    ("/api/auth/login", 10),
    ("/api/cases", 50),
)
DEFAULT_LIMIT = 300

EXEMPT_PREFIXES = ("/health", "/api/docs", "/api/openapi.json", "/api/redoc")


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Sliding-window limiter keyed on (client IP, bucket)

    All case routes share one bucket. Counters live in process memory, so
    they reset on restart and are not shared across workers.
    """

    def __init__(
        self,
        app,
        enabled: bool = RATE_LIMIT_ENABLED,
        window_seconds: int = WINDOW_SECONDS,
        clock: Optional[Callable[[], float]] = None,
    ):
        super().__init__(app)
        self.enabled = enabled
        self.window_seconds = window_seconds
        self.clock = clock or time.monotonic
        self.hits: Dict[Tuple[str, str], Deque[float]] = defaultdict(deque)

    async def dispatch(self, request: Request, call_next: Callable):
        path = request.url.path
        if not self.enabled or path.startswith(EXEMPT_PREFIXES):
            return await call_next(request)

        ip_address = client_ip(request)
        bucket, limit = bucket_for(path)
        remaining = self._consume((ip_address, bucket), limit)

        if remaining is None:
            logger.warning(f"Rate limit exceeded for IP {ip_address} on {bucket}")
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content={"error": "Too many requests. Please try again later."},
                headers={"Retry-After": str(self.window_seconds)},
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(limit)
        response.headers["X-RateLimit-Remaining"] = str(remaining)
        return response

    def _consume(self, key: Tuple[str, str], limit: int) -> Optional[int]:
        """Record one hit; None when the window is already full, else hits left"""
        now = self.clock()
        window = self.hits[key]
        while window and window[0] <= now - self.window_seconds:
            window.popleft()
        if len(window) >= limit:
            return None
        window.append(now)
        return limit - len(window)


def client_ip(request: Request) -> str:
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip
    return request.client.host if request.client else "unknown"


def bucket_for(path: str) -> Tuple[str, int]:
    for prefix, limit in BUCKETS:
        if path.startswith(prefix):
            return prefix, limit
    return "default", DEFAULT_LIMIT
