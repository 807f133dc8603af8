"""In-memory rate limiting middleware for the optimize endpoint."""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

logger = logging.getLogger(__name__)

# Paths that run a solve; everything else is cheap and unlimited
LIMITED_PREFIXES = ("/api/optimize",)

WINDOW_SECONDS = 60
STALE_SECONDS = 300


class _TokenBucket:
    """Simple token bucket for rate limiting."""

    __slots__ = ("max_tokens", "refill_rate", "tokens", "last_refill")

    def __init__(self, max_tokens: int, refill_rate: float):
        self.max_tokens = max_tokens
        self.refill_rate = refill_rate  # tokens per second
        self.tokens = float(max_tokens)
        self.last_refill = time.monotonic()

    def consume(self) -> bool:
        """Try to consume a token. Returns True if allowed."""
        now = time.monotonic()
        elapsed = now - self.last_refill
        self.tokens = min(self.max_tokens, self.tokens + elapsed * self.refill_rate)
        self.last_refill = now

        if self.tokens >= 1:
            self.tokens -= 1
            return True
        return False


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Rate limit solve requests by client IP.

    ``max_requests`` per ``WINDOW_SECONDS``; 0 disables limiting.
    """

    def __init__(self, app, max_requests: int = 60):
        super().__init__(app)
        self.max_requests = max_requests
        self._buckets: dict[str, _TokenBucket] = {}
        self._last_cleanup = time.monotonic()

    def _get_client_ip(self, request) -> str:
        """Extract client IP, respecting X-Forwarded-For from a reverse proxy."""
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip()
        if request.client:
            return request.client.host
        return "unknown"

    def _cleanup_stale_buckets(self):
        """Remove buckets that haven't been used in 5 minutes."""
        now = time.monotonic()
        if now - self._last_cleanup < STALE_SECONDS:
            return
        self._last_cleanup = now
        stale = [k for k, b in self._buckets.items() if now - b.last_refill > STALE_SECONDS]
        for k in stale:
            del self._buckets[k]

    async def dispatch(self, request, call_next):
        path = request.url.path
        if self.max_requests <= 0 or not path.startswith(LIMITED_PREFIXES):
            return await call_next(request)

        client_ip = self._get_client_ip(request)
        bucket = self._buckets.get(client_ip)
        if bucket is None:
            bucket = _TokenBucket(self.max_requests, self.max_requests / WINDOW_SECONDS)
            self._buckets[client_ip] = bucket

        if not bucket.consume():
            logger.warning(f"Rate limit hit: {client_ip} on {path}")
            return JSONResponse(
                {"status": "error", "notes": ["Too many requests. Please slow down."]},
                status_code=429,
                headers={"Retry-After": str(WINDOW_SECONDS)},
            )

        # Periodic cleanup
        self._cleanup_stale_buckets()

        return await call_next(request)
