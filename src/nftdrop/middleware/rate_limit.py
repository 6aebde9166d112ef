"""Redis-backed fixed-window rate limiting middleware.

Claim attempts get their own, tighter budget so claim codes cannot be
brute-forced under the general API limit.
"""

import time
from typing import Any

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from nftdrop.auth.dependencies import client_ip as resolve_client_ip
from nftdrop.redis_client import get_redis

logger = structlog.get_logger()

_EXEMPT_PATHS = frozenset({"/health", "/ready", "/version"})
CLAIM_PATH = "/api/v1/bounties/claim"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Rate limit requests per client IP using Redis counters."""

    def __init__(
        self,
        app: Any,  # noqa: ANN401
        requests_per_window: int = 100,
        claim_requests_per_window: int = 10,
        window_seconds: int = 60,
    ) -> None:
        super().__init__(app)
        self.requests_per_window = requests_per_window
        self.claim_requests_per_window = claim_requests_per_window
        self.window_seconds = window_seconds

    def _bucket(self, request: Request) -> tuple[str, int]:
        if request.url.path == CLAIM_PATH:
            return "claim", self.claim_requests_per_window
        return "api", self.requests_per_window

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        """Check the caller's counter, return 429 if exceeded."""
        if request.url.path in _EXEMPT_PATHS:
            return await call_next(request)

        client_ip = resolve_client_ip(request) or "unknown"
        bucket, limit = self._bucket(request)
        window = int(time.time()) // self.window_seconds
        rate_key = f"ratelimit:{bucket}:{client_ip}:{window}"

        try:
            redis = get_redis()
        except RuntimeError:
            # Redis not initialized, let the request through unthrottled
            return await call_next(request)

        pipe = redis.pipeline()
        pipe.incr(rate_key)
        pipe.expire(rate_key, self.window_seconds + 1)
        results: list[Any] = await pipe.execute()
        current_count: int = results[0]

        if current_count > limit:
            logger.info("rate_limited", client_ip=client_ip, bucket=bucket, count=current_count)
            return JSONResponse(
                status_code=429,
                content={"detail": "Rate limit exceeded. Try again later."},
                headers={
                    "Retry-After": str(self.window_seconds),
                    "X-RateLimit-Remaining": "0",
                    "X-RateLimit-Limit": str(limit),
                },
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Remaining"] = str(max(0, limit - current_count))
        response.headers["X-RateLimit-Limit"] = str(limit)
        return response
