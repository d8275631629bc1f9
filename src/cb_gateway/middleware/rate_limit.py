"""Fixed-window rate limiting backed by Redis.

Rules:
  - Auth endpoints:    5 req/min/IP   (anti brute-force)
  - Payout/booking writes: 30 req/min/client (anti double-submit spam)
  - Everything else:   settings.RATE_LIMIT_PER_MINUTE req/min/client

Key pattern: "ratelimit:{client}:{group}:{window}". The client is the real IP
(X-Forwarded-For aware). A Redis outage fails open: rate limiting is an
ambient guard, never a reason to reject a booking or payout.
"""

import logging
import time

from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from config.settings import settings
from src.cb_common.errors import RateLimitError
from src.cb_common.redis_client import get_redis
from src.cb_common.response import error_response

logger = logging.getLogger("cb.ratelimit")

_WINDOW_SECONDS = 60


def _client_key(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def classify(method: str, path: str) -> tuple[str, int]:
    """Return (endpoint_group, limit per window) for a request."""
    if "/auth/" in path:
        return "auth", 5
    if method == "POST" and ("/payouts" in path or "/bookings" in path):
        return "write", 30
    return "default", settings.RATE_LIMIT_PER_MINUTE


class RateLimitMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if not settings.RATE_LIMIT_ENABLED or request.url.path == "/health":
            return await call_next(request)

        group, limit = classify(request.method, request.url.path)
        window = int(time.time()) // _WINDOW_SECONDS
        key = f"ratelimit:{_client_key(request)}:{group}:{window}"
        try:
            redis = await get_redis()
            count = await redis.incr(key)
            if count == 1:
                await redis.expire(key, _WINDOW_SECONDS)
        except RedisError:
            logger.warning("Rate limiter unavailable, allowing request to %s", request.url.path)
            return await call_next(request)

        if count > limit:
            err = RateLimitError()
            retry_after = _WINDOW_SECONDS - int(time.time()) % _WINDOW_SECONDS
            return JSONResponse(
                status_code=err.http_status,
                content=error_response(err.code, err.message).model_dump(),
                headers={"Retry-After": str(retry_after)},
            )
        return await call_next(request)
