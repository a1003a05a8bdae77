"""Rate limiting middleware using Redis.

Requests are counted per store user (from the bearer token) or per client
IP, in a sliding window kept as one sorted set per key.  Ledger writes
and the audit have their own, tighter budgets.

If Redis is unreachable the request is allowed and the failure logged.
"""

import logging
import time
import uuid
from typing import Callable, Optional

from fastapi import Request, Response, status
from starlette.middleware.base import BaseHTTPMiddleware

from storecredit.auth.jwt import access_claims
from storecredit.config import settings
from storecredit.middleware.exceptions import create_error_response
from storecredit.utils.redis_client import get_redis

logger = logging.getLogger(__name__)

WRITE_METHODS = ("POST", "PUT", "PATCH", "DELETE")

# (path prefix, limit, window seconds); first match wins
PATH_RULES = [
    ("/api/store-manager/credit/audit", 5, 60),
]
WRITE_RULE = (30, 60)


def client_key(request: Request) -> str:
    """`store:<id>:user:<id>` for a valid token, else `ip:<addr>`."""
    auth_header = request.headers.get("authorization", "")
    if auth_header.startswith("Bearer "):
        claims = access_claims(auth_header[7:])
        if claims:
            return f"store:{claims.get('store_id', '-')}:user:{claims['sub']}"

    # First hop of X-Forwarded-For when behind the load balancer
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return f"ip:{forwarded.split(',')[0].strip()}"
    return f"ip:{request.client.host if request.client else 'unknown'}"


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(
        self,
        app,
        default_limit: int = 100,
        default_window: int = 60,
        exempt_paths: Optional[list[str]] = None,
    ):
        super().__init__(app)
        self.default_rule = (default_limit, default_window)
        self.exempt_paths = tuple(exempt_paths or ("/health", "/docs", "/openapi.json"))

    def rule_for(self, request: Request) -> tuple[int, int]:
        path = request.url.path
        for prefix, limit, window in PATH_RULES:
            if path.startswith(prefix):
                return limit, window
        if request.method in WRITE_METHODS:
            return WRITE_RULE
        return self.default_rule

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if not settings.rate_limit_enabled or request.url.path.startswith(self.exempt_paths):
            return await call_next(request)

        limit, window = self.rule_for(request)
        bucket = "write" if request.method in WRITE_METHODS else "read"
        key = f"ratelimit:{bucket}:{client_key(request)}"

        allowed, remaining, reset_at = await self._hit(key, limit, window)
        headers = {
            "X-RateLimit-Limit": str(limit),
            "X-RateLimit-Remaining": str(remaining),
            "X-RateLimit-Reset": str(int(reset_at)),
        }

        if not allowed:
            retry_after = max(0, int(reset_at - time.time()))
            return create_error_response(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                message=f"Rate limit exceeded. Try again in {retry_after} seconds.",
                error_code="RATE_LIMITED",
                headers={**headers, "Retry-After": str(retry_after)},
            )

        response = await call_next(request)
        response.headers.update(headers)
        return response

    async def _hit(self, key: str, limit: int, window: int) -> tuple[bool, int, float]:
        """Record one request and report (allowed, remaining, reset_at).

        The request is added first and taken back out if it went over the
        limit, so concurrent requests cannot both slip under it.
        """
        now = time.time()
        member = f"{now}:{uuid.uuid4().hex[:8]}"

        try:
            redis_client = await get_redis()
            async with redis_client.pipeline(transaction=True) as pipe:
                pipe.zremrangebyscore(key, 0, now - window)
                pipe.zadd(key, {member: now})
                pipe.zcard(key)
                pipe.zrange(key, 0, 0, withscores=True)
                pipe.expire(key, window)
                _, _, count, oldest, _ = await pipe.execute()

            reset_at = (oldest[0][1] if oldest else now) + window
            if count > limit:
                await redis_client.zrem(key, member)
                return False, 0, reset_at
            return True, limit - count, reset_at
        except Exception as e:
            logger.error("Rate limit check failed, allowing request: %s", e)
            return True, limit, now + window
