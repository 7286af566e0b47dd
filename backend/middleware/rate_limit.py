"""
Rate Limiting Middleware - Redis-backed request throttling.

Provides rate limiting for:
- WebSocket connections (per IP)
- WebSocket messages (per connection)
- Answer lookups (per IP)
- Offline inbox captures (per IP)

Uses Redis INCR with EXPIRE for fixed-window counting.
Disabled when Redis is unavailable, except in production where it fails closed.

Usage:
    # REST middleware
    app.add_middleware(RateLimitMiddleware)

    # WebSocket (manual check)
    allowed, _ = await check_ws_message_limit(connection_id)
    if not allowed:
        continue
"""

import logging
from enum import Enum
from typing import Optional, Tuple

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import HTTPConnection
from starlette.responses import JSONResponse

from errors import ErrorCode

logger = logging.getLogger(__name__)


class RateLimitType(Enum):
    """Rate limit types with their Redis key patterns."""
    WS_CONNECTION = "agent:rl:conn"    # Per IP
    WS_MESSAGE = "agent:rl:msg"        # Per connection
    AGENT_SEARCH = "agent:rl:search"   # Per IP
    AGENT_INBOX = "agent:rl:inbox"     # Per IP, stricter


def _default_limit(limit_type: RateLimitType) -> int:
    from config import runtime_config

    limits = {
        RateLimitType.WS_CONNECTION: runtime_config.rate_limit_ws_conn,
        RateLimitType.WS_MESSAGE: runtime_config.rate_limit_ws_msg,
        RateLimitType.AGENT_SEARCH: runtime_config.rate_limit_search,
        RateLimitType.AGENT_INBOX: runtime_config.rate_limit_inbox,
    }
    return limits.get(limit_type, 30)


def get_client_ip(conn: HTTPConnection) -> str:
    """Extract client IP from a request or websocket, handling proxies."""
    # Check X-Forwarded-For header (set by nginx/load balancer)
    forwarded = conn.headers.get("X-Forwarded-For")
    if forwarded:
        # Take first IP in chain (original client)
        return forwarded.split(",")[0].strip()

    real_ip = conn.headers.get("X-Real-IP")
    if real_ip:
        return real_ip

    if conn.client:
        return conn.client.host

    return "unknown"


async def check_rate_limit(
    limit_type: RateLimitType,
    identifier: str,
    limit: Optional[int] = None,
    window_seconds: int = 60,
) -> Tuple[bool, int, int]:
    """
    Check if request is within rate limit.

    Args:
        limit_type: Type of rate limit to check
        identifier: Unique identifier (IP, connection id, etc.)
        limit: Max requests per window (uses config default if None)
        window_seconds: Time window in seconds

    Returns:
        Tuple of (allowed, current_count, limit)
    """
    from config import runtime_config

    if limit is None:
        limit = _default_limit(limit_type)

    # In production, deny requests when Redis is unavailable (fail-closed)
    fail_closed = runtime_config.agent_env == "production"

    try:
        from services.redis_client import get_redis
        redis = await get_redis()

        if redis.fallback_mode:
            if fail_closed:
                logger.warning("Rate limiting fail-closed (Redis unavailable in production)")
                return (False, 0, limit)
            logger.debug("Rate limiting disabled (Redis fallback mode)")
            return (True, 0, limit)

        key = f"{limit_type.value}:{identifier}"

        count = await redis.incr(key)

        # Set TTL on first request in window
        if count == 1:
            await redis.expire(key, window_seconds)

        allowed = count <= limit

        if not allowed:
            logger.warning(
                f"Rate limit exceeded: {limit_type.name} for {identifier} "
                f"({count}/{limit} in {window_seconds}s)"
            )

        return (allowed, count, limit)

    except Exception as e:
        if fail_closed:
            logger.error(f"Rate limit check failed (fail-closed): {e}")
            return (False, 0, limit)
        logger.warning(f"Rate limit check failed: {e}, allowing request")
        return (True, 0, limit)


async def get_rate_limit_remaining(
    limit_type: RateLimitType,
    identifier: str,
    limit: Optional[int] = None,
) -> Tuple[int, int]:
    """
    Get remaining requests in current window.

    Returns:
        Tuple of (remaining, reset_in_seconds)
    """
    if limit is None:
        limit = _default_limit(limit_type)

    try:
        from services.redis_client import get_redis
        redis = await get_redis()

        if redis.fallback_mode:
            return (limit, 0)

        key = f"{limit_type.value}:{identifier}"

        current = await redis.get(key)
        count = int(current) if current else 0
        remaining = max(0, limit - count)

        ttl = await redis.get_ttl(key)
        reset_in = ttl if ttl > 0 else 0

        return (remaining, reset_in)

    except Exception as e:
        logger.warning(f"Failed to get rate limit info: {e}")
        return (limit, 0)


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Rate limiting middleware for the public agent endpoints.

    WebSocket rate limiting is handled separately in the socket route.
    """

    # Endpoints to rate limit: path -> (type, window_seconds, methods)
    RATE_LIMITED_PATHS = {
        "/api/agent/search": (RateLimitType.AGENT_SEARCH, 60, {"GET"}),
        "/api/agent/inbox": (RateLimitType.AGENT_INBOX, 900, {"POST"}),  # 5 captures per 15 min
    }

    async def dispatch(self, request: Request, call_next) -> Response:
        """Process request with rate limiting."""
        path = request.url.path.rstrip("/")
        rule = self.RATE_LIMITED_PATHS.get(path)
        if rule is None or request.method not in rule[2]:
            return await call_next(request)

        limit_type, window, _ = rule
        client_ip = get_client_ip(request)
        allowed, count, limit = await check_rate_limit(limit_type, client_ip, window_seconds=window)

        if not allowed:
            remaining, reset_in = await get_rate_limit_remaining(limit_type, client_ip)
            return JSONResponse(
                status_code=429,
                content={
                    "success": False,
                    "error": {
                        "code": ErrorCode.RATE_LIMITED.value,
                        "message": "Too many requests. Please try again later.",
                        "details": None,
                        "recoverable": True,
                        "context": {"retry_after": reset_in},
                    },
                },
                headers={
                    "X-RateLimit-Limit": str(limit),
                    "X-RateLimit-Remaining": str(remaining),
                    "X-RateLimit-Reset": str(reset_in),
                    "Retry-After": str(reset_in),
                },
            )

        # Add rate limit headers to successful response
        response = await call_next(request)
        remaining, reset_in = await get_rate_limit_remaining(limit_type, client_ip)
        response.headers["X-RateLimit-Limit"] = str(limit)
        response.headers["X-RateLimit-Remaining"] = str(remaining)
        response.headers["X-RateLimit-Reset"] = str(reset_in)
        return response


async def check_ws_connection_limit(client_ip: str) -> Tuple[bool, str]:
    """
    Check WebSocket connection rate limit.

    Returns:
        Tuple of (allowed, error_message)
    """
    allowed, count, limit = await check_rate_limit(
        RateLimitType.WS_CONNECTION,
        client_ip,
    )

    if not allowed:
        return (False, f"Connection rate limit exceeded ({count}/{limit}/min)")

    return (True, "")


async def check_ws_message_limit(connection_id: str) -> Tuple[bool, str]:
    """
    Check WebSocket message rate limit.

    Returns:
        Tuple of (allowed, error_message)
    """
    allowed, count, limit = await check_rate_limit(
        RateLimitType.WS_MESSAGE,
        connection_id,
    )

    if not allowed:
        return (False, f"Message rate limit exceeded ({count}/{limit}/min)")

    return (True, "")
