"""
Khisima Live Agent
FastAPI backend for the site chat widget, admin presence and offline inbox
"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from routers import agent, agent_socket
from middleware.rate_limit import RateLimitMiddleware
from errors import ErrorCode, install_exception_handlers
from logging_config import setup_logging
from config import runtime_config

setup_logging()
logger = logging.getLogger(__name__)

APP_NAME = "Khisima Live Agent"
APP_VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown events"""
    # Startup
    try:
        from services.redis_client import get_redis

        redis = await get_redis()
        health = await redis.health_check()
        if health.get("status") == "connected":
            logger.info(f"Redis connected (latency: {health.get('latency_ms', '?')}ms)")
        elif health.get("status") == "fallback":
            logger.warning("Redis unavailable, using in-memory fallback (rate limits relaxed)")
        else:
            logger.warning(f"Redis status: {health.get('status')}")
    except Exception as e:
        logger.warning(f"Redis connection failed: {e}")

    from services.admin_auth import get_auth_manager
    get_auth_manager().initialize()

    from agent.runtime import start_runtime
    app.state.agent = await start_runtime()

    logger.info(f"{APP_NAME} v{APP_VERSION} ready ({runtime_config.agent_env})")

    yield

    # Shutdown
    try:
        await app.state.agent.close()
    except Exception as e:
        logger.debug(f"Agent runtime close error: {e}")

    try:
        from services.database import close_database
        await close_database()
        logger.info("PostgreSQL pool closed")
    except Exception as e:
        logger.debug(f"PostgreSQL close error: {e}")

    try:
        from services.redis_client import close_redis
        await close_redis()
        logger.info("Redis connection closed")
    except Exception as e:
        logger.debug(f"Redis close error: {e}")

    logger.info(f"{APP_NAME} signing off")


app = FastAPI(
    title=APP_NAME,
    description="Live chat, admin presence and offline inbox for khisima.com",
    version=APP_VERSION,
    lifespan=lifespan,
)


# Security Headers Middleware
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all HTTP responses."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response


# Chat payloads are small; anything bigger is not a widget request
MAX_BODY_SIZE = 64 * 1024


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """Reject requests with bodies exceeding the size limit."""

    async def dispatch(self, request: Request, call_next):
        content_length = request.headers.get("content-length")
        if content_length and content_length.isdigit() and int(content_length) > MAX_BODY_SIZE:
            return JSONResponse(
                status_code=413,
                content={
                    "success": False,
                    "error": {
                        "code": ErrorCode.VALIDATION_INVALID_FORMAT.value,
                        "message": f"Request body too large (max {MAX_BODY_SIZE // 1024}KB)",
                        "details": None,
                        "recoverable": True,
                        "context": None,
                    },
                },
            )
        return await call_next(request)


app.add_middleware(SecurityHeadersMiddleware)

app.add_middleware(RequestSizeLimitMiddleware)

# Rate limiting middleware (Redis-backed)
app.add_middleware(RateLimitMiddleware)

# CORS - site origins from config
app.add_middleware(
    CORSMiddleware,
    allow_origins=runtime_config.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

install_exception_handlers(app)

# API Routers
app.include_router(agent.router, prefix="/api/agent", tags=["agent"])
app.include_router(agent_socket.router, tags=["agent-realtime"])


@app.get("/health")
async def health(request: Request):
    """Health check - reports storage backend, Redis and realtime connections."""
    checks = {}

    try:
        from services.redis_client import get_redis
        redis = await get_redis()
        redis_health = await redis.health_check()
        checks["redis"] = redis_health.get("status", "unknown")
    except Exception:
        checks["redis"] = "down"

    try:
        from services.database import get_database
        db = await get_database()
        db_health = await db.health_check()
        checks["postgres"] = db_health.get("status", "unknown")
    except Exception:
        checks["postgres"] = "down"

    runtime = getattr(request.app.state, "agent", None)
    all_ok = runtime is not None and all(v in ("connected", "fallback") for v in checks.values())
    return {
        "status": "healthy" if all_ok else "degraded",
        "service": APP_NAME,
        "version": APP_VERSION,
        "store": runtime.store.backend if runtime else "unavailable",
        "checks": checks,
        "realtime": runtime.hub.stats() if runtime else {},
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        app,
        host="0.0.0.0",
        port=8000,
        ws_max_size=65536,
        ws_ping_interval=runtime_config.ws_ping_interval,
        ws_ping_timeout=runtime_config.ws_ping_timeout,
    )
