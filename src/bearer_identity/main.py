"""FastAPI application factory.

Learn: create_app() returns a configured FastAPI instance. The lifespan
connects the optional Redis client used for rate limiting and disposes the
database engine on shutdown. Middleware, exception handlers and routers are
all registered here; each concern lives in its own module.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from bearer_identity import __version__
from bearer_identity.api import api_router
from bearer_identity.config import settings
from bearer_identity.exception_handlers import request_validation_handler

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle."""
    logger.info(
        "identity.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
    )

    import redis.asyncio as aioredis

    app.state.redis = None
    try:
        client = aioredis.from_url(
            settings.redis_url, encoding="utf-8", decode_responses=True
        )
        await client.ping()
        app.state.redis = client
        logger.info("identity.redis_connected")
    except Exception as e:
        # Without Redis, rate limiting is off
        logger.warning("identity.redis_unavailable", error=str(e))

    yield

    logger.info("identity.shutdown")

    if app.state.redis is not None:
        await app.state.redis.aclose()
        app.state.redis = None

    from bearer_identity.db.engine import engine
    await engine.dispose()


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    app = FastAPI(
        title="Bearer Identity",
        description="Account registration, login and bearer token service",
        version=__version__,
        lifespan=lifespan,
    )

    # ── Middleware stack ──────────────────────────────────────
    # Note: Starlette middleware executes in reverse order of registration.
    # Request flow: RequestId → Security → RateLimit → CORS → handler

    from bearer_identity.middleware.rate_limit import RateLimitMiddleware
    from bearer_identity.middleware.request_id import RequestIdMiddleware
    from bearer_identity.middleware.security import SecurityHeadersMiddleware

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(
        RateLimitMiddleware,
        default_rpm=settings.rate_limit_rpm,
        auth_rpm=settings.rate_limit_auth_rpm,
    )
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestIdMiddleware)

    app.add_exception_handler(RequestValidationError, request_validation_handler)

    app.include_router(api_router)

    return app


# Default app instance (used by uvicorn: bearer_identity.main:app)
app = create_app()
