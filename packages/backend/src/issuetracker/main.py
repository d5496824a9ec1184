"""FastAPI application factory.

Learn: App factory pattern — create_app() returns a configured FastAPI
instance. Lifespan manages startup/shutdown (database, Redis).
Middleware, CORS, and routers all registered here.

The real-time pieces (ConnectionRegistry + EventDispatcher) are built per
app and parked on app.state, so every app instance, including each test
app, gets its own empty registry.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from issuetracker import __version__
from issuetracker.api import api_router
from issuetracker.config import settings
from issuetracker.middleware.rate_limit import RateLimitMiddleware
from issuetracker.middleware.request_id import RequestIdMiddleware
from issuetracker.middleware.security import SecurityHeadersMiddleware
from issuetracker.realtime.dispatcher import EventDispatcher
from issuetracker.realtime.registry import ConnectionRegistry

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Learn: Anything before `yield` runs at startup, after `yield` runs at
    shutdown. Open streams end when uvicorn cancels their generators; each
    one deregisters its own sink on the way out.
    """
    logger.info(
        "issuetracker.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
    )

    from issuetracker.db.redis import close_redis, init_redis
    try:
        await init_redis()
        logger.info("issuetracker.redis_connected", url=settings.redis_url)
    except Exception as e:
        # Redis is optional — only rate limiting depends on it
        logger.warning("issuetracker.redis_unavailable", error=str(e))
        await close_redis()

    yield

    logger.info(
        "issuetracker.shutdown",
        open_streams=len(app.state.registry),
    )
    await close_redis()

    from issuetracker.db.engine import engine
    await engine.dispose()


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    app = FastAPI(
        title="Issue Tracker",
        description="Collaborative issue tracker with live notifications",
        version=__version__,
        lifespan=lifespan,
    )

    registry = ConnectionRegistry()
    app.state.registry = registry
    app.state.dispatcher = EventDispatcher(registry)

    # ── Middleware stack ──────────────────────────────────────
    # Starlette middleware executes in reverse order of registration.
    # Request flow: CORS → RateLimit → Security → RequestId → handler
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        default_rpm=settings.rate_limit_rpm,
        auth_rpm=settings.rate_limit_auth_rpm,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router)
    return app


# Default app instance (used by uvicorn: issuetracker.main:app)
app = create_app()
