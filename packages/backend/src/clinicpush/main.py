"""FastAPI application factory.

Learn: App factory pattern — create_app() returns a configured FastAPI
instance. The lifespan builds the process-scoped dependencies exactly
once: Redis client → ConnectionStore, HTTP gateway client → Publisher.
They hang off app.state and are reused by every request. No connection
list is ever cached here; the store is re-read on every publish.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from clinicpush import __version__
from clinicpush.api import api_router, channel_router
from clinicpush.config import settings
from clinicpush.realtime.connection_store import ConnectionStore, create_redis
from clinicpush.realtime.gateway import build_gateway
from clinicpush.realtime.publisher import Publisher

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Learn: Anything before `yield` runs at startup, after `yield` runs at
    shutdown. An unreachable Redis only logs a warning: the client
    reconnects lazily, and handshakes fail with 500 until it's back.
    """
    logger.info(
        "clinicpush.starting",
        version=__version__,
        environment=settings.environment,
        realtime_enabled=settings.realtime_enabled,
    )

    redis = create_redis(settings.redis_url)
    try:
        await redis.ping()
        logger.info("clinicpush.redis_connected", url=settings.redis_url)
    except Exception as e:
        logger.warning("clinicpush.redis_unavailable", error=str(e))

    store = ConnectionStore(
        redis,
        key_prefix=settings.key_prefix,
        ttl_seconds=settings.connection_ttl_seconds,
    )
    gateway = build_gateway(settings)
    if gateway is None:
        logger.warning("clinicpush.gateway_disabled", reason="CLINICPUSH_GATEWAY_ENDPOINT not set")

    app.state.redis = redis
    app.state.store = store
    app.state.publisher = Publisher(
        store,
        gateway,
        doctor_scoped_routing=settings.doctor_scoped_routing,
    )

    yield

    logger.info("clinicpush.shutdown")
    await app.state.publisher.drain()
    if gateway is not None:
        await gateway.close()
    await redis.aclose()


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    app = FastAPI(
        title="Clinic Push",
        description="Real-time queue notifications for clinic front-desk and doctor screens",
        version=__version__,
        lifespan=lifespan,
    )

    # ── Middleware stack ──────────────────────────────────────
    # Starlette runs middleware in reverse order of registration.
    # Request flow: CORS → Security → RequestId → handler
    from clinicpush.middleware.request_id import RequestIdMiddleware
    from clinicpush.middleware.security import SecurityHeadersMiddleware

    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(api_router)
    app.include_router(channel_router)

    return app


# Default app instance (used by uvicorn: clinicpush.main:app)
app = create_app()
