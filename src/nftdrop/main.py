"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from nftdrop.config import get_settings
from nftdrop.database import close_db, init_db
from nftdrop.health.router import router as health_router
from nftdrop.middleware import setup_middleware
from nftdrop.nfts.router import router as nfts_router
from nftdrop.redemption.router import router as bounties_router
from nftdrop.redis_client import close_redis, init_redis

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    await init_db(
        settings.database_url,
        isolation_level=settings.db_isolation_level,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_timeout=settings.db_pool_timeout_seconds,
    )
    await init_redis(settings.redis_url)
    logger.info("startup", environment=settings.environment, version=settings.app_version)

    yield

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="NFT Drop API",
        description="Bounty redemption and NFT transfer service",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(bounties_router)
    app.include_router(nfts_router)

    return app


app = create_app()
