"""
Shuttle Ticketing API - Main Application Entry Point

A shuttle seat-reservation service demonstrating:
- Seat-level reservation with row locks, compare-and-swap and a partial
  unique index, so a seat is never sold twice
- A 30-minute payment hold reclaimed by a background expiry reaper
- Staff settlement of uploaded payment proofs
- Structured logging with request correlation and Prometheus metrics
"""

import asyncio
from contextlib import asynccontextmanager, suppress
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from shuttle.core.config import get_settings
from shuttle.core.exceptions import register_exception_handlers
from shuttle.core.logging import setup_logging, get_logger
from shuttle.core.metrics import metrics_endpoint
from shuttle.api.router import api_router
from shuttle.api.middleware import RequestLoggingMiddleware
from shuttle.services.cache_service import get_redis, close_redis, get_cache_stats
from shuttle.tasks.expiry import run_forever

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: startup and shutdown hooks."""
    setup_logging()
    logger = get_logger(__name__)

    logger.info(
        "application_starting",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
    )

    redis_client = await get_redis()
    if redis_client:
        logger.info("redis_ready")
    else:
        logger.warning("redis_unavailable", message="Running without cache")

    reaper = None
    if settings.REAPER_ENABLED:
        reaper = asyncio.create_task(run_forever(), name="expiry-reaper")

    yield

    if reaper is not None:
        reaper.cancel()
        with suppress(asyncio.CancelledError):
            await reaper
        logger.info("reaper_stopped")

    await close_redis()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Shuttle ticketing API with seat-level reservations and payment verification",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestLoggingMiddleware)

register_exception_handlers(app)

app.include_router(api_router)


@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint for Docker and load balancers."""
    cache_stats = await get_cache_stats()
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "reaper_enabled": settings.REAPER_ENABLED,
        "cache": cache_stats,
    }


@app.get("/metrics", tags=["Health"], include_in_schema=False)
async def metrics():
    return metrics_endpoint()


@app.get("/", tags=["Root"])
async def root():
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/docs",
    }
