"""
Ticket Booking API - Main Application Entry Point

An event ticket-booking service demonstrating:
- Per-event row locking so capacity can never be oversold
- A FIFO waiting list with automatic promotion on cancellation
- Best-effort notifications dispatched after commit
- Structured logging with request correlation and Prometheus metrics
"""

from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ticketbooth.api.middleware import RequestLoggingMiddleware
from ticketbooth.api.router import api_router
from ticketbooth.core.config import get_settings
from ticketbooth.core.exceptions import register_exception_handlers
from ticketbooth.core.logging import get_logger, setup_logging
from ticketbooth.core.metrics import metrics_endpoint
from ticketbooth.db.session import engine, get_read_db, init_models
from ticketbooth.services.cache_service import close_redis, get_cache_stats, get_redis
from ticketbooth.services.notification_service import get_notification_service

settings = get_settings()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle: startup and shutdown hooks."""
    setup_logging()

    logger.info(
        "application_starting",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
    )

    if settings.DB_AUTO_CREATE:
        await init_models(engine)

    redis_client = await get_redis()
    if redis_client:
        logger.info("redis_ready")
    else:
        logger.warning("redis_unavailable", message="Running without cache")

    yield

    notifier = get_notification_service()
    if notifier.pending:
        logger.info("draining_notifications", pending=notifier.pending)
    await notifier.drain()
    await close_redis()
    await engine.dispose()
    logger.info("application_shutdown")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    debug=settings.DEBUG,
    description="Event ticket booking with capacity control and a FIFO waiting list",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(RequestLoggingMiddleware)
register_exception_handlers(app)
app.include_router(api_router)


@app.get("/health", tags=["Health"])
async def health_check(db: AsyncSession = Depends(get_read_db)):
    """Health check for Docker and load balancers; degraded when the database is unreachable."""
    try:
        await db.execute(text("SELECT 1"))
        database = "connected"
    except SQLAlchemyError as e:
        logger.error("health_database_unavailable", error=str(e))
        database = "unavailable"

    cache_stats = await get_cache_stats()
    return {
        "status": "healthy" if database == "connected" else "degraded",
        "database": database,
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
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
