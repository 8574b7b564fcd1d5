"""
Amicale booking API.

Serves the booking core of the association's member app: house stays
blocked on a per-house calendar, event places counted against a hard cap,
and the responsable-driven lifecycle whose calendar and email effects run
after the response.
"""

from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from amicale.api.middleware import RequestLoggingMiddleware
from amicale.api.router import api_router
from amicale.core.config import get_settings
from amicale.core.errors import BookingError, booking_error_handler, validation_error_handler
from amicale.core.logging import get_logger, setup_logging
from amicale.core.metrics import metrics_endpoint
from amicale.db.session import get_db
from amicale.infrastructure import close_redis, get_redis
from amicale.services.cache_service import get_cache_stats

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    logger = get_logger(__name__)
    logger.info(
        "application_starting",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
        admission_strategy=settings.ADMISSION_STRATEGY,
        email_enabled=settings.EMAIL_ENABLED,
    )

    if await get_redis() is None:
        logger.warning("redis_unavailable", message="Serving without cache or admission gate")

    try:
        yield
    finally:
        await close_redis()
        logger.info("application_shutdown")


async def health_check(db: AsyncSession = Depends(get_db)):
    """Liveness for Docker and the load balancer, with database and cache state."""
    await db.execute(text("SELECT 1"))
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "database": "ok",
        "cache": await get_cache_stats(),
    }


async def metrics():
    return metrics_endpoint()


async def root():
    return {"message": f"Welcome to {settings.APP_NAME}", "version": settings.APP_VERSION, "docs": "/docs"}


def create_app() -> FastAPI:
    application = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="Bookings for the association's house stays and events",
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    application.add_middleware(RequestLoggingMiddleware)

    application.add_exception_handler(BookingError, booking_error_handler)
    application.add_exception_handler(RequestValidationError, validation_error_handler)

    application.include_router(api_router)
    application.add_api_route("/health", health_check, methods=["GET"], tags=["Health"])
    application.add_api_route("/metrics", metrics, methods=["GET"], tags=["Health"], include_in_schema=False)
    application.add_api_route("/", root, methods=["GET"], tags=["Root"])
    return application


app = create_app()
