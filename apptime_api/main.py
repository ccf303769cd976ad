"""AppTime Access FastAPI Application."""

from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded

from apptime_api.config import settings, validate_secret_key
from apptime_api.database import close_database
from apptime_api.logging_config import get_logger, setup_logging
from apptime_api.middleware import CorrelationIdMiddleware
from apptime_api.middleware.rate_limit import limiter, rate_limit_exceeded_handler
from apptime_api.routers import access, auth, health, profiles
from apptime_api.services.scheduler import start_scheduler, stop_scheduler

setup_logging(
    log_format=settings.log_format,
    log_level=settings.log_level,
    service_name=settings.service_name,
)
validate_secret_key()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Migrations are applied by `alembic upgrade head` before uvicorn starts
    logger.info("AppTime API started")

    start_scheduler()

    yield

    logger.info("Shutting down AppTime API...")
    stop_scheduler()
    await close_database()
    logger.info("AppTime API shutdown complete")


app = FastAPI(
    title="AppTime Access API",
    description="Time-boxed delegated access verified by rotating codes",
    version="0.1.0",
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

# Middleware (order matters: first added = last executed)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(CorrelationIdMiddleware)

app.include_router(health.router)
app.include_router(auth.router)
app.include_router(access.router)
app.include_router(access.self_router)
app.include_router(profiles.router)


@app.get("/")
async def root() -> dict[str, Any]:
    """Root endpoint."""
    return {
        "name": "AppTime Access API",
        "version": "0.1.0",
        "docs": "/docs",
    }
