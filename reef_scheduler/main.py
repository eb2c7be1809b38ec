"""
Main FastAPI application entry point.

Hosts the operator API and, when enabled, the scheduler loop on a
background thread for the lifetime of the process.
"""
import asyncio
import logging
from contextlib import asynccontextmanager

import redis
from fastapi import FastAPI
from fastapi.responses import JSONResponse
from sqlalchemy import text

from . import __version__
from .config import settings
from .database import engine, init_db
from .logging import configure_logging

logger = logging.getLogger(__name__)

SHUTDOWN_JOIN_TIMEOUT_SECONDS = 30.0


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for startup and shutdown events.
    """
    from .wiring.bootstrap import get_scheduler_service

    configure_logging(settings.log_level)
    logger.info("Starting Reef scheduler API (database: %s)", settings.database_url)

    init_db()
    logger.info("Database initialized")

    service = None
    if settings.scheduler_enabled:
        service = get_scheduler_service()
        service.start()
    else:
        logger.warning("Scheduler loop disabled via SCHEDULER_ENABLED=false")

    yield

    logger.info("Shutting down Reef scheduler API")
    if service is not None:
        await asyncio.to_thread(service.stop, SHUTDOWN_JOIN_TIMEOUT_SECONDS)


# Create FastAPI application
app = FastAPI(
    title="Reef Scheduler API",
    description="Periodic profile scheduler with cron and interval schedules",
    version=__version__,
    lifespan=lifespan,
)


@app.get("/livez")
async def liveness():
    """Liveness probe - zero dependencies, confirms process is responsive."""
    return {"status": "ok"}


def _check_db() -> bool:
    with engine.connect() as conn:
        return conn.execute(text("SELECT 1")).scalar() == 1


def _check_broker() -> bool:
    client = redis.Redis.from_url(
        settings.celery_broker_url, socket_connect_timeout=2, socket_timeout=2
    )
    try:
        return bool(client.ping())
    finally:
        client.close()


@app.get("/readyz")
async def readiness():
    """Readiness probe - checks database and Celery broker connectivity.

    The broker is a soft dependency: without it scheduled executions fail
    and are recorded as failures, but the API itself keeps serving.
    """
    checks = {}
    healthy = True

    try:
        if await asyncio.to_thread(_check_db):
            checks["database"] = "ok"
        else:
            checks["database"] = "error: unexpected result"
            healthy = False
    except Exception as e:
        checks["database"] = f"error: {type(e).__name__}"
        healthy = False

    try:
        if await asyncio.to_thread(_check_broker):
            checks["broker"] = "ok"
        else:
            checks["broker"] = "warning: unavailable"
    except Exception as e:
        checks["broker"] = f"warning: {type(e).__name__}"

    status_code = 200 if healthy else 503
    status_label = "ok" if healthy else "unhealthy"
    if healthy and checks.get("broker", "").startswith("warning"):
        status_label = "degraded"

    return JSONResponse(
        content={"status": status_label, "checks": checks},
        status_code=status_code,
    )


# Include API routers
from .api.v1.router import router as api_router  # noqa: E402
app.include_router(api_router, prefix="/api/v1")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.api_host, port=settings.api_port)
