"""
Application entrypoint for the nudge scheduler API.
"""

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from app.config import settings
from app.features.nudges import nudges_router
from app.features.nudges.services.refresh_service import nudge_refresh_service
from app.infrastructure.observability.logging import get_logger, setup_logging
from app.routes import health

# Setup logging before creating the app
setup_logging(log_level=settings.LOG_LEVEL)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log startup configuration and ask for reminder permission up front."""
    logger.info(
        "Application starting",
        environment=settings.environment,
        debug=settings.debug,
        capacity=settings.NUDGE_CAPACITY,
        horizon_hours=settings.NUDGE_HORIZON_HOURS,
        timezone=settings.NUDGE_TIMEZONE,
    )

    granted = await nudge_refresh_service.ensure_permission()
    logger.info("Reminder permission resolved", permission_granted=granted)

    yield

    logger.info("Application shutting down")


app = FastAPI(
    title="Nudge Scheduler",
    description="Budgeted reach-out reminders for tracked contacts",
    version="0.1.0",
    lifespan=lifespan,
)

# Include routers
app.include_router(health.router)
app.include_router(nudges_router)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log HTTP requests with timing."""
    start_time = time.time()
    response = await call_next(request)
    process_time = (time.time() - start_time) * 1000

    logger.info(
        "HTTP request completed",
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=round(process_time, 2),
    )
    return response


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
