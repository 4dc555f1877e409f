"""
Board Review API - FastAPI backend for the client application review workflow
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from boardreview import __version__
from boardreview.database import dispose_engine
from boardreview.routers import applications, notifications, review
from boardreview.scheduler import shutdown_scheduler, start_scheduler
from boardreview.settings import get_settings

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# Lifecycle management
@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle - startup and shutdown"""
    # Startup
    if settings.enable_scheduler:
        start_scheduler()
    else:
        logger.info("Scheduler disabled (set ENABLE_SCHEDULER=true to enable)")
    logger.info("Board Review API started")
    yield
    # Shutdown
    shutdown_scheduler()
    await dispose_engine()
    logger.info("Board Review API shutdown complete")


app = FastAPI(
    title="Board Review API",
    description="Client application review, voting and decision workflow",
    version=__version__,
    lifespan=lifespan,
)

app.include_router(applications.router)
app.include_router(review.router)
app.include_router(notifications.router)


@app.get("/")
async def root():
    """Health check"""
    return {"status": "ok", "message": "Board Review API is running"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
