"""
Coffeetrix - Main FastAPI Application
"""

import logging
from fastapi import FastAPI
from contextlib import asynccontextmanager

from .config import settings
from .api import feishu_router, admin_router
from .core.logging_config import setup_logging
from .core.runtime import (
    build_context,
    get_context,
    init_context,
    reset_context,
    start_runtime,
    stop_runtime,
)

# Logger will be initialized after setup_logging() is called
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events."""
    # Startup
    setup_logging(settings)

    ctx = build_context(settings)
    await start_runtime(ctx, settings)
    init_context(ctx)

    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Database: {settings.database_path}")
    logger.info(f"Signup window: {settings.signup_window_seconds / 60:g} min")
    logger.info(f"Test mode: {settings.test_mode}")
    yield
    # Shutdown
    logger.info(f"Shutting down {settings.app_name}")
    reset_context()
    await stop_runtime(ctx)


# Create FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Random Coffee bot: daily signup windows and small-group matching for group chats",
    lifespan=lifespan
)

# Include routers
app.include_router(feishu_router)
app.include_router(admin_router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "app": settings.app_name,
        "version": settings.app_version,
        "status": "running",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    try:
        ctx = get_context()
        scheduler_running = ctx.scheduler.running
    except RuntimeError:
        scheduler_running = False
    return {
        "status": "healthy",
        "scheduler": "running" if scheduler_running else "stopped",
        "test_mode": settings.test_mode,
        "version": settings.app_version
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "coffeetrix.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug
    )
