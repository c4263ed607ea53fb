"""Main FastAPI application."""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI

from moodle_grader.core.config import settings
from moodle_grader.api.endpoints import router
from moodle_grader.api.dependencies import state_repository
from moodle_grader.middleware.cors import setup_cors_middleware
from moodle_grader.middleware.error_handling import setup_error_handling_middleware


logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle."""
    # Startup
    await state_repository.initialize()
    yield
    # Shutdown
    await state_repository.cleanup()


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    debug=settings.debug,
    lifespan=lifespan
)

# Configure middleware
setup_cors_middleware(app)
setup_error_handling_middleware(app)

# Include routers
app.include_router(router, prefix=settings.api_prefix)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Moodle Grader Backend API",
        "version": "1.0.0",
        "docs": "/docs"
    }
