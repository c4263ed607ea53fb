"""Main API endpoints aggregator."""

from fastapi import APIRouter

from .routes.grading import router as grading_router
from .routes.health import router as health_router
from .routes.roster import router as roster_router
from .routes.session import router as session_router


# Create main router
router = APIRouter()

# Include modular route modules
router.include_router(roster_router, tags=["roster"])
router.include_router(grading_router, tags=["grading"])
router.include_router(session_router, tags=["session"])
router.include_router(health_router, tags=["health"])
