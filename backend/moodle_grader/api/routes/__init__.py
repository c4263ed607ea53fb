"""API routes module."""

from .grading import router as grading_router
from .health import router as health_router
from .roster import router as roster_router
from .session import router as session_router

__all__ = [
    "grading_router",
    "health_router",
    "roster_router",
    "session_router"
]
