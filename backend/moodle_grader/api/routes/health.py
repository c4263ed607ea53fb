"""Health check API routes."""

from fastapi import APIRouter, Depends

from moodle_grader.core.config import settings
from moodle_grader.services.persistence.state_repository import StateRepository
from moodle_grader.api.dependencies import get_state_repository


router = APIRouter()


@router.get("/health")
async def health_check(repository: StateRepository = Depends(get_state_repository)):
    """Health check endpoint."""
    return {
        "status": "healthy",
        "version": "1.0.0",
        "llm_provider": settings.llm_provider,
        "llm_model": settings.llm_model,
        "state_backend": type(repository).__name__
    }
