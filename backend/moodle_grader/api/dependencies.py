"""Shared service instances for the API routes."""

from moodle_grader.services.llm.service import GradingLLMService
from moodle_grader.services.persistence.factory import StateRepositoryFactory
from moodle_grader.services.persistence.state_repository import StateRepository


# Shared instances, initialized by the application lifespan
state_repository = StateRepositoryFactory.create_repository()
grading_service = GradingLLMService()


def get_state_repository() -> StateRepository:
    return state_repository


def get_grading_service() -> GradingLLMService:
    return grading_service
