"""State repository factory."""

import logging
from typing import Dict, Type, Optional

from moodle_grader.core.config import settings
from .state_repository import StateRepository
from .memory_repository import MemoryStateRepository
from .redis_repository import RedisStateRepository


logger = logging.getLogger(__name__)


class StateRepositoryFactory:
    """Factory for creating state repositories."""

    # Registry of available repository types
    _repositories: Dict[str, Type[StateRepository]] = {
        "memory": MemoryStateRepository,
        "redis": RedisStateRepository,
    }

    @classmethod
    def create_repository(
        cls,
        repository_type: Optional[str] = None,
        **kwargs
    ) -> StateRepository:
        """
        Create a state repository instance.

        Args:
            repository_type: "memory" or "redis". If None, uses settings.state_backend,
                then Redis only when a Redis URL is configured.
            **kwargs: Additional repository-specific arguments

        Raises:
            ValueError: If repository type is not supported
        """
        repository_type = repository_type or settings.state_backend or cls._auto_select_repository()

        if repository_type not in cls._repositories:
            available = ", ".join(cls._repositories.keys())
            raise ValueError(f"Unknown repository type: {repository_type}. Available: {available}")

        logger.info("Using %s state repository", repository_type)
        return cls._repositories[repository_type](**kwargs)

    @classmethod
    def _auto_select_repository(cls) -> str:
        return "redis" if settings.redis_url else "memory"

    @classmethod
    def register_repository(cls, name: str, repository_class: Type[StateRepository]) -> None:
        """Register a new repository type."""
        if not issubclass(repository_class, StateRepository):
            raise ValueError("Repository class must inherit from StateRepository")

        cls._repositories[name] = repository_class
