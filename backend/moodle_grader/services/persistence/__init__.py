"""Persistence layer module."""

from .state_repository import StateRepository
from .memory_repository import MemoryStateRepository
from .redis_repository import RedisStateRepository
from .factory import StateRepositoryFactory

__all__ = [
    "StateRepository",
    "MemoryStateRepository",
    "RedisStateRepository",
    "StateRepositoryFactory"
]
