"""Redis-based workflow state repository."""

import logging
from typing import Optional
import redis.asyncio as redis
from redis.exceptions import RedisError

from moodle_grader.models import WorkflowState
from moodle_grader.core.config import settings
from .state_repository import StateRepository, decode_state


logger = logging.getLogger(__name__)


class RedisStateRepository(StateRepository):
    """Stores state as JSON strings with a sliding TTL."""

    def __init__(
        self,
        redis_url: Optional[str] = None,
        key_prefix: Optional[str] = None,
        ttl: Optional[int] = None,
        client: Optional[redis.Redis] = None
    ):
        """
        Initialize the Redis repository.

        Args:
            redis_url: Redis connection URL (defaults to settings.redis_url)
            key_prefix: Prefix for Redis keys
            ttl: Expiry of stored state in seconds
            client: Pre-built client, used instead of connecting to ``redis_url``
        """
        self.redis_url = redis_url or settings.redis_url
        self.key_prefix = key_prefix or settings.state_key_prefix
        self.ttl = ttl or settings.state_ttl
        self._redis: Optional[redis.Redis] = client

    async def initialize(self) -> None:
        """Initialize the Redis connection."""
        if self._redis is None:
            self._redis = redis.from_url(
                self.redis_url,
                encoding="utf-8",
                decode_responses=True
            )
        await self._redis.ping()
        logger.info("Initialized Redis state repository")

    async def cleanup(self) -> None:
        """Close the Redis connection."""
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None

    def _state_key(self, session_id: str) -> str:
        return f"{self.key_prefix}state:{session_id}"

    async def _client(self) -> redis.Redis:
        if self._redis is None:
            await self.initialize()
        return self._redis

    async def load_state(self, session_id: str) -> Optional[WorkflowState]:
        try:
            client = await self._client()
            raw = await client.get(self._state_key(session_id))
        except RedisError as e:
            logger.warning("Could not read state for session %s: %s", session_id, e)
            return None
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8", errors="replace")
        return decode_state(session_id, raw)

    async def save_state(self, state: WorkflowState) -> bool:
        try:
            client = await self._client()
            await client.set(self._state_key(state.session_id), state.model_dump_json(), ex=self.ttl)
        except RedisError as e:
            logger.warning("Could not save state for session %s: %s", state.session_id, e)
            return False
        return True

    async def delete_state(self, session_id: str) -> bool:
        try:
            client = await self._client()
            deleted = await client.delete(self._state_key(session_id))
        except RedisError as e:
            logger.warning("Could not delete state for session %s: %s", session_id, e)
            return False
        return deleted > 0
