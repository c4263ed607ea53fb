"""Abstract workflow state repository interface."""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from pydantic import ValidationError

from moodle_grader.models import WorkflowState


logger = logging.getLogger(__name__)

MIN_STEP = 1
MAX_STEP = 4


def normalize_step(step: int) -> int:
    """Steps outside the wizard fall back to the first step."""
    return step if MIN_STEP <= step <= MAX_STEP else MIN_STEP


def decode_state(session_id: str, raw: Optional[str]) -> Optional[WorkflowState]:
    """Parse stored state, treating corrupt data as absent."""
    if not raw:
        return None
    try:
        state = WorkflowState.model_validate_json(raw)
    except ValidationError as e:
        logger.warning("Discarding corrupt state for session %s: %s", session_id, e.error_count())
        return None
    state.session_id = session_id
    state.current_step = normalize_step(state.current_step)
    state.highest_step = max(normalize_step(state.highest_step), state.current_step)
    return state


class StateRepository(ABC):
    """
    Best-effort store for resumable wizard state.

    Reads never fail: missing or corrupt state comes back as None.
    Writes report success instead of raising.
    """

    @abstractmethod
    async def load_state(self, session_id: str) -> Optional[WorkflowState]:
        """Get stored state for a session, or None."""
        pass

    @abstractmethod
    async def save_state(self, state: WorkflowState) -> bool:
        """Store state. Returns False if the write failed."""
        pass

    @abstractmethod
    async def delete_state(self, session_id: str) -> bool:
        """Delete state. Returns True if the session existed."""
        pass

    @abstractmethod
    async def initialize(self) -> None:
        """Initialize the repository (e.g., connect to a server)."""
        pass

    @abstractmethod
    async def cleanup(self) -> None:
        """Clean up resources (e.g., close connections)."""
        pass

    async def get_state(self, session_id: str) -> WorkflowState:
        """Get stored state, falling back to a fresh session."""
        state = await self.load_state(session_id)
        return state if state is not None else WorkflowState(session_id=session_id)
