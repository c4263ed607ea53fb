"""In-memory workflow state repository."""

import logging
from typing import Dict, Optional

from moodle_grader.models import WorkflowState
from .state_repository import StateRepository, decode_state


logger = logging.getLogger(__name__)


class MemoryStateRepository(StateRepository):
    """Keeps serialized state in process memory."""

    def __init__(self):
        self._states: Dict[str, str] = {}

    async def load_state(self, session_id: str) -> Optional[WorkflowState]:
        return decode_state(session_id, self._states.get(session_id))

    async def save_state(self, state: WorkflowState) -> bool:
        self._states[state.session_id] = state.model_dump_json()
        return True

    async def delete_state(self, session_id: str) -> bool:
        return self._states.pop(session_id, None) is not None

    async def initialize(self) -> None:
        logger.info("Initialized in-memory state repository")

    async def cleanup(self) -> None:
        self._states.clear()
