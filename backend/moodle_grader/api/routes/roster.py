"""Gradebook import API routes."""

import uuid
import logging
from typing import Optional
from fastapi import APIRouter, Depends, File, Form, UploadFile

from moodle_grader.models import WorkflowState
from moodle_grader.services.roster import parse_roster
from moodle_grader.services.persistence.state_repository import StateRepository
from moodle_grader.api.dependencies import get_state_repository
from moodle_grader.api.validators.submission import require_session_id


logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/roster")
async def upload_roster(
    file: UploadFile = File(...),
    session_id: Optional[str] = Form(None),
    repository: StateRepository = Depends(get_state_repository)
) -> WorkflowState:
    """
    Import a gradebook export (CSV, XLSX, XLS or XML).

    A parse failure returns 400 and leaves any previously imported
    gradebook in the session untouched.
    """
    session_id = require_session_id(session_id) if session_id else uuid.uuid4().hex
    data = await file.read()

    gradebook = parse_roster(data)
    logger.info("Imported %d gradebook rows from %s", len(gradebook.grades), file.filename)

    state = await repository.get_state(session_id)
    state.gradebook = gradebook
    state.current_step = max(state.current_step, 2)
    state.highest_step = max(state.highest_step, state.current_step)
    await repository.save_state(state)
    return state
