"""Workflow session, review and export API routes."""

import logging
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response

from moodle_grader.core.exceptions import SessionNotFoundError
from moodle_grader.models import GradeUpdate, ReviewStatus, RosterRow, StepUpdate, WorkflowState
from moodle_grader.services import review
from moodle_grader.services.roster import generate_csv
from moodle_grader.services.persistence.state_repository import StateRepository, normalize_step
from moodle_grader.api.dependencies import get_state_repository
from moodle_grader.api.validators.submission import require_session_id


logger = logging.getLogger(__name__)
router = APIRouter(prefix="/session")


async def load_graded_state(repository: StateRepository, session_id: str) -> WorkflowState:
    """Stored state that has a gradebook, or SessionNotFoundError."""
    require_session_id(session_id)
    state = await repository.load_state(session_id)
    if state is None or state.gradebook is None:
        raise SessionNotFoundError(session_id)
    return state


@router.get("/{session_id}")
async def get_session(
    session_id: str,
    repository: StateRepository = Depends(get_state_repository)
) -> WorkflowState:
    """Get the saved wizard state, or a fresh one when nothing is stored."""
    require_session_id(session_id)
    return await repository.get_state(session_id)


@router.delete("/{session_id}")
async def reset_session(
    session_id: str,
    repository: StateRepository = Depends(get_state_repository)
) -> dict:
    """Clear all saved state for a session."""
    require_session_id(session_id)
    deleted = await repository.delete_state(session_id)
    return {"session_id": session_id, "deleted": deleted}


@router.put("/{session_id}/step")
async def set_step(
    session_id: str,
    update: StepUpdate,
    repository: StateRepository = Depends(get_state_repository)
) -> WorkflowState:
    """Move the wizard to another step."""
    require_session_id(session_id)
    state = await repository.get_state(session_id)
    state.current_step = normalize_step(update.step)
    state.highest_step = max(state.highest_step, state.current_step)
    await repository.save_state(state)
    return state


@router.patch("/{session_id}/grades/{index}")
async def edit_grade(
    session_id: str,
    index: int,
    update: GradeUpdate,
    repository: StateRepository = Depends(get_state_repository)
) -> RosterRow:
    """Edit one row's grade or feedback, marking it reviewed."""
    state = await load_graded_state(repository, session_id)
    try:
        row = review.update_grade(state.gradebook.grades, index, update.grade, update.feedback)
    except IndexError as e:
        raise HTTPException(status_code=404, detail=str(e))

    await repository.save_state(state)
    return row


@router.post("/{session_id}/approve-all")
async def approve_all(
    session_id: str,
    repository: StateRepository = Depends(get_state_repository)
) -> ReviewStatus:
    """Mark every row as reviewed."""
    state = await load_graded_state(repository, session_id)
    review.approve_all(state.gradebook.grades)
    await repository.save_state(state)
    return review.review_status(state.gradebook.grades)


@router.get("/{session_id}/review-status")
async def get_review_status(
    session_id: str,
    repository: StateRepository = Depends(get_state_repository)
) -> ReviewStatus:
    """Report which rows still need instructor review."""
    state = await load_graded_state(repository, session_id)
    return review.review_status(state.gradebook.grades)


@router.get("/{session_id}/export")
async def export_grades(
    session_id: str,
    repository: StateRepository = Depends(get_state_repository)
) -> Response:
    """Download the gradebook as a Moodle-compatible CSV once every row is reviewed."""
    state = await load_graded_state(repository, session_id)
    status = review.review_status(state.gradebook.grades)
    if not status.all_reviewed:
        raise HTTPException(
            status_code=409,
            detail=f"{len(status.pending)} grades still need review before export"
        )

    csv_text = generate_csv(state.gradebook)
    name = state.assignment.assignment_name if state.assignment else "grades"
    filename = "".join(ch if ch.isalnum() or ch in "-_" else "_" for ch in name) or "grades"
    logger.info("Exported %d rows for session %s", len(state.gradebook.grades), session_id)
    return Response(
        content=csv_text,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}.csv"'}
    )
