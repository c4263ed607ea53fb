"""Grading API routes."""

import json
import logging
from pathlib import PurePosixPath
from typing import AsyncGenerator, List, Optional
from fastapi import APIRouter, Depends, File, Form, UploadFile
from sse_starlette.sse import EventSourceResponse

from moodle_grader.models import MoodleGradebookData, SubmissionFile
from moodle_grader.services.archive import expand_uploads
from moodle_grader.services.llm.service import GradingLLMService
from moodle_grader.services.persistence.state_repository import StateRepository
from moodle_grader.services.pipeline import GradingPipeline
from moodle_grader.api.dependencies import get_grading_service, get_state_repository
from moodle_grader.api.validators.submission import (
    parse_assignment_config, require_session_id, validate_submission_files
)


logger = logging.getLogger(__name__)
router = APIRouter()

REVIEW_STEP = 3

# Columns used when grading runs without an imported gradebook
DEFAULT_HEADERS = ["Identifier", "Full name", "Email address", "Status", "Grade", "Feedback comments"]


def default_gradebook() -> MoodleGradebookData:
    return MoodleGradebookData(
        headers=list(DEFAULT_HEADERS),
        assignment_column="Grade",
        feedback_column="Feedback comments",
        identifier_column="Identifier",
        full_name_column="Full name",
        email_column="Email address",
    )


async def read_uploads(uploads: List[UploadFile]) -> List[SubmissionFile]:
    """Turn multipart uploads into file records, keeping any folder path in the name."""
    files = []
    for upload in uploads:
        filename = (upload.filename or "").replace("\\", "/")
        files.append(SubmissionFile.from_bytes(
            name=PurePosixPath(filename).name,
            data=await upload.read(),
            relative_path=filename if "/" in filename else None,
            content_type=upload.content_type,
        ))
    return files


@router.post("/grade")
async def grade_submissions(
    files: List[UploadFile] = File(...),
    session_id: str = Form(...),
    assignment: Optional[str] = Form(None),
    repository: StateRepository = Depends(get_state_repository),
    grading_service: GradingLLMService = Depends(get_grading_service)
) -> EventSourceResponse:
    """
    Grade uploaded submissions with streaming results.

    Accepts loose files, browser folder uploads and Moodle ZIP exports.
    Returns a Server-Sent Events stream with one event per student and a
    final event carrying the merged gradebook.
    """
    require_session_id(session_id)
    assignment_config = parse_assignment_config(assignment)

    uploads = await read_uploads(files)
    validate_submission_files(uploads)
    submission_files = expand_uploads(uploads)

    state = await repository.get_state(session_id)
    gradebook = state.gradebook or default_gradebook()
    pipeline = GradingPipeline(grading_service=grading_service)

    async def event_generator() -> AsyncGenerator[dict, None]:
        """Generate SSE events from grading results."""
        try:
            async for event in pipeline.run(submission_files, gradebook, assignment_config):
                if event.type == "job_complete":
                    state.assignment = assignment_config
                    state.gradebook = gradebook.model_copy(update={"grades": event.grades})
                    state.current_step = REVIEW_STEP
                    state.highest_step = max(state.highest_step, REVIEW_STEP)
                    await repository.save_state(state)

                yield {
                    "event": event.type,
                    "data": event.model_dump_json(exclude_none=True)
                }

        except Exception as e:
            logger.exception("Grading stream failed for session %s", session_id)
            yield {
                "event": "error",
                "data": json.dumps({"error": str(e)})
            }

    return EventSourceResponse(event_generator())
