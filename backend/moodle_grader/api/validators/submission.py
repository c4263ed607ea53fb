"""Upload and session request validation."""

import re
from typing import List, Optional
from fastapi import HTTPException
from pydantic import ValidationError

from moodle_grader.models import AssignmentConfig, SubmissionFile


_SESSION_ID = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


def validate_session_id_format(session_id: str) -> bool:
    """Session ids are short URL-safe tokens."""
    return bool(_SESSION_ID.match(session_id))


def require_session_id(session_id: str) -> str:
    if not validate_session_id_format(session_id):
        raise HTTPException(status_code=400, detail="Invalid session ID format")
    return session_id


def parse_assignment_config(raw: Optional[str]) -> AssignmentConfig:
    """
    Parse the assignment settings sent alongside an upload.

    Raises:
        HTTPException: If the JSON is malformed or fails validation
    """
    if not raw or not raw.strip():
        return AssignmentConfig()
    try:
        return AssignmentConfig.model_validate_json(raw)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'assignment'}: {err['msg']}"
            for err in e.errors()
        )
        raise HTTPException(status_code=422, detail=f"Invalid assignment settings: {problems}")


def validate_submission_files(files: List[SubmissionFile]) -> None:
    """
    Validate uploaded submission files.

    Raises:
        HTTPException: If nothing usable was uploaded
    """
    errors = []

    if not files:
        errors.append("No submission files provided")

    for file in files:
        if not file.name or not file.name.strip():
            errors.append("Uploaded file has no name")
        elif file.size == 0 and file.extension == "zip":
            errors.append(f"ZIP archive {file.name} is empty")

    if errors:
        raise HTTPException(status_code=400, detail="; ".join(errors))
