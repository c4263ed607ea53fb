"""API validators module."""

from .submission import (
    parse_assignment_config,
    require_session_id,
    validate_session_id_format,
    validate_submission_files
)

__all__ = [
    "parse_assignment_config",
    "require_session_id",
    "validate_session_id_format",
    "validate_submission_files"
]
