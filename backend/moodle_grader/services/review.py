"""Instructor review of merged grades."""

import logging
from typing import List, Optional, Sequence

from moodle_grader.models import ReviewStatus, RosterRow, SubmissionStatus


logger = logging.getLogger(__name__)


def update_grade(
    rows: List[RosterRow],
    index: int,
    grade: Optional[float] = None,
    feedback: Optional[str] = None,
) -> RosterRow:
    """
    Apply an instructor edit and mark the row as reviewed.

    Raises:
        IndexError: If no row exists at ``index``
    """
    if index < 0 or index >= len(rows):
        raise IndexError(f"No grade row at index {index}")

    row = rows[index]
    if grade is not None:
        row.grade = grade
        row.status = SubmissionStatus.GRADED
    if feedback is not None:
        row.feedback = feedback
    row.edited = True
    return row


def approve_all(rows: Sequence[RosterRow]) -> int:
    """Mark every row as reviewed. Returns how many rows changed."""
    changed = 0
    for row in rows:
        if not row.edited:
            row.edited = True
            changed += 1
    logger.info("Approved %d grades", changed)
    return changed


def pending_reviews(rows: Sequence[RosterRow]) -> List[int]:
    return [index for index, row in enumerate(rows) if not row.edited]


def all_reviewed(rows: Sequence[RosterRow]) -> bool:
    return all(row.edited for row in rows)


def review_status(rows: Sequence[RosterRow]) -> ReviewStatus:
    pending = pending_reviews(rows)
    return ReviewStatus(
        total=len(rows),
        reviewed=len(rows) - len(pending),
        pending=pending,
        all_reviewed=not pending,
    )
