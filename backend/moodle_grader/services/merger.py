"""Merging of graded submissions into gradebook rows."""

import logging
from typing import Dict, List, Optional, Sequence

from moodle_grader.core.config import settings
from moodle_grader.models import GradedSubmission, RosterRow, SubmissionStatus


logger = logging.getLogger(__name__)

NO_SUBMISSION_PREVIEW = "No submission found for this student"
EMPTY_SUBMISSION_FEEDBACK = (
    "The submission appears to be empty or contains no gradable text. "
    "Please review it manually."
)


def _key(name: str) -> str:
    return " ".join(name.lower().split())


class GradeMerger:
    """Combines graded submissions with the imported gradebook."""

    def __init__(self, skip_empty: Optional[bool] = None):
        self.skip_empty = settings.skip_empty_submissions if skip_empty is None else skip_empty

    def merge(
        self,
        roster: Sequence[RosterRow],
        submissions: Sequence[GradedSubmission],
    ) -> List[RosterRow]:
        """
        Merge submissions into a copy of the roster.

        Roster rows keep their order and are never removed; submissions
        without a roster row are appended. Merging the same submissions
        again yields the same rows.
        """
        rows = [row.model_copy(deep=True) for row in roster]
        submitted = {_key(s.full_name) for s in submissions}

        for row in rows:
            if _key(row.full_name) not in submitted:
                self._mark_missing(row)

        # each row takes one submission; a second one under the same name gets its own row
        by_name: Dict[str, List[int]] = {}
        for index, row in enumerate(rows):
            by_name.setdefault(_key(row.full_name), []).append(index)

        appended = 0
        for submission in submissions:
            free = by_name.get(_key(submission.full_name))
            if free:
                self._apply(rows[free.pop(0)], submission)
            else:
                rows.append(self._apply(submission.to_roster_row(), submission))
                appended += 1

        logger.info(
            "Merged %d submissions into %d roster rows (%d new students)",
            len(submissions), len(roster), appended,
        )
        return rows

    @staticmethod
    def _mark_missing(row: RosterRow) -> None:
        row.status = SubmissionStatus.NO_SUBMISSION
        row.grade = None
        row.feedback = ""
        row.file = None
        row.content_preview = NO_SUBMISSION_PREVIEW
        row.edited = True

    def _apply(self, row: RosterRow, submission: GradedSubmission) -> RosterRow:
        row.file = submission.file
        row.content_preview = submission.content_preview

        if submission.status == SubmissionStatus.NO_SUBMISSION:
            row.status = SubmissionStatus.NO_SUBMISSION
            row.grade = None
            row.feedback = ""
            row.content_preview = submission.content_preview or NO_SUBMISSION_PREVIEW
            row.edited = True
        elif submission.is_empty:
            row.status = SubmissionStatus.EMPTY_SUBMISSION
            if self.skip_empty:
                row.grade = None
                row.feedback = ""
                row.edited = True
            else:
                row.grade = submission.grade if submission.grade is not None else 0.0
                row.feedback = submission.feedback or EMPTY_SUBMISSION_FEEDBACK
                row.edited = False
        else:
            row.status = submission.status
            row.grade = submission.grade
            row.feedback = submission.feedback
            row.edited = False
        return row
