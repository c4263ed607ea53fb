"""Pipeline orchestrating extraction, matching, grading and merging."""

import asyncio
import math
import logging
from pathlib import PurePosixPath
from typing import AsyncGenerator, Dict, List, Optional, Sequence, Tuple

from moodle_grader.core.config import settings
from moodle_grader.models import (
    AssignmentConfig, DerivedStudentIdentity, GradedSubmission, MoodleGradebookData,
    PipelineEvent, RosterRow, SelectionKind, SelectionResult, SubmissionFile, SubmissionStatus
)
from moodle_grader.utils.cache import ExtractionCache
from .extraction import TextExtractor
from .llm.service import GradingLLMService
from .matching import IdentityMatcher
from .merger import GradeMerger
from .organizer import CATCH_ALL_KEY, derive_identity, group_by_student, organize
from .selector import BestFileSelector


logger = logging.getLogger(__name__)

SKIPPED_NAMES = ("onlinetext",)

# One student's files and the identity derived from their folder or file name
Unit = Tuple[str, List[SubmissionFile], DerivedStudentIdentity]
# A unit's starting record and, when its gradebook match went to another unit, that row's name
Resolution = Tuple[GradedSubmission, Optional[str]]


def content_preview(text: str, limit: Optional[int] = None) -> str:
    limit = limit or settings.content_preview_chars
    return text[:limit] + "..." if len(text) > limit else text


class GradingPipeline:
    """
    Grades a batch of uploaded files against a gradebook.

    Owns the extraction cache for its lifetime, so files revisited in a
    later run of the same pipeline are not decoded twice.
    """

    def __init__(
        self,
        grading_service: Optional[GradingLLMService] = None,
        cache: Optional[ExtractionCache] = None,
        folder_concurrency: Optional[int] = None,
        skip_empty: Optional[bool] = None,
    ):
        self.cache = cache if cache is not None else ExtractionCache()
        self.extractor = TextExtractor(self.cache)
        self.selector = BestFileSelector(self.extractor)
        self.matcher = IdentityMatcher()
        self.grading_service = grading_service or GradingLLMService()
        self.folder_concurrency = folder_concurrency or settings.folder_concurrency
        self.skip_empty = skip_empty
        self.results: List[RosterRow] = []

    def build_units(self, files: Sequence[SubmissionFile]) -> List[Unit]:
        """Group files per student; loose files without a folder are graded one by one."""
        units = []
        for key, bucket in group_by_student(organize(list(files))).items():
            if key == CATCH_ALL_KEY:
                for file in bucket:
                    units.append((file.name, [file], derive_identity(PurePosixPath(file.name).stem, file.name)))
            else:
                units.append((key, bucket, derive_identity(key)))

        kept = []
        for key, bucket, identity in units:
            if identity.full_name.lower() in SKIPPED_NAMES:
                logger.info("Skipping folder %r with invalid student name %r", key, identity.full_name)
                continue
            kept.append((key, bucket, identity))
        return kept

    @staticmethod
    def _new_student(identity: DerivedStudentIdentity) -> GradedSubmission:
        return GradedSubmission(
            full_name=identity.full_name,
            identifier=identity.identifier,
            first_name=identity.first_name or None,
            last_name=identity.last_name or None,
            email=identity.email,
            status=SubmissionStatus.NEEDS_GRADING,
        )

    @staticmethod
    def _from_row(row: RosterRow) -> GradedSubmission:
        return GradedSubmission(
            full_name=row.full_name,
            identifier=row.identifier,
            first_name=row.first_name,
            last_name=row.last_name,
            email=row.email,
            status=SubmissionStatus.NEEDS_GRADING,
            original_row=dict(row.original_row),
        )

    def resolve_all(self, units: Sequence[Unit], roster: Sequence[RosterRow]) -> List[Resolution]:
        """
        Start a submission record per unit, giving each gradebook row to one unit at most.

        A matched unit adopts the row's identity. When several units match
        the same row, the one found by the strictest strategy keeps it and
        the earlier unit wins a tie. The others stay new students and carry
        the name of the row they lost, so they can be flagged for review.
        """
        ranks = {name: rank for rank, (name, _) in enumerate(self.matcher.strategies)}
        matches = [self.matcher.match_with_strategy(identity, roster) for _, _, identity in units]

        owners: Dict[int, Tuple[int, int]] = {}
        for index, (row, strategy) in enumerate(matches):
            if row is None:
                continue
            claim = (ranks[strategy], index)
            if id(row) not in owners or claim < owners[id(row)]:
                owners[id(row)] = claim

        resolutions = []
        for index, ((key, _, identity), (row, strategy)) in enumerate(zip(units, matches)):
            if row is None:
                resolutions.append((self._new_student(identity), None))
            elif owners[id(row)][1] != index:
                logger.warning(
                    "%r matched gradebook row %r (%s) already taken by a stricter match",
                    key, row.full_name, strategy
                )
                resolutions.append((self._new_student(identity), row.full_name))
            else:
                logger.info("Matched %r to gradebook row %r (%s)", identity.full_name, row.full_name, strategy)
                resolutions.append((self._from_row(row), None))
        return resolutions

    @staticmethod
    def _flag_contested(submission: GradedSubmission, row_name: str) -> GradedSubmission:
        """Hold back a submission whose gradebook match went to another student."""
        if submission.is_empty or submission.status == SubmissionStatus.ERROR:
            return submission
        submission.status = SubmissionStatus.MANUAL_REVIEW_REQUIRED
        note = (
            f"This submission also resembles gradebook student {row_name!r}, whose row "
            "was matched to another submission. Please confirm who submitted it."
        )
        submission.feedback = f"{note}\n\n{submission.feedback}" if submission.feedback else note
        return submission

    async def _process_unit(
        self,
        files: List[SubmissionFile],
        submission: GradedSubmission,
        assignment: AssignmentConfig,
    ) -> GradedSubmission:
        selection: SelectionResult = await self.selector.select(files)
        submission.file = selection.file

        if selection.kind == SelectionKind.NO_SUBMISSION:
            submission.status = SubmissionStatus.NO_SUBMISSION
            submission.is_empty = True
            return submission

        if selection.kind == SelectionKind.EMPTY_SUBMISSION:
            submission.status = SubmissionStatus.EMPTY_SUBMISSION
            submission.is_empty = True
            submission.content_preview = "Empty submission"
            return submission

        if selection.kind in (SelectionKind.UNSUPPORTED, SelectionKind.EXTRACTION_ERROR):
            submission.status = SubmissionStatus.MANUAL_REVIEW_REQUIRED
            submission.feedback = selection.text
            submission.content_preview = selection.text
            return submission

        if selection.kind == SelectionKind.IMAGE:
            result = await self.grading_service.grade_submission("", assignment, image=selection.file)
            submission.content_preview = f"[Image submission: {selection.file.name}]"
        else:
            result = await self.grading_service.grade_submission(selection.text, assignment)
            submission.content_preview = content_preview(selection.text)

        submission.status = SubmissionStatus.GRADED
        submission.grade = result.grade
        submission.feedback = result.feedback
        return submission

    @staticmethod
    def _error_submission(submission: GradedSubmission, error: BaseException) -> GradedSubmission:
        submission.status = SubmissionStatus.ERROR
        submission.grade = None
        submission.feedback = (
            f"Automatic grading failed ({type(error).__name__}: {error}). "
            "Please grade this submission manually."
        )
        return submission

    async def run(
        self,
        files: Sequence[SubmissionFile],
        gradebook: Optional[MoodleGradebookData],
        assignment: AssignmentConfig,
    ) -> AsyncGenerator[PipelineEvent, None]:
        """
        Grade every student's submission in bounded batches.

        Yields a ``folder_result`` event per student and a final
        ``job_complete`` event carrying the merged gradebook rows. One
        student's failure becomes an Error row and never stops the batch.
        """
        roster = gradebook.grades if gradebook else []
        units = self.build_units(files)
        resolutions = self.resolve_all(units, roster)
        total = len(units)
        total_batches = max(1, math.ceil(total / self.folder_concurrency))

        if not units:
            yield PipelineEvent(type="warning", message="No student submissions found in the uploaded files")

        logger.info("Processing %d students in %d batches of up to %d", total, total_batches, self.folder_concurrency)
        submissions: List[GradedSubmission] = []

        for batch_num, start in enumerate(range(0, total, self.folder_concurrency), 1):
            batch = units[start:start + self.folder_concurrency]
            batch_resolutions = resolutions[start:start + self.folder_concurrency]
            records = [record for record, _ in batch_resolutions]

            results = await asyncio.gather(
                *[self._process_unit(bucket, record, assignment) for (_, bucket, _), record in zip(batch, records)],
                return_exceptions=True
            )

            for (key, _, _), (record, contested), result in zip(batch, batch_resolutions, results):
                if isinstance(result, Exception):
                    logger.error("Processing failed for %r: %s: %s", key, type(result).__name__, result)
                    result = self._error_submission(record, result)
                elif contested:
                    result = self._flag_contested(result, contested)
                submissions.append(result)

                yield PipelineEvent(
                    type="folder_result",
                    folder=key,
                    submission=result,
                    progress=len(submissions) / total,
                )

            logger.info("Batch %d/%d completed (%d students)", batch_num, total_batches, len(batch))

        skip_empty = assignment.skip_empty_submissions
        if skip_empty is None:
            skip_empty = self.skip_empty
        self.results = GradeMerger(skip_empty).merge(roster, submissions)

        yield PipelineEvent(
            type="job_complete",
            grades=self.results,
            progress=1.0,
            message=f"Grading completed - {total} submissions",
        )

    async def grade_all(
        self,
        files: Sequence[SubmissionFile],
        gradebook: Optional[MoodleGradebookData],
        assignment: AssignmentConfig,
    ) -> List[RosterRow]:
        """Run the pipeline to completion and return the merged rows."""
        async for _ in self.run(files, gradebook, assignment):
            pass
        return self.results
