"""Best-file selection within a submission bucket."""

import asyncio
import logging
from typing import List, Optional, Tuple

from moodle_grader.core.config import settings
from moodle_grader.models import SelectionKind, SelectionResult, SubmissionFile
from .extraction import IMAGE, TextExtractor, detect_kind, html_to_text, is_extraction_error, is_marker


logger = logging.getLogger(__name__)

RICH_EXTENSIONS = ("docx", "doc", "pdf", "txt")
ONLINE_EXTENSIONS = ("html", "htm")


def is_online_text(file: SubmissionFile) -> bool:
    return file.extension in ONLINE_EXTENSIONS or "onlinetext" in file.name.lower()


def visible_length(text: str, markup: bool = False) -> int:
    """Length of the meaningful part of extracted text."""
    if not text or is_marker(text):
        return 0
    if markup:
        text = html_to_text(text)
    return len(" ".join(text.split()))


class BestFileSelector:
    """Picks the one file per bucket whose text gets graded."""

    def __init__(
        self,
        extractor: TextExtractor,
        min_meaningful_chars: Optional[int] = None,
        online_text_ratio: Optional[float] = None,
        concurrency: Optional[int] = None,
    ):
        self.extractor = extractor
        self.min_meaningful_chars = min_meaningful_chars or settings.min_meaningful_chars
        self.online_text_ratio = online_text_ratio or settings.online_text_ratio
        self.concurrency = concurrency or settings.extraction_concurrency

    def partition(
        self, files: List[SubmissionFile]
    ) -> Tuple[List[SubmissionFile], List[SubmissionFile], List[SubmissionFile], List[SubmissionFile]]:
        """Split files into rich documents, online text, images and everything else."""
        rich, online, images, other = [], [], [], []
        for file in files:
            if is_online_text(file):
                online.append(file)
            elif file.extension in RICH_EXTENSIONS:
                rich.append(file)
            elif detect_kind(file) == IMAGE:
                images.append(file)
            else:
                other.append(file)
        return rich, online, images, other

    async def _extract_all(self, files: List[SubmissionFile]) -> List[str]:
        """Extract a group of files with bounded fan-out, keeping input order."""
        semaphore = asyncio.Semaphore(self.concurrency)

        async def extract_one(file: SubmissionFile) -> str:
            async with semaphore:
                return await self.extractor.extract(file)

        return await asyncio.gather(*(extract_one(f) for f in files))

    async def select(self, files: List[SubmissionFile]) -> SelectionResult:
        """
        Choose and extract the text to grade.

        Rich documents are preferred. Online text only replaces a weak rich
        result when it is substantially longer. Distinguishes a bucket with
        no files from one whose files produced no text, and a document that
        failed to decode from an empty one.
        """
        if not files:
            return SelectionResult(kind=SelectionKind.NO_SUBMISSION)

        rich, online, images, other = self.partition(files)

        best_text, best_file, best_length = "", None, 0
        failed: Optional[Tuple[SubmissionFile, str]] = None
        for file, text in zip(rich, await self._extract_all(rich)):
            if failed is None and is_extraction_error(text):
                failed = (file, text)
            length = visible_length(text)
            if length >= self.min_meaningful_chars:
                logger.debug("Selected %s (%d chars)", file.path, length)
                return SelectionResult(kind=SelectionKind.CONTENT, text=text, file=file)
            if length > best_length:
                best_text, best_file, best_length = text, file, length

        for file, text in zip(online, await self._extract_all(online)):
            if failed is None and is_extraction_error(text):
                failed = (file, text)
            length = visible_length(text, markup=True)
            if length == 0:
                continue
            if best_file is None or length >= best_length * self.online_text_ratio:
                best_text, best_file, best_length = text, file, length

        if best_file is not None:
            return SelectionResult(kind=SelectionKind.CONTENT, text=best_text, file=best_file)

        # a document that could not be read must reach the instructor, not pass as empty
        if failed is not None:
            logger.warning("No readable text in %s, flagging for manual review", failed[0].path)
            return SelectionResult(kind=SelectionKind.EXTRACTION_ERROR, text=failed[1], file=failed[0])

        if images:
            return SelectionResult(kind=SelectionKind.IMAGE, file=images[0])

        if other:
            text = await self.extractor.extract(other[0])
            return SelectionResult(kind=SelectionKind.UNSUPPORTED, text=text, file=other[0])

        logger.info("No extractable text in %d files", len(files))
        return SelectionResult(kind=SelectionKind.EMPTY_SUBMISSION, file=files[0])
