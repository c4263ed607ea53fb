"""Text extraction for submitted files."""

import io
import asyncio
import logging
from typing import Optional

import mammoth
from bs4 import BeautifulSoup
from pypdf import PdfReader

from moodle_grader.models import SubmissionFile
from moodle_grader.utils.cache import ExtractionCache


logger = logging.getLogger(__name__)

IMAGE_MARKER = "[IMAGE_SUBMISSION]"
UNSUPPORTED_PREFIX = "[UNSUPPORTED_FILE_TYPE:"
ERROR_PREFIX = "[ERROR: Failed to extract text from"

PDF = "pdf"
DOCX = "docx"
HTML = "html"
TEXT = "text"
IMAGE = "image"

_EXTENSION_KINDS = {
    "pdf": PDF,
    "docx": DOCX,
    "doc": DOCX,
    "html": HTML,
    "htm": HTML,
    "txt": TEXT,
    "text": TEXT,
    "md": TEXT,
    "png": IMAGE,
    "jpg": IMAGE,
    "jpeg": IMAGE,
    "gif": IMAGE,
    "bmp": IMAGE,
    "webp": IMAGE,
}

_MIME_KINDS = {
    "application/pdf": PDF,
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": DOCX,
    "application/msword": DOCX,
    "text/html": HTML,
    "text/plain": TEXT,
}


def unsupported_marker(name: str) -> str:
    return (
        f'{UNSUPPORTED_PREFIX} The file "{name}" cannot be processed automatically. '
        "Please review this submission manually.]"
    )


def error_marker(name: str) -> str:
    return f"{ERROR_PREFIX} {name}. This submission may require manual review.]"


def is_marker(text: str) -> bool:
    """True for placeholder text produced instead of real content."""
    stripped = text.strip()
    return (
        stripped == IMAGE_MARKER
        or stripped.startswith(UNSUPPORTED_PREFIX)
        or stripped.startswith(ERROR_PREFIX)
    )


def is_unsupported(text: str) -> bool:
    return text.strip().startswith(UNSUPPORTED_PREFIX)


def is_extraction_error(text: str) -> bool:
    return text.strip().startswith(ERROR_PREFIX)


def detect_kind(file: SubmissionFile) -> Optional[str]:
    """Classify a file. The extension wins over the declared MIME type."""
    kind = _EXTENSION_KINDS.get(file.extension)
    if kind:
        return kind

    content_type = (file.content_type or "").split(";")[0].strip().lower()
    if content_type.startswith("image/"):
        return IMAGE
    if "onlinetext" in file.name.lower():
        return HTML
    return _MIME_KINDS.get(content_type)


def html_to_text(markup: str) -> str:
    """Strip tags, keeping block boundaries as line breaks."""
    soup = BeautifulSoup(markup, "html.parser")
    for tag in soup(["script", "style"]):
        tag.decompose()
    return soup.get_text(separator="\n").strip()


def _decode_text(data: bytes) -> str:
    return data.decode("utf-8-sig", errors="replace")


def _pdf_to_text(data: bytes) -> str:
    reader = PdfReader(io.BytesIO(data))
    pages = []
    for page in reader.pages:
        page_text = page.extract_text() or ""
        if page_text.strip():
            pages.append(page_text.strip())
    return "\n\n".join(pages)


def docx_to_html(data: bytes) -> str:
    """Convert a Word document to HTML, keeping headings, lists and tables."""
    result = mammoth.convert_to_html(io.BytesIO(data))
    for message in result.messages:
        logger.debug("DOCX conversion: %s", message)
    return result.value


def _docx_to_text(data: bytes) -> str:
    return html_to_text(docx_to_html(data))


class TextExtractor:
    """Turns uploaded files into gradable text without raising."""

    def __init__(self, cache: Optional[ExtractionCache] = None):
        self.cache = cache if cache is not None else ExtractionCache()

    async def extract(self, file: SubmissionFile) -> str:
        """
        Extract text from a file.

        Images yield an image marker, unknown types an unsupported marker
        and decode failures an error marker. Only real text is cached.
        """
        kind = detect_kind(file)
        if kind == IMAGE:
            return IMAGE_MARKER
        if kind is None:
            logger.info("Unsupported file type for %s (%s)", file.name, file.content_type)
            return unsupported_marker(file.name)

        cached = self.cache.get(file)
        if cached is not None:
            return cached

        try:
            if kind == PDF:
                text = await asyncio.to_thread(_pdf_to_text, file.data)
            elif kind == DOCX:
                text = await asyncio.to_thread(_docx_to_text, file.data)
            else:
                # HTML keeps its markup for the grader
                text = _decode_text(file.data)
        except Exception as e:
            logger.warning("Extraction failed for %s: %s: %s", file.path, type(e).__name__, e)
            return error_marker(file.name)

        self.cache.set(file, text)
        logger.debug("Extracted %d chars from %s", len(text), file.path)
        return text
