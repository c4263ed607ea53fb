"""ZIP archive ingestion."""

import io
import time
import logging
import zipfile
from pathlib import PurePosixPath
from typing import List

from moodle_grader.core.exceptions import ArchiveError
from moodle_grader.models import SubmissionFile


logger = logging.getLogger(__name__)


def is_zip(file: SubmissionFile) -> bool:
    return file.extension == "zip" or file.content_type in (
        "application/zip",
        "application/x-zip-compressed",
    )


def _is_metadata(path: str) -> bool:
    parts = PurePosixPath(path).parts
    return any(part == "__MACOSX" or part.startswith(".") for part in parts) or (
        parts and parts[-1] in ("Thumbs.db", "desktop.ini")
    )


def expand_zip(data: bytes) -> List[SubmissionFile]:
    """
    Expand a ZIP archive into a flat file list.

    Every file keeps its path inside the archive as ``relative_path``.
    Directory entries, dotfiles and macOS resource forks are skipped.
    """
    try:
        archive = zipfile.ZipFile(io.BytesIO(data))
    except zipfile.BadZipFile as e:
        raise ArchiveError(f"Not a valid ZIP archive: {e}") from e

    files = []
    with archive:
        for info in archive.infolist():
            path = info.filename.replace("\\", "/")
            if info.is_dir() or _is_metadata(path):
                continue
            try:
                content = archive.read(info)
            except (zipfile.BadZipFile, RuntimeError, OSError) as e:
                raise ArchiveError(f"Cannot read {path} from archive: {e}") from e

            files.append(SubmissionFile.from_bytes(
                name=PurePosixPath(path).name,
                data=content,
                relative_path=path,
                last_modified=time.mktime(info.date_time + (0, 0, -1)),
            ))

    logger.info("Expanded ZIP archive into %d files", len(files))
    return files


def expand_uploads(files: List[SubmissionFile]) -> List[SubmissionFile]:
    """Replace every ZIP upload with its contents, keeping other files as they are."""
    expanded = []
    for file in files:
        if is_zip(file):
            expanded.extend(expand_zip(file.data))
        else:
            expanded.append(file)
    return expanded
