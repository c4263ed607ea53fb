"""Grouping of uploaded files into per-student submission buckets."""

import re
import logging
from collections import OrderedDict
from pathlib import PurePosixPath
from typing import Dict, List, Optional

from moodle_grader.models import DerivedStudentIdentity, SubmissionFile


logger = logging.getLogger(__name__)

CATCH_ALL_KEY = "root"
SUBMISSION_MARKERS = ("_assignsubmission_", "_onlinetext_")

_MOODLE_FOLDER = re.compile(r"^(.+?)_(\d+)_assignsubmission_")
_TRAILING_ID = re.compile(r"_(\d+)$")
_SEMESTER_PREFIX = re.compile(r"^\d+SP\s+", re.IGNORECASE)
_PAREN_TRAILER = re.compile(r"\s*\([^)]*\)\s*$")


def _strip_marker(name: str) -> Optional[str]:
    """Leading student segment of a Moodle-style name, or None without a marker."""
    for marker in SUBMISSION_MARKERS:
        if marker in name:
            return name.split(marker, 1)[0]
    return None


def folder_key(file: SubmissionFile) -> str:
    """
    Bucket key for one file.

    The nearest folder carrying a submission marker wins, then the
    immediate parent folder, then the filename prefix before a marker.
    """
    folders = PurePosixPath(file.relative_path).parts[:-1] if file.relative_path else ()
    for folder in reversed(folders):
        if any(marker in folder for marker in SUBMISSION_MARKERS):
            return folder
    if folders:
        return folders[-1]

    prefix = _strip_marker(file.name)
    return prefix if prefix else CATCH_ALL_KEY


def organize(files: List[SubmissionFile]) -> Dict[str, List[SubmissionFile]]:
    """Group files into buckets keyed by folder or filename convention."""
    buckets: Dict[str, List[SubmissionFile]] = OrderedDict()
    for file in files:
        buckets.setdefault(folder_key(file), []).append(file)

    if files and list(buckets) == [CATCH_ALL_KEY]:
        logger.warning(
            "All %d files landed in the catch-all bucket; student matching will "
            "rely on individual file names", len(files)
        )
    return buckets


def group_by_student(buckets: Dict[str, List[SubmissionFile]]) -> Dict[str, List[SubmissionFile]]:
    """
    Merge buckets that belong to the same student.

    Moodle exports one folder per submission plugin, so
    ``Jane Smith_101_assignsubmission_file`` and
    ``Jane Smith_101_onlinetext_`` both collapse into ``Jane Smith_101``.
    """
    students: Dict[str, List[SubmissionFile]] = OrderedDict()
    for key, files in buckets.items():
        student_key = key if key == CATCH_ALL_KEY else (_strip_marker(key) or key)
        students.setdefault(student_key, []).extend(files)
        if student_key != key:
            logger.debug("Mapped folder %r to student %r (%d files)", key, student_key, len(files))
    return students


def _email_for(first_name: str, last_name: str, full_name: str) -> str:
    parts = [p for p in (first_name, last_name) if p] or full_name.split()
    local = ".".join(re.sub(r"[^a-z0-9'-]", "", p.lower()) for p in parts)
    return f"{local or 'student'}@example.com"


def derive_identity(name: str, folder_name: Optional[str] = None) -> DerivedStudentIdentity:
    """
    Recover a student identity from a folder or file name.

    ``Jane Smith_12345_assignsubmission_file`` gives ``Jane Smith`` with
    identifier ``12345``. A "Last, First" name keeps its comma in
    ``full_name`` and is split into first and last names.
    """
    identifier = ""
    match = _MOODLE_FOLDER.match(name)
    if match:
        base, identifier = match.group(1), match.group(2)
    else:
        base = re.sub(r"_assignsubmission_.*$", "", name)
        base = re.sub(r"_onlinetext_.*$", "", base)
        base = re.sub(r"_file_.*$", "", base)
        id_match = _TRAILING_ID.search(base)
        if id_match:
            identifier = id_match.group(1)
            base = base[:id_match.start()]

    base = _SEMESTER_PREFIX.sub("", base.strip())
    base = _PAREN_TRAILER.sub("", base)
    base = re.sub(r"[_-]+", " ", base)
    full_name = " ".join(base.split())
    full_name = re.sub(r"\s+,", ",", full_name)

    if not full_name:
        full_name = "Unknown Student"

    if "," in full_name:
        last_name, first_name = (part.strip() for part in full_name.split(",", 1))
    else:
        tokens = full_name.split()
        first_name = tokens[0]
        last_name = tokens[-1] if len(tokens) > 1 else ""

    if not identifier:
        identifier = re.sub(r"[^a-z0-9]+", "_", full_name.lower()).strip("_")

    return DerivedStudentIdentity(
        full_name=full_name,
        first_name=first_name,
        last_name=last_name,
        email=_email_for(first_name, last_name, full_name),
        identifier=identifier,
        folder_name=folder_name if folder_name is not None else name,
    )
