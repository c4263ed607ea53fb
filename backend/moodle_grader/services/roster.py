"""Gradebook import and Moodle-compatible export."""

import csv
import io
import re
import logging
from typing import Iterable, List, Optional, Sequence, Tuple

import pandas as pd

from moodle_grader.core.exceptions import RosterParseError
from moodle_grader.models import MoodleGradebookData, RosterRow, SubmissionStatus


logger = logging.getLogger(__name__)

_ZIP_MAGIC = b"PK\x03\x04"
_OLE_MAGIC = b"\xd0\xcf\x11\xe0"

GRADE_HEADERS = ("grade", "mark", "score")
GRADE_EXCLUDES = ("feedback", "comment", "maximum", "max ", "modified", "changed", "letter")
FEEDBACK_HEADERS = ("feedback", "comment")
FIRST_NAME_EXACT = ("first name", "firstname", "given name", "givenname", "first", "forename", "fname")
FIRST_NAME_CONTAINS = ("first name", "firstname", "given name", "forename")
LAST_NAME_EXACT = ("last name", "lastname", "surname", "family name", "familyname", "last", "lname")
LAST_NAME_CONTAINS = ("last name", "lastname", "surname", "family name")
IDENTIFIER_EXACT = ("identifier", "username", "id", "student id", "id number")
FULL_NAME_EXACT = ("full name", "fullname", "name", "student name", "student")
FULL_NAME_CONTAINS = ("full name", "fullname")


def find_column(
    headers: Sequence[str],
    exact: Iterable[str] = (),
    contains: Iterable[str] = (),
    excludes: Iterable[str] = (),
) -> Optional[str]:
    """
    Find a header by exact name first, then by substring.

    Matching is case-insensitive and ignores surrounding whitespace.
    Headers containing any of ``excludes`` are never returned.
    """
    normalized = [(h, h.strip().lower()) for h in headers]
    excludes = tuple(excludes)
    candidates = [(h, n) for h, n in normalized if not any(x in n for x in excludes)]

    for variant in exact:
        for header, name in candidates:
            if name == variant:
                return header
    for variant in contains:
        for header, name in candidates:
            if variant in name:
                return header
    return None


def detect_columns(headers: Sequence[str]) -> dict:
    """Map column roles to header names."""
    identifier = find_column(headers, IDENTIFIER_EXACT)
    if identifier is None:
        identifier = next(
            (h for h in headers if re.search(r"\bid\b", h.lower())), None
        ) or find_column(headers, contains=("id",), excludes=("valid", "paid"))

    return {
        "assignment_column": find_column(
            headers, GRADE_HEADERS, GRADE_HEADERS, excludes=GRADE_EXCLUDES
        ),
        "feedback_column": find_column(headers, FEEDBACK_HEADERS, FEEDBACK_HEADERS),
        "first_name_column": find_column(headers, FIRST_NAME_EXACT, FIRST_NAME_CONTAINS),
        "last_name_column": find_column(headers, LAST_NAME_EXACT, LAST_NAME_CONTAINS),
        "identifier_column": identifier,
        "full_name_column": find_column(headers, FULL_NAME_EXACT, FULL_NAME_CONTAINS),
        "email_column": find_column(headers, contains=("email", "e-mail")),
    }


def parse_grade(value: Optional[str]) -> Optional[float]:
    """Parse a gradebook cell. Blank, dash and non-numeric cells mean no grade."""
    if value is None:
        return None
    value = value.strip()
    if not value or value == "-":
        return None
    if "," in value and "." not in value:
        value = value.replace(",", ".")
    try:
        return float(value)
    except ValueError:
        return None


def synthesize_email(full_name: str) -> str:
    local = ".".join(re.sub(r"[^a-z0-9'-]", "", p) for p in full_name.lower().replace(",", " ").split())
    return f"{local or 'student'}@example.com"


def _decode(data: bytes) -> str:
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        return data.decode("latin-1")


def _sniff_delimiter(text: str) -> str:
    first_line = text.split("\n", 1)[0]
    counts = {d: first_line.count(d) for d in (",", ";", "\t")}
    best = max(counts, key=counts.get)
    return best if counts[best] > 0 else ","


def _read_csv_rows(data: bytes) -> Tuple[List[str], List[List[str]]]:
    text = _decode(data)
    reader = csv.reader(io.StringIO(text, newline=""), delimiter=_sniff_delimiter(text))
    try:
        rows = list(reader)
    except csv.Error as e:
        raise RosterParseError(f"Malformed CSV: {e}") from e
    if not rows:
        raise RosterParseError("The gradebook file is empty")
    return rows[0], rows[1:]


def _read_frame_rows(data: bytes, kind: str) -> Tuple[List[str], List[List[str]]]:
    try:
        if kind == "xml":
            frame = pd.read_xml(io.BytesIO(data), dtype=str)
        else:
            frame = pd.read_excel(io.BytesIO(data), dtype=str, keep_default_na=False)
    except Exception as e:
        raise RosterParseError(f"Cannot read {kind} gradebook: {type(e).__name__}: {e}") from e

    frame = frame.fillna("")
    headers = [str(column) for column in frame.columns]
    rows = [[str(value) for value in record] for record in frame.itertuples(index=False)]
    return headers, rows


def read_table(data: bytes) -> Tuple[List[str], List[List[str]]]:
    """Sniff the file format and return the header list and data rows."""
    if data.startswith(_ZIP_MAGIC):
        return _read_frame_rows(data, "spreadsheet")
    if data.startswith(_OLE_MAGIC):
        return _read_frame_rows(data, "xls")
    if data.lstrip().startswith(b"<"):
        return _read_frame_rows(data, "xml")
    return _read_csv_rows(data)


def column_keys(headers: Sequence[str]) -> List[str]:
    """One distinct key per column; repeated headers get a ``#n`` suffix."""
    keys: List[str] = []
    seen = set()
    for header in headers:
        key, n = header, 1
        while key in seen:
            key = f"{header}#{n}"
            n += 1
        seen.add(key)
        keys.append(key)
    return keys


def parse_roster(data: bytes) -> MoodleGradebookData:
    """
    Parse a gradebook export into rows with detected column roles.

    Every original cell is kept in ``original_row`` so nothing is lost
    on export.

    Raises:
        RosterParseError: If the file is empty, unreadable or has no header row
    """
    if not data or not data.strip():
        raise RosterParseError("The gradebook file is empty")

    raw_headers, raw_rows = read_table(data)
    headers = list(raw_headers)
    if not any(h.strip() for h in headers):
        raise RosterParseError("The gradebook file has no header row")

    columns = detect_columns(headers)
    logger.info("Detected gradebook columns: %s", {k: v for k, v in columns.items() if v})
    if columns["assignment_column"] is None:
        logger.warning("No grade column found in headers %s", headers)

    keys = column_keys(headers)
    grades = []
    for values in raw_rows:
        if not any(value.strip() for value in values):
            continue
        values = list(values) + [""] * (len(headers) - len(values))
        original = dict(zip(keys, values))
        grades.append(_build_row(original, columns, len(grades)))

    logger.info("Parsed %d gradebook rows", len(grades))
    return MoodleGradebookData(headers=headers, grades=grades, **columns)


def _build_row(original: dict, columns: dict, index: int) -> RosterRow:
    def cell(role: str) -> str:
        column = columns[role]
        return original.get(column, "").strip() if column else ""

    first_name = cell("first_name_column") or None
    last_name = cell("last_name_column") or None
    full_name = cell("full_name_column")
    if not full_name:
        full_name = " ".join(p for p in (first_name, last_name) if p)
    if not full_name:
        full_name = f"Student {index + 1}"

    grade = parse_grade(cell("assignment_column"))
    graded = grade is not None and grade > 0

    feedback_column = columns["feedback_column"]
    return RosterRow(
        identifier=cell("identifier_column") or f"id_{index}",
        full_name=full_name,
        first_name=first_name,
        last_name=last_name,
        email=cell("email_column") or synthesize_email(full_name),
        status=SubmissionStatus.GRADED if graded else SubmissionStatus.NEEDS_GRADING,
        grade=grade,
        feedback=original.get(feedback_column, "") if feedback_column else "",
        edited=graded,
        original_row=original,
    )


def _quote(value: str) -> str:
    if any(ch in value for ch in (",", '"', "\n", "\r")):
        return '"' + value.replace('"', '""') + '"'
    return value


def format_grade(grade: Optional[float]) -> str:
    if grade is None:
        return ""
    if float(grade).is_integer():
        return str(int(grade))
    return repr(float(grade))


def generate_csv(gradebook: MoodleGradebookData) -> str:
    """
    Export the gradebook in its original column layout.

    Grades are plain numbers (empty when unset) and feedback is always
    quoted with inner quotes doubled.
    """
    headers = gradebook.headers
    grade_column = gradebook.assignment_column
    feedback_column = gradebook.feedback_column
    if feedback_column is None and grade_column and f"{grade_column} (feedback)" in headers:
        feedback_column = f"{grade_column} (feedback)"

    keys = column_keys(headers)
    lines = [",".join(_quote(h) for h in headers)]
    for row in gradebook.grades:
        values = {key: row.original_row.get(key, "") for key in keys}

        # rows appended for students missing from the roster
        if not row.original_row:
            for column, value in (
                (gradebook.identifier_column, row.identifier),
                (gradebook.full_name_column, row.full_name),
                (gradebook.first_name_column, row.first_name),
                (gradebook.last_name_column, row.last_name),
                (gradebook.email_column, row.email),
            ):
                if column and value:
                    values[column] = value

        cells = []
        for key in keys:
            if key == grade_column:
                cells.append(format_grade(row.grade))
            elif key == feedback_column:
                feedback = row.feedback or ""
                cells.append('"' + feedback.replace('"', '""') + '"' if feedback else "")
            else:
                cells.append(_quote(values[key]))
        lines.append(",".join(cells))

    return "\n".join(lines)
