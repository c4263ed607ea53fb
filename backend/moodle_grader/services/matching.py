"""Resolution of derived student identities against gradebook rows."""

import re
import logging
from typing import Callable, List, Optional, Sequence, Tuple

from rapidfuzz.distance import Levenshtein

from moodle_grader.models import DerivedStudentIdentity, RosterRow


logger = logging.getLogger(__name__)

Strategy = Callable[[DerivedStudentIdentity, Sequence[RosterRow]], Optional[RosterRow]]

SUBSTRING_THRESHOLD = 0.5
SIMILARITY_THRESHOLD = 0.7


def _norm(name: str) -> str:
    return " ".join(name.lower().split())


def _alnum(name: str) -> str:
    return re.sub(r"[^a-z0-9]", "", name.lower())


def _tokens(name: str) -> List[str]:
    return _norm(name.replace(",", " ")).split()


def _first_last(row: RosterRow) -> Tuple[str, str]:
    """First and last name of a row, from its columns or its full name."""
    if row.first_name and row.last_name:
        return _norm(row.first_name), _norm(row.last_name)
    tokens = _tokens(row.full_name)
    if len(tokens) < 2:
        return "", ""
    return tokens[0], tokens[-1]


def levenshtein_distance(a: str, b: str) -> int:
    return Levenshtein.distance(a, b)


def similarity(a: str, b: str) -> float:
    """Edit-distance similarity normalized by the longer string."""
    if not a and not b:
        return 0.0
    return Levenshtein.normalized_similarity(a, b)


def clean_folder_name(folder_name: str) -> str:
    """Strip LMS suffix markers and numeric IDs from a folder name."""
    cleaned = re.sub(r"_assignsubmission_.*$", "", folder_name)
    cleaned = re.sub(r"_onlinetext_.*$", "", cleaned)
    cleaned = re.sub(r"_file_.*$", "", cleaned)
    cleaned = re.sub(r"_\d+$", "", cleaned)
    cleaned = re.sub(r"[_-]", " ", cleaned)
    return _norm(cleaned)


def _best(scored: List[Tuple[float, RosterRow]], threshold: float = 0) -> Optional[RosterRow]:
    best_row, best_score = None, threshold
    for score, row in scored:
        if score > best_score:
            best_row, best_score = row, score
    return best_row


def exact_name(identity, rows):
    target = _norm(identity.full_name)
    return next((row for row in rows if _norm(row.full_name) == target), None)


def first_last_concat(identity, rows):
    target = _norm(identity.full_name)
    for row in rows:
        if row.first_name and row.last_name and _norm(f"{row.first_name} {row.last_name}") == target:
            return row
    return None


def last_first_reversal(identity, rows):
    if "," not in identity.full_name:
        return None
    last, first = (_norm(part) for part in identity.full_name.split(",", 1))
    if not first or not last:
        return None

    reordered = f"{first} {last}"
    for row in rows:
        if _norm(row.full_name) == reordered:
            return row
        row_first, row_last = _first_last(row)
        if row_first == first and row_last == last:
            return row
    return None


def name_parts_overlap(identity, rows):
    derived = _tokens(identity.full_name)
    if len(derived) < 2:
        return None
    scored = []
    for row in rows:
        row_tokens = set(_tokens(row.full_name))
        scored.append((sum(1 for token in derived if token in row_tokens), row))
    return _best(scored)


def normalized_substring(identity, rows):
    derived = _alnum(identity.full_name)
    if not derived:
        return None
    scored = []
    for row in rows:
        candidate = _alnum(row.full_name)
        if not candidate:
            continue
        if derived in candidate or candidate in derived:
            scored.append((min(len(derived), len(candidate)) / max(len(derived), len(candidate)), row))
    return _best(scored, SUBSTRING_THRESHOLD)


def token_fuzzy_overlap(identity, rows):
    derived = [t for t in _tokens(identity.full_name) if len(t) > 2]
    if not derived:
        return None
    scored = []
    for row in rows:
        candidate = [t for t in _tokens(row.full_name) if len(t) > 2]
        hits = sum(
            1 for a in derived for b in candidate
            if a == b or a in b or b in a
        )
        scored.append((hits, row))
    return _best(scored)


def folder_cleanup(identity, rows):
    if not identity.folder_name:
        return None
    cleaned = clean_folder_name(identity.folder_name)
    if not cleaned:
        return None
    scored = []
    for row in rows:
        name = _norm(row.full_name)
        if not name:
            continue
        if name == cleaned:
            scored.append((100, row))
        elif name in cleaned or cleaned in name:
            scored.append((50, row))
    return _best(scored)


def first_last_token(identity, rows):
    tokens = _tokens(identity.full_name)
    if len(tokens) < 2:
        return None
    first, last = tokens[0], tokens[-1]
    for row in rows:
        row_tokens = _tokens(row.full_name)
        if len(row_tokens) >= 2 and row_tokens[0] == first and row_tokens[-1] == last:
            return row
    return None


def edit_distance(identity, rows):
    target = identity.full_name.strip().lower()
    scored = [(similarity(target, row.full_name.strip().lower()), row) for row in rows]
    return _best(scored, SIMILARITY_THRESHOLD)


# Ordered from strictest to fuzziest; the first hit wins.
STRATEGIES: List[Tuple[str, Strategy]] = [
    ("exact", exact_name),
    ("first_last", first_last_concat),
    ("last_first", last_first_reversal),
    ("name_parts", name_parts_overlap),
    ("normalized_substring", normalized_substring),
    ("token_fuzzy", token_fuzzy_overlap),
    ("folder_cleanup", folder_cleanup),
    ("first_last_token", first_last_token),
    ("edit_distance", edit_distance),
]


class IdentityMatcher:
    """Cascade of name matching strategies, stricter ones first."""

    def __init__(self, strategies: Optional[List[Tuple[str, Strategy]]] = None):
        self.strategies = strategies or STRATEGIES

    def match_with_strategy(
        self,
        identity: DerivedStudentIdentity,
        rows: Sequence[RosterRow],
    ) -> Tuple[Optional[RosterRow], Optional[str]]:
        """Return the matched row and the name of the strategy that found it."""
        if not identity.full_name.strip() or not rows:
            return None, None

        for name, strategy in self.strategies:
            row = strategy(identity, rows)
            if row is not None:
                logger.debug("Matched %r to %r via %s", identity.full_name, row.full_name, name)
                return row, name

        logger.info("No gradebook match for %r", identity.full_name)
        return None, None

    def match(self, identity: DerivedStudentIdentity, rows: Sequence[RosterRow]) -> Optional[RosterRow]:
        """Find the gradebook row for a derived identity, or None for a new student."""
        return self.match_with_strategy(identity, rows)[0]
