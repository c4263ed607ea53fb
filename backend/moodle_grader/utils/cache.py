"""Caching utilities."""

import json
import hashlib
import logging
from typing import Dict, Optional

from moodle_grader.models import SubmissionFile


logger = logging.getLogger(__name__)


def cache_key(*args, **kwargs) -> str:
    """Generate cache key from arguments."""
    # Create a stable string representation
    key_data = {
        "args": args,
        "kwargs": sorted(kwargs.items())
    }
    key_str = json.dumps(key_data, sort_keys=True, default=str)

    # Hash it to avoid overly long keys
    return hashlib.sha256(key_str.encode()).hexdigest()


def file_cache_key(file: SubmissionFile) -> str:
    """Key a file by its path, size and modification time."""
    return cache_key(file.path, file.size, file.last_modified)


class ExtractionCache:
    """
    Extracted text per file, scoped to one pipeline.

    Entries live as long as the owning pipeline. Nothing is evicted
    until ``clear`` is called.
    """

    def __init__(self):
        self._entries: Dict[str, str] = {}
        self.hits = 0
        self.misses = 0

    def get(self, file: SubmissionFile) -> Optional[str]:
        """Get cached text for a file."""
        text = self._entries.get(file_cache_key(file))
        if text is None:
            self.misses += 1
        else:
            self.hits += 1
        return text

    def set(self, file: SubmissionFile, text: str) -> None:
        """Store extracted text for a file."""
        self._entries[file_cache_key(file)] = text

    def clear(self) -> None:
        """Drop every entry."""
        if self._entries:
            logger.debug("Clearing %d cached extractions", len(self._entries))
        self._entries.clear()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, file: SubmissionFile) -> bool:
        return file_cache_key(file) in self._entries
