"""Tests for best-file selection."""

import asyncio

from conftest import make_docx, make_file
from moodle_grader.models import SelectionKind
from moodle_grader.services.extraction import ERROR_PREFIX, TextExtractor, UNSUPPORTED_PREFIX
from moodle_grader.services.selector import BestFileSelector


def select(files, **kwargs):
    selector = BestFileSelector(TextExtractor(), **kwargs)
    return asyncio.run(selector.select(files))


def test_rich_document_beats_blank_online_text():
    essay = make_docx("word " * 100)
    files = [
        make_file("Jane_1_assignsubmission_onlinetext/onlinetext.html", b"   "),
        make_file("Jane_1_assignsubmission_file/essay.docx", essay),
    ]

    result = select(files)

    assert result.kind == SelectionKind.CONTENT
    assert result.file.name == "essay.docx"
    assert result.text.count("word") == 100


def test_much_longer_online_text_replaces_weak_rich_result():
    files = [
        make_file("essay.txt", b"Short note."),
        make_file("onlinetext.html", b"<p>" + b"Long typed answer " * 10 + b"</p>"),
    ]

    result = select(files)

    assert result.file.name == "onlinetext.html"
    assert result.text.startswith("<p>")


def test_slightly_longer_online_text_does_not_replace_rich_result():
    files = [
        make_file("essay.txt", b"Short note here"),
        make_file("onlinetext.html", b"<p>Short note here!</p>"),
    ]

    assert select(files).file.name == "essay.txt"


def test_no_files_is_no_submission():
    result = select([])
    assert result.kind == SelectionKind.NO_SUBMISSION
    assert result.is_empty


def test_files_without_text_are_an_empty_submission():
    blank = make_file("essay.txt", b"   \n ")
    result = select([blank])

    assert result.kind == SelectionKind.EMPTY_SUBMISSION
    assert result.is_empty
    assert result.file is blank


def test_image_only_bucket_is_flagged_for_image_grading():
    result = select([make_file("photo.png", b"\x89PNG")])
    assert result.kind == SelectionKind.IMAGE
    assert result.file.name == "photo.png"


def test_unsupported_only_bucket_carries_marker():
    result = select([make_file("model.xyz", b"\x00", "application/octet-stream")])
    assert result.kind == SelectionKind.UNSUPPORTED
    assert result.text.startswith(UNSUPPORTED_PREFIX)


class SlowExtractor(TextExtractor):
    """Tracks how many extractions run at once."""

    def __init__(self):
        super().__init__()
        self.active = 0
        self.max_active = 0

    async def extract(self, file):
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        await asyncio.sleep(0.01)
        self.active -= 1
        return "tiny"


def test_extraction_fan_out_is_bounded():
    extractor = SlowExtractor()
    selector = BestFileSelector(extractor, concurrency=2)
    files = [make_file(f"part{i}.txt", b"tiny") for i in range(6)]

    result = asyncio.run(selector.select(files))

    assert result.kind == SelectionKind.CONTENT
    assert extractor.max_active == 2


def test_unreadable_document_is_an_extraction_error_not_empty():
    broken = make_file("essay.doc", b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1" + b"\x00" * 64)
    result = select([broken, make_file("onlinetext.html", b"  ")])

    assert result.kind == SelectionKind.EXTRACTION_ERROR
    assert result.text.startswith(ERROR_PREFIX)
    assert result.file is broken
    assert not result.is_empty
