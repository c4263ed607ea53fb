"""Shared fixtures for the backend tests."""

import io
import asyncio
import zipfile
from typing import Dict, List, Optional

import docx
import pytest
from tenacity import wait_none

from moodle_grader.models import SubmissionFile
from moodle_grader.services.llm.base_provider import BaseLLMProvider
from moodle_grader.services.llm.service import GradingLLMService


ROSTER_CSV = (
    "Identifier,Full name,Email address,Status,Grade,Feedback comments\n"
    "id1,Jane Smith,jane@x.edu,Needs Grading,0,\n"
)

DEFAULT_REPLY = "Grade: 85\nFeedback: Clear argument with a well organised structure."


class StubProvider(BaseLLMProvider):
    """Provider that answers from memory and records every prompt."""

    def __init__(self, reply: str = DEFAULT_REPLY, delay: float = 0.0):
        super().__init__(api_key="test-key", model="stub-model")
        self.reply = reply
        self.delay = delay
        self.calls: List[tuple] = []
        self.failures: Dict[str, Exception] = {}
        self.active = 0
        self.max_active = 0

    async def initialize(self) -> None:
        pass

    async def call_llm(self, prompt: str, image: Optional[SubmissionFile] = None) -> str:
        self.calls.append((prompt, image))
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            for marker, error in self.failures.items():
                if marker in prompt:
                    raise error
            return self.reply
        finally:
            self.active -= 1

    @property
    def provider_name(self) -> str:
        return "stub"


def make_file(path: str, data: bytes, content_type: Optional[str] = None) -> SubmissionFile:
    """File record as it would arrive from a folder upload or ZIP."""
    name = path.rsplit("/", 1)[-1]
    return SubmissionFile.from_bytes(
        name=name,
        data=data,
        relative_path=path if "/" in path else None,
        content_type=content_type,
        last_modified=1700000000.0,
    )


def make_docx(*paragraphs: str, heading: Optional[str] = None) -> bytes:
    document = docx.Document()
    if heading:
        document.add_heading(heading, level=1)
    for paragraph in paragraphs:
        document.add_paragraph(paragraph)
    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()


def make_zip(entries: Dict[str, bytes]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for path, data in entries.items():
            archive.writestr(path, data)
    return buffer.getvalue()


@pytest.fixture(autouse=True)
def no_retry_wait(monkeypatch):
    """Retry immediately so transient-failure tests stay fast."""
    monkeypatch.setattr(GradingLLMService._complete.retry, "wait", wait_none())


@pytest.fixture
def stub_provider():
    return StubProvider()


@pytest.fixture
def grading_service(stub_provider):
    return GradingLLMService(provider=stub_provider)


@pytest.fixture
def roster_csv():
    return ROSTER_CSV.encode("utf-8")
