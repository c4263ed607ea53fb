"""Pydantic models for the grading assistant."""

import mimetypes
from enum import Enum
from pathlib import PurePosixPath
from typing import Dict, List, Optional, Literal
from pydantic import BaseModel, Field, ConfigDict


class SubmissionStatus(str, Enum):
    """Lifecycle of a gradebook row."""
    NEEDS_GRADING = "Needs Grading"
    GRADED = "Graded"
    NO_SUBMISSION = "No Submission"
    EMPTY_SUBMISSION = "Empty Submission"
    MANUAL_REVIEW_REQUIRED = "Manual Review Required"
    ERROR = "Error"


class SelectionKind(str, Enum):
    """Outcome of picking the file to grade from a bucket."""
    CONTENT = "content"
    IMAGE = "image"
    UNSUPPORTED = "unsupported"
    EXTRACTION_ERROR = "extraction_error"
    EMPTY_SUBMISSION = "empty_submission"
    NO_SUBMISSION = "no_submission"


class SubmissionFile(BaseModel):
    """An uploaded file, possibly expanded from a ZIP archive."""
    name: str
    relative_path: Optional[str] = Field(None, description="Path inside the upload or archive")
    content_type: Optional[str] = None
    size: int = 0
    last_modified: Optional[float] = None
    data: bytes = Field(default=b"", exclude=True, repr=False)

    @classmethod
    def from_bytes(
        cls,
        name: str,
        data: bytes,
        relative_path: Optional[str] = None,
        content_type: Optional[str] = None,
        last_modified: Optional[float] = None,
    ) -> "SubmissionFile":
        """Build a file record, guessing the MIME type from the name when missing."""
        if not content_type:
            content_type = mimetypes.guess_type(name)[0]
        return cls(
            name=name,
            relative_path=relative_path,
            content_type=content_type,
            size=len(data),
            last_modified=last_modified,
            data=data,
        )

    @property
    def extension(self) -> str:
        return PurePosixPath(self.name).suffix.lower().lstrip(".")

    @property
    def path(self) -> str:
        return self.relative_path or self.name


class RosterRow(BaseModel):
    """One gradebook entry."""
    identifier: str
    full_name: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: str = ""
    status: SubmissionStatus = SubmissionStatus.NEEDS_GRADING
    grade: Optional[float] = Field(None, description="None means no grade assigned, distinct from 0")
    feedback: str = ""
    file: Optional[SubmissionFile] = None
    edited: bool = False
    original_row: Dict[str, str] = Field(default_factory=dict)
    content_preview: Optional[str] = None


class MoodleGradebookData(BaseModel):
    """A parsed gradebook with the column roles that were detected."""
    headers: List[str] = Field(default_factory=list)
    grades: List[RosterRow] = Field(default_factory=list)
    assignment_column: Optional[str] = None
    feedback_column: Optional[str] = None
    identifier_column: Optional[str] = None
    full_name_column: Optional[str] = None
    first_name_column: Optional[str] = None
    last_name_column: Optional[str] = None
    email_column: Optional[str] = None


class DerivedStudentIdentity(BaseModel):
    """Student identity recovered from a folder or file name."""
    full_name: str
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    identifier: str = ""
    folder_name: Optional[str] = None


class SelectionResult(BaseModel):
    """Text and file chosen to represent one student's submission."""
    kind: SelectionKind
    text: str = ""
    file: Optional[SubmissionFile] = None

    @property
    def is_empty(self) -> bool:
        return self.kind in (SelectionKind.EMPTY_SUBMISSION, SelectionKind.NO_SUBMISSION)


class AssignmentConfig(BaseModel):
    """Instructor settings for one grading run."""
    assignment_name: str = "Assignment"
    course_name: str = ""
    academic_level: str = "undergraduate"
    instructions: str = ""
    rubric: Optional[str] = None
    grading_scale: float = Field(100, gt=0, description="Maximum points")
    strictness: int = Field(5, ge=1, le=10)
    feedback_length: int = Field(5, ge=1, le=10)
    feedback_formality: int = Field(5, ge=1, le=10)
    instructor_tone: Optional[str] = None
    additional_instructions: Optional[str] = None
    skip_empty_submissions: Optional[bool] = Field(
        None, description="Overrides the server default when set"
    )

    model_config = ConfigDict(json_schema_extra={
        "example": {
            "assignment_name": "Reflective Essay 1",
            "course_name": "ENG 101",
            "academic_level": "undergraduate",
            "instructions": "Write 500 words on a formative experience.",
            "grading_scale": 100,
            "strictness": 5,
            "feedback_length": 4,
            "feedback_formality": 6
        }
    })


class GradingResult(BaseModel):
    """Grade and feedback returned by the grading service."""
    grade: float
    feedback: str


class GradedSubmission(BaseModel):
    """Result of processing one submission bucket."""
    full_name: str
    identifier: str = ""
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: str = ""
    status: SubmissionStatus
    grade: Optional[float] = None
    feedback: str = ""
    file: Optional[SubmissionFile] = None
    content_preview: Optional[str] = None
    original_row: Dict[str, str] = Field(default_factory=dict)
    is_empty: bool = False

    def to_roster_row(self) -> RosterRow:
        """Build a new gradebook row for a student missing from the roster."""
        return RosterRow(
            identifier=self.identifier,
            full_name=self.full_name,
            first_name=self.first_name,
            last_name=self.last_name,
            email=self.email,
            status=self.status,
            grade=self.grade,
            feedback=self.feedback,
            file=self.file,
            edited=False,
            original_row=dict(self.original_row),
            content_preview=self.content_preview,
        )


class PipelineEvent(BaseModel):
    """Progress event emitted while a batch is graded."""
    type: Literal["folder_result", "warning", "job_complete"] = "folder_result"
    folder: Optional[str] = None
    submission: Optional[GradedSubmission] = None
    grades: Optional[List[RosterRow]] = None
    progress: Optional[float] = Field(None, ge=0.0, le=1.0, description="Overall progress")
    message: Optional[str] = None


class WorkflowState(BaseModel):
    """Resumable wizard state for one instructor session."""
    session_id: str
    current_step: int = 1
    highest_step: int = 1
    assignment: Optional[AssignmentConfig] = None
    gradebook: Optional[MoodleGradebookData] = None


class ReviewStatus(BaseModel):
    """Whether every row has been approved."""
    total: int
    reviewed: int
    pending: List[int] = Field(default_factory=list, description="Indexes of unreviewed rows")
    all_reviewed: bool


class GradeUpdate(BaseModel):
    """Instructor edit to one row."""
    grade: Optional[float] = None
    feedback: Optional[str] = None


class StepUpdate(BaseModel):
    """Wizard navigation."""
    step: int
