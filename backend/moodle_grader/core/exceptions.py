"""Domain exceptions."""


class GraderError(Exception):
    """Base class for grading assistant errors."""


class RosterParseError(GraderError):
    """Raised when an uploaded gradebook cannot be parsed."""


class ArchiveError(GraderError):
    """Raised when an uploaded ZIP archive cannot be read."""


class GradingServiceError(GraderError):
    """Raised when the grading provider fails or replies with something unusable."""


class SessionNotFoundError(GraderError):
    """Raised when a workflow session has no stored state."""

    def __init__(self, session_id: str):
        super().__init__(f"Session {session_id} not found")
        self.session_id = session_id
