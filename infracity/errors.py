"""
Error types for InfraCity.

Every failure inside an analysis job is an ``AnalysisError`` subclass; the
worker loop turns it into a ``failed`` job with a bounded message.
"""

from typing import Optional


class RegistrationError(ValueError):
    """Client-caused registration problem (e.g. missing required fields)."""


class AnalysisError(Exception):
    """Base class for failures that abort an analysis job."""

    kind = "AnalysisError"

    def __init__(self, message: str, *, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause

    def __str__(self) -> str:
        return self.message


class RepositoryNotFoundError(AnalysisError):
    """The job references a repository that no longer exists."""

    kind = "RepositoryNotFound"


class CloneError(AnalysisError):
    """Cloning the repository failed (network, auth, missing branch, timeout)."""

    kind = "CloneFailed"


class ExtractionError(AnalysisError):
    """The cloned tree contained no recognizable evidence files."""

    kind = "ExtractionFailed"


class ClassificationError(AnalysisError):
    """The classification service failed or returned unusable output."""

    kind = "ClassificationFailed"


class PersistenceError(AnalysisError):
    """Replacing the repository's component set failed and was rolled back."""

    kind = "PersistenceFailed"


def format_job_error(error: BaseException, limit: int = 5000) -> str:
    """Render an exception as the bounded, human-readable job error message."""
    kind = getattr(error, "kind", None) or type(error).__name__
    message = str(error).strip() or type(error).__name__
    text = f"{kind}: {message}"
    return text[:limit]
