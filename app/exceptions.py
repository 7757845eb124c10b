"""
Error taxonomy for the analysis core.

Every failure raised by the semantic index, the provider clients, the
generation stages and the ingestion worker is a ``NavigatorError`` so the
HTTP layer can tell domain failures from programming errors.
"""
from __future__ import annotations

from typing import Optional


class NavigatorError(Exception):
    """Base class for all domain errors."""


class NoDocuments(NavigatorError):
    """Profiling was attempted on a project that has no documents."""

    def __init__(self, project_id: str) -> None:
        self.project_id = project_id
        super().__init__(f"Project {project_id} has no documents")


class UnsupportedFileType(NavigatorError):
    """The file extension is outside the extraction allow-list."""

    def __init__(self, extension: str) -> None:
        self.extension = extension
        super().__init__(f"Unsupported file type: {extension!r}")


class EmptyDocument(NavigatorError):
    """Text extraction succeeded but produced only whitespace."""

    def __init__(self, file_path: str) -> None:
        self.file_path = file_path
        super().__init__(f"No text extracted from document {file_path!r}")


class MissingCredential(NavigatorError):
    """No API key is configured for the provider."""


class ProviderError(NavigatorError):
    """The text-generation or embedding provider failed."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class GenerationContractViolation(NavigatorError):
    """A stage response did not parse as JSON or did not match its shape."""

    def __init__(self, stage: str, reason: str) -> None:
        self.stage = stage
        self.reason = reason
        super().__init__(f"{stage} returned an invalid response: {reason}")


class DimensionMismatch(NavigatorError):
    """Two embedding vectors of unequal length were compared."""

    def __init__(self, left: int, right: int) -> None:
        self.left = left
        self.right = right
        super().__init__(
            f"Vectors must have the same length (got {left} and {right})"
        )


class PipelineStageError(NavigatorError):
    """A pipeline stage failed; wraps the original error with the stage name."""

    def __init__(self, stage: str, cause: BaseException) -> None:
        self.stage = stage
        self.cause = cause
        super().__init__(f"Analysis failed at stage '{stage}': {cause}")


class ProjectNotFound(NavigatorError):
    """The project id does not exist in the document store."""

    def __init__(self, project_id: str) -> None:
        self.project_id = project_id
        super().__init__(f"Project {project_id} not found")
