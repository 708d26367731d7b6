"""Exceptions raised by the AutoBlog pipeline.

Only AutoBlogValidationError, GenerationUnavailableError and PersistenceError
end a run without a document. SourceDegradedError is caught by the context
aggregator; GenerationFailedError and GenerationTimeoutError are caught by
the generation orchestrator, which then tries the completion path.
"""

from typing import Any


class AutoBlogError(Exception):
    """Base exception for AutoBlog pipeline errors."""

    pass


class AutoBlogValidationError(AutoBlogError):
    """Raised when the request is invalid. No external call has been made."""

    def __init__(self, field: str, value: Any, message: str):
        self.field = field
        self.value = value
        self.message = message
        super().__init__(f"Validation failed for '{field}': {message}")


class SourceDegradedError(AutoBlogError):
    """Raised by a context source that could not produce content."""

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"Context source '{source}' degraded: {reason}")


class GenerationFailedError(AutoBlogError):
    """Raised when an assistant run ends in a failure state."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Generation failed: {reason}")


class GenerationTimeoutError(AutoBlogError):
    """Raised when an assistant run does not complete within the poll limit."""

    def __init__(self, attempts: int):
        self.attempts = attempts
        super().__init__(f"Generation did not complete after {attempts} polls")


class GenerationUnavailableError(AutoBlogError):
    """Raised when neither the assistant path nor the completion path produced text."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Generation unavailable: {reason}")


class PersistenceError(AutoBlogError):
    """Raised when images or the post cannot be stored."""

    def __init__(self, message: str, conflict: bool = False):
        self.message = message
        self.conflict = conflict
        super().__init__(message)
