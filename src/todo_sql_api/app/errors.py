"""Error taxonomy for the query pipeline.

Every error carries the HTTP status the API layer should answer with. The
pipeline catches ``PipelineError`` once at the top level and turns it into a
response body that still contains the milestone trace.
"""

from __future__ import annotations


class PipelineError(RuntimeError):
    """Base class for failures raised while handling one query."""

    status_code: int = 500


class ConfigurationError(PipelineError):
    """Required credentials or endpoints are missing."""

    def __init__(self, message: str, *, milestone: str) -> None:
        super().__init__(message)
        # Single trace entry returned with the error; no pipeline work has run yet.
        self.milestone = milestone


class ValidationInputError(PipelineError):
    """The caller sent an empty or missing query."""

    status_code = 400


class GenerationProviderError(PipelineError):
    """Provider A (SQL generation) could not be reached or returned an error."""


class ValidationProviderError(PipelineError):
    """Provider B (SQL validation) failed; callers fall back to local heuristics."""


class UnrepairableStatementError(PipelineError):
    """Validator rejected the statement and neither it nor local repair fixed it."""

    status_code = 400

    def __init__(self, reason: str | None, *, sql: str, suggestion: str) -> None:
        super().__init__(f"SQL validation failed: {reason}. Unable to auto-correct.")
        self.reason = reason
        self.sql = sql
        self.suggestion = suggestion


class ParseError(PipelineError):
    """A statement did not match its handler's restricted grammar."""


class StoreOperationError(PipelineError):
    """A row-store call failed; the message carries the store's own message."""


class UnsupportedStatementShapeError(PipelineError):
    """Statement type or WHERE shape is outside the supported set."""
