"""Pydantic models shared across API, pipeline stages, executor, and storage.

Beginner terms used in this file:
- Model: a typed schema class used for validation/serialization.
- Literal: restricts a field to a fixed set of allowed string values.
- alias: the JSON key used on the wire when it differs from the Python name.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

# The classifier always returns one of these; there is no "unknown" intent.
Intent = Literal["CREATE", "READ", "UPDATE", "DELETE"]


class Todo(BaseModel):
    """Canonical task record shape returned by API/storage."""

    # Store-assigned and opaque to the pipeline.
    id: str
    title: str
    completed: bool = False
    created_at: datetime


class TodoFilter(BaseModel):
    """Predicate understood by every row-store backend.

    Fields combine with AND; an empty filter matches every row.
    """

    id: str | None = None
    title_equals: str | None = None
    # Case-insensitive substring match.
    title_contains: str | None = None
    completed: bool | None = None

    def is_empty(self) -> bool:
        return (
            self.id is None
            and self.title_equals is None
            and self.title_contains is None
            and self.completed is None
        )


class Verdict(BaseModel):
    """Outcome of the validation stage."""

    valid: bool
    reason: str | None = None
    suggestion: str | None = None


class QueryBundle(BaseModel):
    """Per-request record of how the query was transformed at each stage."""

    model_config = ConfigDict(populate_by_name=True)

    original: str | None = None
    preprocessed: str | None = None
    intent: Intent | None = None
    generated_sql: str | None = Field(default=None, alias="generatedSQL")
    validated_sql: str | None = Field(default=None, alias="validatedSQL")


class Trace:
    """Append-only list of human-readable milestones for one request."""

    def __init__(self) -> None:
        self._entries: list[str] = []

    def add(self, entry: str) -> None:
        self._entries.append(entry)

    @property
    def entries(self) -> list[str]:
        # Copy so callers cannot rewrite history.
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)


class TodoListResult(BaseModel):
    """Result payload every statement handler returns."""

    todos: list[Todo] = Field(default_factory=list)
    count: int = 0
    message: str


class QueryRequest(BaseModel):
    """Request body for POST /api/query.

    ``query`` is optional here so a missing value is answered with the
    pipeline's own 400 body instead of FastAPI's 422.
    """

    query: str | None = None


class QueryResponse(BaseModel):
    """Response body for POST /api/query, both success and failure."""

    success: bool
    message: str | None = None
    sql: str | None = None
    data: TodoListResult | None = None
    error: str | None = None
    suggestion: str | None = None
    milestones: list[str] = Field(default_factory=list)
    queries: dict[str, Any] = Field(default_factory=dict)


class SqlRequest(BaseModel):
    """Request body for POST /api/sql."""

    sql: str | None = None


class CreateTodoRequest(BaseModel):
    """Request body for POST /api/todos."""

    title: str | None = None


class UpdateTodoRequest(BaseModel):
    """Request body for PUT /api/todos/{id}; unset fields stay unchanged."""

    title: str | None = Field(default=None, min_length=1)
    completed: bool | None = None
