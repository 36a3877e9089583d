"""Row-store capability for the ``todos`` table, plus the PostgreSQL backend.

Beginner terms:
- Migration: creating/updating database tables before normal reads/writes.
- CRUD: create, read, update, delete operations.
- Row factory: returns query rows as dict-like objects instead of tuples.
- Filter: the only predicate language the pipeline speaks to a store. The
  pipeline never hands SQL text to the database.
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Protocol

from .models import Todo, TodoFilter

UPDATABLE_COLUMNS = frozenset({"title", "completed"})


class StoreError(RuntimeError):
    """Raised by any row-store backend when an operation fails."""


class TodoStore(Protocol):
    def migrate(self) -> None: ...

    def create_todo(self, title: str, completed: bool = False) -> Todo: ...

    def list_todos(
        self,
        *,
        filter: TodoFilter | None = None,
        ascending: bool = False,
        limit: int | None = None,
    ) -> list[Todo]: ...

    def update_todos(self, filter: TodoFilter, fields: dict[str, Any]) -> list[Todo]: ...

    def delete_todos(self, filter: TodoFilter) -> int: ...


def check_update_fields(fields: dict[str, Any]) -> None:
    """Reject unknown columns and empty titles before touching a backend."""
    unknown = set(fields) - UPDATABLE_COLUMNS
    if unknown:
        raise StoreError(f"Unknown column(s): {', '.join(sorted(unknown))}")
    if not fields:
        raise StoreError("No fields to update")
    if "title" in fields and not str(fields["title"]).strip():
        raise StoreError("title must not be empty")


class PostgresTodoStore:
    """Thread-safe PostgreSQL-backed storage for Todo records."""

    def __init__(self, database_url: str) -> None:
        if not database_url:
            raise ValueError("database_url is required")
        self.database_url = database_url
        # Lock guards DB operations done through this storage instance.
        self._lock = threading.Lock()
        # Lazy import helper keeps error message clear if psycopg is missing.
        self._psycopg, self._dict_row = self._load_psycopg()

    def migrate(self) -> None:
        """Create required table and index if they do not already exist."""
        with self._guarded() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS todos (
                    id BIGSERIAL PRIMARY KEY,
                    title TEXT NOT NULL CHECK (title <> ''),
                    completed BOOLEAN NOT NULL DEFAULT false,
                    created_at TIMESTAMPTZ NOT NULL DEFAULT now()
                )
                """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_todos_created_at
                ON todos(created_at DESC)
                """)
            conn.commit()

    def create_todo(self, title: str, completed: bool = False) -> Todo:
        if not title.strip():
            raise StoreError("title must not be empty")
        with self._guarded() as conn:
            row = conn.execute(
                "INSERT INTO todos (title, completed) VALUES (%s, %s) RETURNING *",
                (title, completed),
            ).fetchone()
            conn.commit()
        return self._row_to_todo(row)

    def list_todos(
        self,
        *,
        filter: TodoFilter | None = None,
        ascending: bool = False,
        limit: int | None = None,
    ) -> list[Todo]:
        where_sql, params = self._where(filter)
        direction = "ASC" if ascending else "DESC"
        sql = f"SELECT * FROM todos{where_sql} ORDER BY created_at {direction}, id {direction}"
        if limit is not None:
            sql += " LIMIT %s"
            params.append(limit)
        with self._guarded() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [self._row_to_todo(row) for row in rows]

    def update_todos(self, filter: TodoFilter, fields: dict[str, Any]) -> list[Todo]:
        check_update_fields(fields)
        where_sql, where_params = self._where(filter)
        # Column names come from the UPDATABLE_COLUMNS allowlist checked above.
        assignments = ", ".join(f"{column} = %s" for column in fields)
        with self._guarded() as conn:
            rows = conn.execute(
                f"UPDATE todos SET {assignments}{where_sql} RETURNING *",
                [*fields.values(), *where_params],
            ).fetchall()
            conn.commit()
        return [self._row_to_todo(row) for row in rows]

    def delete_todos(self, filter: TodoFilter) -> int:
        where_sql, params = self._where(filter)
        with self._guarded() as conn:
            cursor = conn.execute(f"DELETE FROM todos{where_sql}", params)
            conn.commit()
        return cursor.rowcount

    @contextmanager
    def _guarded(self) -> Iterator[Any]:
        """Hold the lock for one connection and surface driver errors as StoreError."""
        with self._lock:
            try:
                with self._connect() as conn:
                    yield conn
            except self._psycopg.Error as exc:
                raise StoreError(str(exc).strip()) from exc

    def _connect(self) -> Any:
        """Open a psycopg connection that yields dict-like rows."""
        return self._psycopg.connect(self.database_url, row_factory=self._dict_row)

    @staticmethod
    def _where(filter: TodoFilter | None) -> tuple[str, list[Any]]:
        if filter is None or filter.is_empty():
            return "", []
        clauses: list[str] = []
        params: list[Any] = []
        if filter.id is not None:
            clauses.append("id::text = %s")
            params.append(filter.id)
        if filter.title_equals is not None:
            clauses.append("title = %s")
            params.append(filter.title_equals)
        if filter.title_contains is not None:
            clauses.append("title ILIKE %s ESCAPE '\\'")
            params.append(f"%{_escape_like(filter.title_contains)}%")
        if filter.completed is not None:
            clauses.append("completed = %s")
            params.append(filter.completed)
        return " WHERE " + " AND ".join(clauses), params

    @staticmethod
    def _load_psycopg() -> tuple[Any, Any]:
        """Import psycopg and helpers with a friendly install hint on failure."""
        try:
            import psycopg
            from psycopg.rows import dict_row
        except ImportError as exc:  # pragma: no cover - exercised only without dependency
            raise RuntimeError(
                "PostgreSQL backend requires psycopg. Install with: "
                'python -m pip install "psycopg[binary]>=3.2,<4.0"'
            ) from exc
        return psycopg, dict_row

    @staticmethod
    def _parse_datetime(raw: Any) -> datetime:
        """Parse datetime value from database driver output."""
        if isinstance(raw, datetime):
            return raw
        if isinstance(raw, str):
            return datetime.fromisoformat(raw)
        raise TypeError(f"Unsupported datetime value: {type(raw)!r}")

    @classmethod
    def _row_to_todo(cls, row: Any) -> Todo:
        """Map one DB row to the canonical Todo Pydantic model."""
        return Todo(
            id=str(row["id"]),
            title=row["title"],
            completed=bool(row["completed"]),
            created_at=cls._parse_datetime(row["created_at"]),
        )


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
