"""In-memory row store for tests and local demos."""

from __future__ import annotations

import itertools
import threading
from datetime import UTC, datetime
from typing import Any

from pydantic import ValidationError

from .models import Todo, TodoFilter
from .storage import StoreError, check_update_fields


class InMemoryTodoStore:
    """Dictionary-backed store with the same semantics as PostgresTodoStore."""

    def __init__(self) -> None:
        self._todos: dict[str, Todo] = {}
        # Insertion order breaks created_at ties.
        self._sequence: dict[str, int] = {}
        self._ids = itertools.count(1)
        self._lock = threading.Lock()

    def migrate(self) -> None:
        return None

    def create_todo(self, title: str, completed: bool = False) -> Todo:
        if not title.strip():
            raise StoreError("title must not be empty")
        with self._lock:
            todo_id = str(next(self._ids))
            todo = Todo(
                id=todo_id,
                title=title,
                completed=completed,
                created_at=datetime.now(UTC),
            )
            self._todos[todo_id] = todo
            self._sequence[todo_id] = int(todo_id)
        return todo.model_copy()

    def list_todos(
        self,
        *,
        filter: TodoFilter | None = None,
        ascending: bool = False,
        limit: int | None = None,
    ) -> list[Todo]:
        with self._lock:
            matches = [todo for todo in self._todos.values() if _matches(todo, filter)]
            matches.sort(
                key=lambda todo: (todo.created_at, self._sequence[todo.id]),
                reverse=not ascending,
            )
        if limit is not None:
            matches = matches[:limit]
        return [todo.model_copy() for todo in matches]

    def update_todos(self, filter: TodoFilter, fields: dict[str, Any]) -> list[Todo]:
        check_update_fields(fields)
        with self._lock:
            try:
                # Validate every row first so a bad value leaves nothing half-written.
                updated = [
                    Todo.model_validate({**todo.model_dump(), **fields})
                    for todo in self._todos.values()
                    if _matches(todo, filter)
                ]
            except ValidationError as exc:
                raise StoreError(f"invalid value for update: {exc.errors()[0]['msg']}") from exc
            for todo in updated:
                self._todos[todo.id] = todo
        return [todo.model_copy() for todo in updated]

    def delete_todos(self, filter: TodoFilter) -> int:
        with self._lock:
            doomed = [todo_id for todo_id, todo in self._todos.items() if _matches(todo, filter)]
            for todo_id in doomed:
                del self._todos[todo_id]
                del self._sequence[todo_id]
        return len(doomed)


def _matches(todo: Todo, filter: TodoFilter | None) -> bool:
    if filter is None:
        return True
    if filter.id is not None and todo.id != filter.id:
        return False
    if filter.title_equals is not None and todo.title != filter.title_equals:
        return False
    if filter.title_contains is not None and filter.title_contains.lower() not in todo.title.lower():
        return False
    if filter.completed is not None and todo.completed != filter.completed:
        return False
    return True
