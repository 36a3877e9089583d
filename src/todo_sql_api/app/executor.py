from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from .errors import StoreOperationError, UnsupportedStatementShapeError
from .extractor import extract_clean_sql
from .models import Todo, TodoFilter, TodoListResult, Trace
from .statements import (
    ALLOWED_QUERY_TYPES,
    DeleteStatement,
    EarliestCreated,
    InsertStatement,
    SelectStatement,
    Statement,
    UpdateStatement,
    detect_query_type,
    parse_delete,
    parse_insert,
    parse_select,
    parse_update,
    where_to_filter,
)
from .storage import StoreError, TodoStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HandlerSpec:
    parse: Callable[[str], Statement]
    run: Callable[[Any, TodoStore, Trace], TodoListResult]


def _store_call(operation: str, fn: Callable[[], Any]) -> Any:
    try:
        return fn()
    except StoreError as exc:
        raise StoreOperationError(f"{operation} failed: {exc}") from exc


def list_all_todos(store: TodoStore, trace: Trace) -> TodoListResult:
    todos: list[Todo] = _store_call("Fetch todos", lambda: store.list_todos())
    trace.add(f"📋 Returning {len(todos)} todos")
    return TodoListResult(
        todos=todos,
        count=len(todos),
        message="Operation completed successfully",
    )


def handle_insert(statement: InsertStatement, store: TodoStore, trace: Trace) -> TodoListResult:
    trace.add(
        f'🔎 Parsed INSERT: title="{statement.title}", '
        f"completed={str(statement.completed).lower()}"
    )
    created: Todo = _store_call(
        "Insert",
        lambda: store.create_todo(statement.title, statement.completed),
    )
    trace.add(f"✅ Successfully created todo with ID: {created.id}")
    return list_all_todos(store, trace)


def handle_select(statement: SelectStatement, store: TodoStore, trace: Trace) -> TodoListResult:
    trace.add("🔎 Executing SELECT query")
    if statement.raw_where is None:
        return list_all_todos(store, trace)

    trace.add(f"🔎 Parsing WHERE clause: {statement.raw_where}")
    where = statement.where
    if where is None:
        # Unrecognised shapes return everything rather than failing.
        logger.warning("select event=unrecognised_where where=%s", statement.raw_where)
        trace.add("⚠️ WHERE clause not recognised; returning all todos")
    elif where.kind == "title_like":
        trace.add(f'🔎 Filtering todos containing: "{where.term}"')
    elif where.kind == "title_equals":
        trace.add(f'🔎 Filtering todos with exact title: "{where.title}"')
    elif where.kind == "completed_equals":
        trace.add(f"🔎 Filtering todos by completed status: {str(where.completed).lower()}")

    todo_filter = where_to_filter(where)
    todos: list[Todo] = _store_call("Select", lambda: store.list_todos(filter=todo_filter))
    trace.add(f"📋 Found {len(todos)} matching todos")
    return TodoListResult(
        todos=todos,
        count=len(todos),
        message=f"Found {len(todos)} matching todos",
    )


def handle_update(statement: UpdateStatement, store: TodoStore, trace: Trace) -> TodoListResult:
    shown_value = (
        str(statement.value).lower() if isinstance(statement.value, bool) else statement.value
    )
    trace.add(f"🔎 Parsed UPDATE: {statement.column}={shown_value}, WHERE: {statement.raw_where}")

    where = statement.where
    if isinstance(where, EarliestCreated):
        oldest: list[Todo] = _store_call(
            "Update",
            lambda: store.list_todos(ascending=True, limit=1),
        )
        if not oldest:
            trace.add("🔎 No todos to update")
            return list_all_todos(store, trace)
        todo_filter = TodoFilter(id=oldest[0].id)
        trace.add(f"🔎 Updating first todo (ID: {oldest[0].id})")
    else:
        todo_filter = where_to_filter(where)
        if where.kind == "id_equals":
            trace.add(f"🔎 Updating todo with ID: {where.id}")
        elif where.kind == "title_equals":
            trace.add(f'🔎 Updating todo with exact title: "{where.title}"')
        elif where.kind == "title_like":
            trace.add(f'🔎 Updating todos containing: "{where.term}"')

    updated: list[Todo] = _store_call(
        "Update",
        lambda: store.update_todos(todo_filter, {statement.column: statement.value}),
    )
    trace.add(f"✅ Successfully updated {len(updated)} todo(s)")
    return list_all_todos(store, trace)


def handle_delete(statement: DeleteStatement, store: TodoStore, trace: Trace) -> TodoListResult:
    trace.add(f"🔎 Parsed DELETE with WHERE: {statement.raw_where}")
    where = statement.where
    if where.kind == "id_equals":
        trace.add(f"🔎 Deleting todo with ID: {where.id}")
    elif where.kind == "title_equals":
        trace.add(f'🔎 Deleting todo with title: "{where.title}"')
    elif where.kind == "title_like":
        trace.add(f'🔎 Deleting todos containing: "{where.term}"')

    todo_filter = where_to_filter(where)
    deleted: int = _store_call("Delete", lambda: store.delete_todos(todo_filter))
    trace.add(f"✅ Successfully deleted {deleted} todo(s)")
    return list_all_todos(store, trace)


HANDLER_REGISTRY: dict[str, HandlerSpec] = {
    "insert": HandlerSpec(parse=parse_insert, run=handle_insert),
    "select": HandlerSpec(parse=parse_select, run=handle_select),
    "update": HandlerSpec(parse=parse_update, run=handle_update),
    "delete": HandlerSpec(parse=parse_delete, run=handle_delete),
}


class StatementExecutor:
    """Route a validated statement to its handler by leading keyword."""

    def __init__(
        self,
        *,
        store: TodoStore,
        registry: dict[str, HandlerSpec] | None = None,
    ) -> None:
        self.store = store
        self.registry = registry or dict(HANDLER_REGISTRY)

    def execute(self, sql: str, trace: Trace) -> TodoListResult:
        cleaned = extract_clean_sql(sql)
        query_type = detect_query_type(cleaned)
        trace.add(f'🔎 Cleaned SQL: "{cleaned}"')
        trace.add(f'🔎 Detected query type: "{query_type}"')

        spec = self.registry.get(query_type)
        if spec is None:
            raise UnsupportedStatementShapeError(
                f'Unsupported query type: "{query_type}". '
                f"Allowed types: {', '.join(ALLOWED_QUERY_TYPES)}. Raw input: \"{sql}\""
            )

        statement = spec.parse(cleaned)
        logger.info("statement event=parsed kind=%s", statement.kind)
        return spec.run(statement, self.store, trace)
