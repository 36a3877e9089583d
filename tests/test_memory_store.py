from __future__ import annotations

import pytest

from todo_sql_api.app.memory import InMemoryTodoStore
from todo_sql_api.app.models import TodoFilter
from todo_sql_api.app.storage import StoreError, check_update_fields


def test_ids_are_unique_strings_and_listing_is_newest_first() -> None:
    store = InMemoryTodoStore()
    first = store.create_todo("first")
    second = store.create_todo("second", completed=True)

    assert first.id != second.id
    assert [todo.id for todo in store.list_todos()] == [second.id, first.id]
    assert [todo.id for todo in store.list_todos(ascending=True, limit=1)] == [first.id]


def test_filters_combine_with_and() -> None:
    store = InMemoryTodoStore()
    store.create_todo("Buy milk", completed=True)
    store.create_todo("Buy bread")

    matches = store.list_todos(filter=TodoFilter(title_contains="BUY", completed=False))
    assert [todo.title for todo in matches] == ["Buy bread"]
    assert TodoFilter().is_empty()


def test_update_validates_before_writing() -> None:
    store = InMemoryTodoStore()
    todo = store.create_todo("Buy milk")

    with pytest.raises(StoreError, match="invalid value"):
        store.update_todos(TodoFilter(id=todo.id), {"completed": "sometimes"})

    assert store.list_todos()[0].completed is False


def test_update_and_delete_report_what_changed() -> None:
    store = InMemoryTodoStore()
    todo = store.create_todo("Buy milk")

    updated = store.update_todos(TodoFilter(id=todo.id), {"title": "Buy oat milk"})
    assert [row.title for row in updated] == ["Buy oat milk"]
    assert updated[0].created_at == todo.created_at

    assert store.delete_todos(TodoFilter(id="missing")) == 0
    assert store.delete_todos(TodoFilter(id=todo.id)) == 1
    assert store.list_todos() == []


def test_returned_rows_are_copies() -> None:
    store = InMemoryTodoStore()
    todo = store.create_todo("Buy milk")
    todo.title = "changed outside"
    assert store.list_todos()[0].title == "Buy milk"


@pytest.mark.parametrize(
    ("fields", "message"),
    [
        ({}, "No fields to update"),
        ({"id": "9"}, "Unknown column"),
        ({"title": "  "}, "title must not be empty"),
    ],
)
def test_check_update_fields(fields: dict, message: str) -> None:
    with pytest.raises(StoreError, match=message):
        check_update_fields(fields)


def test_blank_titles_are_rejected_on_create() -> None:
    with pytest.raises(StoreError):
        InMemoryTodoStore().create_todo("   ")
