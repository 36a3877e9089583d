from __future__ import annotations

import pytest

from todo_sql_api.app.errors import ParseError, UnsupportedStatementShapeError
from todo_sql_api.app.statements import (
    CompletedEquals,
    EarliestCreated,
    IdEquals,
    TitleEquals,
    TitleLike,
    detect_query_type,
    parse_delete,
    parse_insert,
    parse_select,
    parse_update,
    where_to_filter,
)


def test_parse_insert_unescapes_doubled_quotes() -> None:
    statement = parse_insert("INSERT INTO todos (title, completed) VALUES ('Call John''s office', true)")
    assert statement.title == "Call John's office"
    assert statement.completed is True


def test_parse_insert_rejects_unquoted_title() -> None:
    with pytest.raises(ParseError, match="Could not parse INSERT statement"):
        parse_insert("INSERT INTO todos (title, completed) VALUES (buy milk, false)")


@pytest.mark.parametrize(
    ("sql", "where"),
    [
        ("SELECT * FROM todos WHERE title LIKE '%milk%'", TitleLike(term="milk")),
        ("SELECT * FROM todos WHERE title ILIKE '%Milk%' ORDER BY created_at DESC", TitleLike(term="Milk")),
        ("SELECT * FROM todos WHERE title = 'Buy milk'", TitleEquals(title="Buy milk")),
        ("select * from todos where completed = FALSE", CompletedEquals(completed=False)),
    ],
)
def test_parse_select_where_shapes(sql: str, where: object) -> None:
    assert parse_select(sql).where == where


def test_parse_select_keeps_unrecognised_where_text() -> None:
    statement = parse_select("SELECT * FROM todos WHERE created_at > now() - interval '1 day'")
    assert statement.where is None
    assert statement.raw_where == "created_at > now() - interval '1 day'"


def test_parse_select_without_where() -> None:
    statement = parse_select("SELECT * FROM todos ORDER BY created_at DESC")
    assert statement.where is None
    assert statement.raw_where is None


def test_parse_update_coerces_booleans_and_reads_id() -> None:
    statement = parse_update("UPDATE todos SET completed = TRUE WHERE id = 7")
    assert statement.column == "completed"
    assert statement.value is True
    assert statement.where == IdEquals(id="7")


def test_parse_update_quoted_title_by_like() -> None:
    statement = parse_update("UPDATE todos SET title = 'Buy oat milk' WHERE title LIKE '%milk%'")
    assert statement.value == "Buy oat milk"
    assert statement.where == TitleLike(term="milk")


def test_parse_update_earliest_created_subquery() -> None:
    statement = parse_update(
        "UPDATE todos SET completed = true "
        "WHERE id = (SELECT id FROM todos ORDER BY created_at LIMIT 1)"
    )
    assert isinstance(statement.where, EarliestCreated)


def test_parse_update_requires_where() -> None:
    with pytest.raises(UnsupportedStatementShapeError, match="UPDATE without WHERE clause"):
        parse_update("UPDATE todos SET completed = true")


def test_parse_update_rejects_extra_conditions() -> None:
    with pytest.raises(UnsupportedStatementShapeError, match="Unsupported WHERE clause in UPDATE"):
        parse_update("UPDATE todos SET completed = true WHERE id = 1 OR 1 = 1")


def test_parse_update_rejects_unknown_column() -> None:
    with pytest.raises(ParseError, match="Unsupported column"):
        parse_update("UPDATE todos SET created_at = 'yesterday' WHERE id = 1")


def test_parse_delete_requires_where() -> None:
    with pytest.raises(UnsupportedStatementShapeError, match="DELETE without WHERE clause"):
        parse_delete("DELETE FROM todos")


def test_parse_delete_does_not_accept_earliest_subquery() -> None:
    with pytest.raises(UnsupportedStatementShapeError, match="Unsupported WHERE clause in DELETE"):
        parse_delete("DELETE FROM todos WHERE id = (SELECT id FROM todos ORDER BY created_at LIMIT 1)")


def test_parse_delete_by_exact_title() -> None:
    statement = parse_delete("DELETE FROM todos WHERE title = 'call john'")
    assert statement.where == TitleEquals(title="call john")
    assert where_to_filter(statement.where).title_equals == "call john"


def test_detect_query_type() -> None:
    assert detect_query_type("  SELECT * FROM todos") == "select"
    assert detect_query_type("DROP TABLE todos") == "drop"
    assert detect_query_type("") == ""


def test_commentary_after_semicolon_is_ignored() -> None:
    insert = parse_insert(
        "INSERT INTO todos (title, completed) VALUES ('Buy milk', false);\nThis query adds a new task."
    )
    assert insert.title == "Buy milk"

    delete = parse_delete("DELETE FROM todos WHERE id = 1;\nThis removes the task.")
    assert delete.where == IdEquals(id="1")
    assert delete.raw_where == "id = 1"

    update = parse_update(
        "UPDATE todos SET title = 'a; b' WHERE title = 'x;y'; -- renames the task"
    )
    assert update.value == "a; b"
    assert update.where == TitleEquals(title="x;y")

    select = parse_select("SELECT * FROM todos WHERE completed = true; Returns finished tasks.")
    assert select.raw_where == "completed = true"


def test_commentary_does_not_hide_a_missing_where() -> None:
    with pytest.raises(UnsupportedStatementShapeError, match="UPDATE without WHERE clause"):
        parse_update("UPDATE todos SET completed = true;\nThis marks every task where needed.")


def test_conditions_before_the_semicolon_still_need_a_full_match() -> None:
    with pytest.raises(UnsupportedStatementShapeError, match="Unsupported WHERE clause in DELETE"):
        parse_delete("DELETE FROM todos WHERE id = 1\nOR 1 = 1;\nRemoves task one.")
