from __future__ import annotations

import pytest

from todo_sql_api.app.extractor import extract_clean_sql, strip_code_fences


def test_strips_markdown_fences_and_semicolons() -> None:
    reply = "```sql\nSELECT * FROM todos;\n```"
    assert strip_code_fences(reply) == "SELECT * FROM todos;"
    assert extract_clean_sql(reply) == "SELECT * FROM todos"


def test_drops_leading_prose() -> None:
    reply = "Here is the query: DELETE FROM todos WHERE title = 'call john';"
    assert extract_clean_sql(reply) == "DELETE FROM todos WHERE title = 'call john'"


def test_label_form() -> None:
    assert extract_clean_sql("sql: UPDATE todos SET completed = true WHERE id = 4;") == (
        "UPDATE todos SET completed = true WHERE id = 4"
    )


def test_keyword_scan_ignores_word_boundaries() -> None:
    assert extract_clean_sql("xxSELECT id FROM todos;;") == "SELECT id FROM todos"


def test_text_without_keyword_is_returned_trimmed() -> None:
    assert extract_clean_sql("  DROP TABLE todos; ") == "DROP TABLE todos"


@pytest.mark.parametrize(
    "reply",
    [
        "",
        "```",
        "nothing useful here",
        "select",
        "{'valid': true}",
        "Sure! insert into todos (title, completed) values ('x', false)",
    ],
)
def test_never_raises(reply: str) -> None:
    result = extract_clean_sql(reply)
    assert isinstance(result, str)
    if any(keyword in reply.upper() for keyword in ("SELECT", "INSERT", "UPDATE", "DELETE")):
        assert result
