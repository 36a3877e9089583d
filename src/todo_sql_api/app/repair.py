"""Local, deterministic repair of unquoted string literals.

Language models sometimes emit ``VALUES (buy milk, false)`` or
``SET title = buy milk``. The repair rebuilds the literal from the user's own
words, because the model's literal may already have lost some of them.
"""

from __future__ import annotations

import re

_COMMAND_PREFIX = re.compile(
    r"^(create|add|new|make|insert)\s+(a\s+)?(task|todo|item)\s+(for\s+me\s+)?(to\s+)?",
    re.IGNORECASE,
)
_ACTION_VERBS = ("order ", "buy ", "call ")

# First argument unquoted, second a boolean/null/number literal.
INSERT_UNQUOTED_PATTERNS = (
    re.compile(
        r"VALUES\s*\(\s*([^'\"\s][^,)]*[^'\"\s][^,)]*),\s*(true|false|null|\d+)\s*\)",
        re.IGNORECASE,
    ),
    re.compile(r"VALUES\s*\(\s*([^'\"\s][^,)]+),\s*(true|false|null|\d+)\s*\)", re.IGNORECASE),
)
UPDATE_UNQUOTED_PATTERN = re.compile(
    r"SET\s+(\w+)\s*=\s*([^'\"\s][^;]*?)(?=\s+WHERE\b|\s*;|\s*$)",
    re.IGNORECASE,
)


def extract_task_description(query: str) -> str:
    """Recover the task title from the user's request.

    "add a task to buy milk" -> "Buy milk"
    "create a task for me to remember to water plants" -> "Water plants"
    """
    cleaned = _COMMAND_PREFIX.sub("", query.lower(), count=1)
    cleaned = re.sub(r",$", "", cleaned).strip()

    if cleaned.startswith(_ACTION_VERBS):
        description = cleaned
    elif " to " in cleaned:
        description = cleaned[cleaned.index(" to ") + 4 :]
    else:
        description = cleaned
    return description[:1].upper() + description[1:]


def quote_literal(value: str) -> str:
    """Single-quote ``value`` for SQL, doubling embedded quotes."""
    return "'" + value.replace("'", "''") + "'"


def fix_sql_syntax(sql: str, original_query: str) -> str:
    """Quote an unquoted INSERT title or UPDATE ... SET title value.

    Returns ``sql`` unchanged when neither defect is present.
    """
    upper = sql.upper()

    if "INSERT INTO TODOS" in upper:
        for pattern in INSERT_UNQUOTED_PATTERNS:
            match = pattern.search(sql)
            if match is None:
                continue
            literal = quote_literal(extract_task_description(original_query))
            replacement = f"VALUES ({literal}, {match.group(2)})"
            return sql[: match.start()] + replacement + sql[match.end() :]

    if "UPDATE TODOS SET" in upper:
        match = UPDATE_UNQUOTED_PATTERN.search(sql)
        if match is not None and match.group(1).lower() == "title":
            literal = quote_literal(extract_task_description(original_query))
            replacement = f"SET {match.group(1)} = {literal}"
            return sql[: match.start()] + replacement + sql[match.end() :]

    return sql
