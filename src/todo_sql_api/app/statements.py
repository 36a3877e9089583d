"""Typed statement shapes and the restricted grammar that produces them.

Only four statement kinds against the ``todos`` table are understood. Each
parser either returns one typed statement or raises; nothing downstream ever
looks at raw SQL text again.
"""

from __future__ import annotations

import re
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field

from .errors import ParseError, UnsupportedStatementShapeError
from .models import TodoFilter

ALLOWED_QUERY_TYPES = ("select", "insert", "update", "delete")


class IdEquals(BaseModel):
    kind: Literal["id_equals"] = "id_equals"
    id: str


class TitleEquals(BaseModel):
    kind: Literal["title_equals"] = "title_equals"
    title: str


class TitleLike(BaseModel):
    kind: Literal["title_like"] = "title_like"
    term: str


class CompletedEquals(BaseModel):
    kind: Literal["completed_equals"] = "completed_equals"
    completed: bool


class EarliestCreated(BaseModel):
    """``id = (SELECT id ... ORDER BY created_at LIMIT 1)``, resolved by a lookup."""

    kind: Literal["earliest_created"] = "earliest_created"


WhereClause = Annotated[
    Union[IdEquals, TitleEquals, TitleLike, CompletedEquals, EarliestCreated],
    Field(discriminator="kind"),
]


class InsertStatement(BaseModel):
    kind: Literal["insert"] = "insert"
    title: str
    completed: bool


class SelectStatement(BaseModel):
    kind: Literal["select"] = "select"
    # None with raw_where set means the WHERE text was not understood.
    where: WhereClause | None = None
    raw_where: str | None = None


class UpdateStatement(BaseModel):
    kind: Literal["update"] = "update"
    column: Literal["title", "completed"]
    value: bool | str
    where: WhereClause
    raw_where: str


class DeleteStatement(BaseModel):
    kind: Literal["delete"] = "delete"
    where: WhereClause
    raw_where: str


Statement = Annotated[
    Union[InsertStatement, SelectStatement, UpdateStatement, DeleteStatement],
    Field(discriminator="kind"),
]

_FLAGS = re.IGNORECASE | re.DOTALL
# A single-quoted SQL literal; '' is an escaped quote.
_QUOTED = r"'((?:[^']|'')+)'"

INSERT_PATTERN = re.compile(
    r"^INSERT\s+INTO\s+todos\s*\([^)]+\)\s*VALUES\s*\(\s*" + _QUOTED + r"\s*,\s*(true|false)\s*\)$",
    _FLAGS,
)
SELECT_WHERE_PATTERN = re.compile(r"WHERE\s+(.+?)(?:\s+ORDER\s+BY|$)", _FLAGS)
UPDATE_QUOTED_PATTERN = re.compile(
    r"^UPDATE\s+todos\s+SET\s+(\w+)\s*=\s*" + _QUOTED + r"(?:\s+WHERE\s+(.+))?$",
    _FLAGS,
)
UPDATE_BARE_PATTERN = re.compile(
    r"^UPDATE\s+todos\s+SET\s+(\w+)\s*=\s*([^,\s]+)(?:\s+WHERE\s+(.+))?$",
    _FLAGS,
)
DELETE_PATTERN = re.compile(r"^DELETE\s+FROM\s+todos\b(?:\s+WHERE\s+(.+))?$", _FLAGS)

ID_EQUALS_PATTERN = re.compile(r"id\s*=\s*'?([^'\s()]+)'?", re.IGNORECASE)
TITLE_EQUALS_PATTERN = re.compile(r"title\s*=\s*" + _QUOTED, re.IGNORECASE)
TITLE_LIKE_PATTERN = re.compile(r"title\s+I?LIKE\s+'%([^%']+)%'", re.IGNORECASE)
COMPLETED_PATTERN = re.compile(r"completed\s*=\s*(true|false)", re.IGNORECASE)
# Everything up to the first semicolon that is not inside a quoted literal.
_STATEMENT_BODY = re.compile(r"(?:[^';]|'(?:[^']|'')*')*")


def detect_query_type(sql: str) -> str:
    """First whitespace-delimited token, lowercased."""
    tokens = sql.lower().split()
    return tokens[0] if tokens else ""


def unquote(literal: str) -> str:
    return literal.replace("''", "'")


def statement_body(sql: str) -> str:
    """Drop a trailing semicolon and any commentary the model wrote after it."""
    return _STATEMENT_BODY.match(sql).group(0).strip()


def parse_insert(sql: str) -> InsertStatement:
    match = INSERT_PATTERN.match(statement_body(sql))
    if match is None:
        raise ParseError("Could not parse INSERT statement")
    return InsertStatement(
        title=unquote(match.group(1)),
        completed=match.group(2).lower() == "true",
    )


def parse_select(sql: str) -> SelectStatement:
    match = SELECT_WHERE_PATTERN.search(statement_body(sql))
    if match is None:
        return SelectStatement()
    raw_where = match.group(1).strip()

    # Substring matches on purpose: the first recognised shape wins.
    like_match = TITLE_LIKE_PATTERN.search(raw_where)
    if like_match:
        return SelectStatement(where=TitleLike(term=like_match.group(1)), raw_where=raw_where)
    title_match = TITLE_EQUALS_PATTERN.search(raw_where)
    if title_match:
        return SelectStatement(
            where=TitleEquals(title=unquote(title_match.group(1))), raw_where=raw_where
        )
    completed_match = COMPLETED_PATTERN.search(raw_where)
    if completed_match:
        return SelectStatement(
            where=CompletedEquals(completed=completed_match.group(1).lower() == "true"),
            raw_where=raw_where,
        )
    return SelectStatement(raw_where=raw_where)


def parse_update(sql: str) -> UpdateStatement:
    stripped = statement_body(sql)
    match = UPDATE_QUOTED_PATTERN.match(stripped)
    quoted = match is not None
    if match is None:
        match = UPDATE_BARE_PATTERN.match(stripped)
    if match is None:
        raise ParseError("Could not parse UPDATE statement")

    column = match.group(1).lower()
    raw_value = match.group(2)
    raw_where = match.group(3)
    if raw_where is None:
        raise UnsupportedStatementShapeError(
            "UPDATE without WHERE clause is not allowed for safety"
        )
    if column not in ("title", "completed"):
        raise ParseError(f"Unsupported column in UPDATE: {column}")

    value: bool | str
    if quoted:
        value = unquote(raw_value)
    elif raw_value.lower() in ("true", "false"):
        value = raw_value.lower() == "true"
    else:
        value = raw_value

    raw_where = raw_where.strip()
    return UpdateStatement(
        column=column,
        value=value,
        where=_parse_mutation_where(raw_where, statement="UPDATE", allow_earliest=True),
        raw_where=raw_where,
    )


def parse_delete(sql: str) -> DeleteStatement:
    match = DELETE_PATTERN.match(statement_body(sql))
    if match is None:
        raise ParseError("Could not parse DELETE statement")
    raw_where = match.group(1)
    if raw_where is None:
        raise UnsupportedStatementShapeError(
            "DELETE without WHERE clause is not allowed for safety"
        )
    raw_where = raw_where.strip()
    return DeleteStatement(
        where=_parse_mutation_where(raw_where, statement="DELETE", allow_earliest=False),
        raw_where=raw_where,
    )


def _parse_mutation_where(raw_where: str, *, statement: str, allow_earliest: bool) -> WhereClause:
    """Recognise WHERE shapes for statements that change rows.

    The whole clause has to match one shape; extra conditions are refused
    rather than silently dropped.
    """
    id_match = ID_EQUALS_PATTERN.fullmatch(raw_where)
    if id_match:
        return IdEquals(id=id_match.group(1))
    title_match = TITLE_EQUALS_PATTERN.fullmatch(raw_where)
    if title_match:
        return TitleEquals(title=unquote(title_match.group(1)))
    like_match = TITLE_LIKE_PATTERN.fullmatch(raw_where)
    if like_match:
        return TitleLike(term=like_match.group(1))
    upper = raw_where.upper()
    if allow_earliest and "ORDER BY" in upper and "LIMIT" in upper:
        return EarliestCreated()
    raise UnsupportedStatementShapeError(f"Unsupported WHERE clause in {statement}: {raw_where}")


def where_to_filter(where: WhereClause | None) -> TodoFilter:
    """Translate a recognised WHERE shape into a row-store filter.

    ``EarliestCreated`` needs a lookup first and is resolved by the executor.
    """
    if where is None:
        return TodoFilter()
    if isinstance(where, IdEquals):
        return TodoFilter(id=where.id)
    if isinstance(where, TitleEquals):
        return TodoFilter(title_equals=where.title)
    if isinstance(where, TitleLike):
        return TodoFilter(title_contains=where.term)
    if isinstance(where, CompletedEquals):
        return TodoFilter(completed=where.completed)
    raise TypeError(f"WHERE shape needs resolving before filtering: {where.kind}")
