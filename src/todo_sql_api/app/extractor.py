"""Pull a SQL statement out of a language model's free-text reply.

Model replies can wrap the statement in markdown fences, lead with prose
("Here is the query: ...") or trail commentary. ``extract_clean_sql`` never
raises; it always returns its best candidate and later stages decide whether
that candidate is usable.
"""

from __future__ import annotations

import re

SQL_KEYWORDS = ("SELECT", "INSERT", "UPDATE", "DELETE")

_KEYWORD_GROUP = r"(SELECT|INSERT|UPDATE|DELETE)"
_FENCE_SQL = re.compile(r"```sql\n?", re.IGNORECASE)
_FENCE = re.compile(r"```\n?")
_LEADING_TEXT = re.compile(r"^.*?\b" + _KEYWORD_GROUP, re.IGNORECASE | re.DOTALL)
_STARTS_WITH_KEYWORD = re.compile(r"^" + _KEYWORD_GROUP, re.IGNORECASE)

# Tried in order; the first candidate that starts with a keyword wins.
SQL_PATTERNS = (
    # A full statement running to the end of the text.
    re.compile(r"\b" + _KEYWORD_GROUP + r".*?;?$", re.IGNORECASE | re.DOTALL),
    # A statement behind a "query:" or "sql:" label, optionally quoted.
    re.compile(
        r"(?:query|sql)[\"']?\s*:?\s*[\"']?" + _KEYWORD_GROUP + r".*?[\"']?;?$",
        re.IGNORECASE | re.DOTALL,
    ),
    # A statement after an introductory phrase such as "Here is".
    re.compile(
        r"(?:here\s+is|query\s+is|sql\s+is).*?" + _KEYWORD_GROUP + r".*?;?$",
        re.IGNORECASE | re.DOTALL,
    ),
)


def strip_code_fences(text: str) -> str:
    without_sql_fence = _FENCE_SQL.sub("", text)
    return _FENCE.sub("", without_sql_fence).strip()


def strip_trailing_semicolons(sql: str) -> str:
    return sql.strip().rstrip(";").strip()


def extract_clean_sql(raw_text: str) -> str:
    """Return the best SQL candidate found in ``raw_text``."""
    cleaned = strip_code_fences(raw_text)

    for pattern in SQL_PATTERNS:
        match = pattern.search(cleaned)
        if match is None:
            continue
        candidate = _LEADING_TEXT.sub(r"\1", match.group(0), count=1)
        candidate = strip_trailing_semicolons(candidate)
        if candidate and _STARTS_WITH_KEYWORD.match(candidate):
            return candidate

    # Keyword scan in fixed order, ignoring word boundaries.
    upper = cleaned.upper()
    for keyword in SQL_KEYWORDS:
        index = upper.find(keyword)
        if index != -1:
            extracted = strip_trailing_semicolons(cleaned[index:])
            if extracted:
                return extracted

    return strip_trailing_semicolons(cleaned)
