from __future__ import annotations

import json
import logging
import re

from pydantic import ValidationError

from .errors import ValidationProviderError
from .extractor import extract_clean_sql
from .generator import TODO_SCHEMA
from .llm import CompletionProvider
from .models import Verdict
from .repair import fix_sql_syntax

logger = logging.getLogger(__name__)

DANGEROUS_KEYWORDS = ("drop", "alter", "truncate")
# Dangerous only when no WHERE clause narrows them.
UNQUALIFIED_KEYWORDS = ("delete from todos", "update todos set")
_WHERE = re.compile(r"\bwhere\b")
UNQUOTED_VALUES_PATTERN = re.compile(
    r"VALUES\s*\(\s*[^'\"\s][^,)]+,\s*(true|false|\d+)\s*\)", re.IGNORECASE
)


def build_validation_prompt(original_query: str, sql: str) -> str:
    return (
        "Analyze this SQL query for safety and correctness:\n\n"
        f'Original User Request: "{original_query}"\n'
        f'Generated SQL: "{sql}"\n'
        f"Database Schema: {TODO_SCHEMA}\n"
        "IMPORTANT: The table ONLY has these columns: id, title, completed, created_at\n"
        "There is NO assignee column or any other columns!\n\n"
        "Check:\n"
        "1. Is the SQL safe (no DROP, ALTER, etc.)?\n"
        "2. Does it match the user's intent?\n"
        "3. Is the syntax correct for PostgreSQL?\n"
        "4. Are column names valid (only id, title, completed, created_at)?\n"
        "5. Are string literals properly quoted with single quotes?\n"
        "6. Does the task title make sense given the user's request?\n\n"
        "Rules for corrections:\n"
        "- Use title LIKE '%keyword%' for searching content\n"
        "- Use title = 'exact title' for exact matches\n"
        "- Only use existing columns: id, title, completed, created_at\n"
        "- Never use assignee or other non-existent columns\n\n"
        "Respond with JSON only - no additional text:\n"
        "{\n"
        '  "valid": true/false,\n'
        '  "reason": "explanation if invalid",\n'
        '  "suggestion": "corrected SQL if needed (SQL only, no explanations, properly quoted)"\n'
        "}"
    )


def find_json_object(text: str) -> str | None:
    """Return the first balanced ``{...}`` block in ``text``.

    Braces inside JSON string literals do not count toward the balance.
    """
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        for index in range(start, len(text)):
            char = text[index]
            if in_string:
                if escaped:
                    escaped = False
                elif char == "\\":
                    escaped = True
                elif char == '"':
                    in_string = False
                continue
            if char == '"':
                in_string = True
            elif char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    return text[start : index + 1]
        # Unbalanced from this brace; try the next one.
        start = text.find("{", start + 1)
    return None


def parse_verdict(text: str) -> Verdict | None:
    """Decode a model reply into a verdict, or ``None`` when it cannot."""
    block = find_json_object(text)
    if block is None:
        return None
    try:
        payload = json.loads(block)
    except json.JSONDecodeError:
        return None
    if not isinstance(payload, dict):
        return None
    try:
        verdict = Verdict.model_validate(payload)
    except ValidationError:
        return None
    if verdict.suggestion is not None and not verdict.suggestion.strip():
        verdict.suggestion = None
    return verdict


def heuristic_verdict(original_query: str, sql: str) -> Verdict:
    """Local safety net used when the remote validator is unavailable."""
    if not sql.strip():
        return Verdict(valid=False, reason="Generated SQL is empty")
    if UNQUOTED_VALUES_PATTERN.search(sql):
        return Verdict(
            valid=False,
            reason="String literals must be properly quoted with single quotes",
            suggestion=fix_sql_syntax(sql, original_query),
        )

    lowered = " ".join(sql.lower().split())
    is_dangerous = any(keyword in lowered for keyword in DANGEROUS_KEYWORDS) or (
        any(keyword in lowered for keyword in UNQUALIFIED_KEYWORDS) and not _WHERE.search(lowered)
    )
    return Verdict(
        valid=not is_dangerous,
        reason="Query contains potentially dangerous operations" if is_dangerous else None,
    )


class SQLValidator:
    """Two-tier validation: remote semantic check first, local heuristics second."""

    def __init__(
        self,
        *,
        provider: CompletionProvider | None,
        temperature: float = 0.0,
        max_tokens: int = 512,
        timeout_s: float = 8.0,
    ) -> None:
        self.provider = provider
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout_s = timeout_s

    def validate(self, original_query: str, sql: str) -> Verdict:
        verdict: Verdict | None = None
        if self.provider is not None:
            try:
                verdict = parse_verdict(self._request_review(original_query, sql))
            except ValidationProviderError as exc:
                # Validation provider failures are never fatal.
                logger.warning("sql_validation event=provider_failed reason=%s", exc)

        if verdict is None:
            logger.warning("sql_validation event=fallback reason=no_remote_verdict")
            return heuristic_verdict(original_query, sql)

        if verdict.suggestion:
            suggestion = extract_clean_sql(verdict.suggestion)
            verdict.suggestion = fix_sql_syntax(suggestion, original_query)
        return verdict

    def _request_review(self, original_query: str, sql: str) -> str:
        try:
            return self.provider.complete(
                build_validation_prompt(original_query, sql),
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                timeout_s=self.timeout_s,
            )
        except Exception as exc:  # noqa: BLE001
            raise ValidationProviderError(str(exc)) from exc
