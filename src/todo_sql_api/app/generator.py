"""SQL generation stage.

Beginner terms:
- Completion provider: an external model that turns a prompt into free text.
- Extraction: cutting the SQL statement out of that free text.
- Repair: quoting string literals the model forgot to quote.

The model's reply is never trusted directly. Whatever comes back is run
through extraction and repair, and the validator looks at it next.
"""

from __future__ import annotations

import logging

from .errors import GenerationProviderError
from .extractor import extract_clean_sql
from .llm import CompletionProvider, ProviderError
from .models import Intent
from .repair import fix_sql_syntax

logger = logging.getLogger(__name__)

TODO_SCHEMA = """
Table: todos
Columns:
- id (integer, primary key, auto-increment)
- title (text, not null)
- completed (boolean, default false)
- created_at (timestamp, default now())

Sample data:
- Learn ShadCN components (completed: false)
- Build NLP-to-SQL app (completed: true)
"""

# One worked example per intent.
GENERATION_EXAMPLES = (
    (
        "add a task to buy milk",
        "INSERT INTO todos (title, completed) VALUES ('buy milk', false);",
    ),
    ("show all tasks", "SELECT * FROM todos;"),
    (
        "mark first task complete",
        "UPDATE todos SET completed = true "
        "WHERE id = (SELECT id FROM todos ORDER BY created_at LIMIT 1);",
    ),
    ("delete the task call john", "DELETE FROM todos WHERE title = 'call john';"),
)


def build_generation_prompt(query: str, intent: Intent) -> str:
    examples = "\n".join(f'- For "{text}": {sql}' for text, sql in GENERATION_EXAMPLES)
    return (
        "You are a SQL expert. Convert the following natural language query "
        "to a PostgreSQL query.\n\n"
        f"Database Schema:\n{TODO_SCHEMA}\n"
        f'User Query: "{query}"\n'
        f"Intent: {intent}\n\n"
        "Rules:\n"
        "1. Only generate SELECT, INSERT, UPDATE, or DELETE statements\n"
        "2. Use proper PostgreSQL syntax with CORRECT QUOTING\n"
        "3. ALL string values MUST be wrapped in single quotes\n"
        "4. Be safe - no DROP, ALTER, or other dangerous operations\n"
        "5. For updates and deletes, use WHERE clauses to target specific records\n"
        "6. Return ONLY the SQL query with no explanations, no markdown, "
        "no additional text\n"
        "7. ALWAYS quote string literals properly\n\n"
        f"Examples:\n{examples}\n\n"
        "IMPORTANT: String values in INSERT/UPDATE statements MUST be wrapped "
        "in single quotes!\n\n"
        "SQL Query:"
    )


class SQLGenerator:
    """Ask provider A for a draft statement and clean it up."""

    def __init__(
        self,
        *,
        provider: CompletionProvider,
        temperature: float = 0.1,
        max_tokens: int = 150,
        timeout_s: float = 8.0,
    ) -> None:
        self.provider = provider
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout_s = timeout_s

    def generate(self, query: str, intent: Intent) -> str:
        prompt = build_generation_prompt(query, intent)
        try:
            raw_reply = self.provider.complete(
                prompt,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                timeout_s=self.timeout_s,
            )
        except ProviderError as exc:
            raise GenerationProviderError(f"SQL generation failed: {exc}") from exc
        logger.info("sql_generation event=completion_received chars=%d", len(raw_reply))

        sql = extract_clean_sql(raw_reply.strip())
        return fix_sql_syntax(sql, query)
