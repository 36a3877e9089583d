from __future__ import annotations

from collections.abc import Callable, Iterator
from typing import Any

import pytest
from fastapi.testclient import TestClient

from todo_sql_api.app.config import Settings, get_settings
from todo_sql_api.app.llm import ProviderError
from todo_sql_api.app.memory import InMemoryTodoStore

_PROVIDER_ENV = (
    "DATABASE_URL",
    "GROQ_API_KEY",
    "GEMINI_API_KEY",
    "TODO_SQL_DATABASE_URL",
    "TODO_SQL_GENERATOR_API_KEY",
    "TODO_SQL_VALIDATOR_API_KEY",
)


class ScriptedProvider:
    """Test-only completion provider that replays canned replies in order.

    An exception instance in the script is raised instead of returned.
    """

    def __init__(self, *replies: str | Exception) -> None:
        self._replies = list(replies)
        self.prompts: list[str] = []
        self.calls: list[dict[str, Any]] = []

    def complete(
        self,
        prompt: str,
        *,
        temperature: float,
        max_tokens: int,
        timeout_s: float,
    ) -> str:
        self.prompts.append(prompt)
        self.calls.append(
            {"temperature": temperature, "max_tokens": max_tokens, "timeout_s": timeout_s}
        )
        if not self._replies:
            raise ProviderError("no scripted reply left")
        reply = self._replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


@pytest.fixture
def isolated_env(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    for name in _PROVIDER_ENV:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("TODO_SQL_STORE_BACKEND", "memory")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def store() -> InMemoryTodoStore:
    return InMemoryTodoStore()


@pytest.fixture
def make_client(isolated_env: None, store: InMemoryTodoStore) -> Callable[..., TestClient]:
    from todo_sql_api import main as main_module

    def _make(**overrides: Any) -> TestClient:
        kwargs: dict[str, Any] = {
            "store": store,
            "settings_override": Settings(_env_file=None),
        }
        kwargs.update(overrides)
        return TestClient(main_module.create_app(**kwargs))

    return _make


@pytest.fixture
def client(make_client: Callable[..., TestClient]) -> TestClient:
    return make_client(generator_provider=ScriptedProvider("SELECT * FROM todos;"))


@pytest.fixture
def scripted() -> type[ScriptedProvider]:
    """Provider factory for tests that script their own replies."""
    return ScriptedProvider
