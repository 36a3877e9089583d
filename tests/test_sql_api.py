from __future__ import annotations

from fastapi.testclient import TestClient

from todo_sql_api.app.memory import InMemoryTodoStore


def test_sql_runs_through_restricted_executor(
    client: TestClient, store: InMemoryTodoStore
) -> None:
    store.create_todo("Buy milk")
    store.create_todo("Walk dog", completed=True)

    response = client.post("/api/sql", json={"sql": "SELECT * FROM todos WHERE completed = true;"})

    assert response.status_code == 200
    payload = response.json()
    assert [todo["title"] for todo in payload["data"]["todos"]] == ["Walk dog"]
    assert payload["milestones"][0] == '🔎 Cleaned SQL: "SELECT * FROM todos WHERE completed = true"'


def test_sql_requires_a_statement(client: TestClient) -> None:
    for body in ({}, {"sql": " "}):
        response = client.post("/api/sql", json=body)
        assert response.status_code == 400
        assert response.json() == {"detail": "SQL query is required"}


def test_sql_refuses_statements_outside_the_grammar(
    client: TestClient, store: InMemoryTodoStore
) -> None:
    store.create_todo("Buy milk")

    for sql in ("DROP TABLE todos", "DELETE FROM todos", "TRUNCATE todos"):
        response = client.post("/api/sql", json={"sql": sql})
        assert response.status_code == 500
        payload = response.json()
        assert payload["milestones"][-1] == f"❌ Error: {payload['error']}"

    assert len(store.list_todos()) == 1
