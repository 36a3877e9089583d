"""FastAPI application wiring for the natural-language todo service.

Beginner terms used in this file:
- FastAPI app: the main web application object.
- Route/path operation: a function exposed over HTTP (for example, GET /health).
- app.state: a place to store shared runtime objects (store, pipeline).
- Injection: tests pass fakes for the store and both completion providers
  instead of reaching real services.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, HTTPException
from fastapi.responses import JSONResponse

from .app.config import Settings, get_settings
from .app.errors import PipelineError
from .app.executor import StatementExecutor
from .app.generator import SQLGenerator
from .app.llm import CompletionProvider, build_generator_provider, build_validator_provider
from .app.memory import InMemoryTodoStore
from .app.models import (
    CreateTodoRequest,
    QueryRequest,
    SqlRequest,
    Todo,
    TodoFilter,
    Trace,
    UpdateTodoRequest,
)
from .app.pipeline import QueryPipeline
from .app.storage import PostgresTodoStore, StoreError, TodoStore
from .app.validator import SQLValidator

logger = logging.getLogger(__name__)


def create_app(
    *,
    store: TodoStore | None = None,
    generator_provider: CompletionProvider | None = None,
    validator_provider: CompletionProvider | None = None,
    settings_override: Settings | None = None,
) -> FastAPI:
    """Application factory.

    Anything not injected is built from settings. Missing configuration does
    not stop the app from starting; /api/query answers with a 500 body naming
    what is missing instead.
    """
    settings = settings_override or get_settings()
    store = store if store is not None else _build_store(settings)
    generator_provider = generator_provider or build_generator_provider(settings)
    validator_provider = validator_provider or build_validator_provider(settings)

    pipeline = QueryPipeline(
        executor=StatementExecutor(store=store) if store is not None else None,
        generator=(
            SQLGenerator(
                provider=generator_provider,
                temperature=settings.generator_temperature,
                max_tokens=settings.generator_max_tokens,
                timeout_s=settings.llm_timeout_s,
            )
            if generator_provider is not None
            else None
        ),
        validator=SQLValidator(provider=validator_provider, timeout_s=settings.llm_timeout_s),
    )

    app = FastAPI(title=settings.app_name, version="0.1.0")
    # Shared objects live in app.state so route handlers can reuse them.
    app.state.settings = settings
    app.state.store = store
    app.state.pipeline = pipeline

    @app.get("/health")
    @app.get("/healthz")
    @app.get("/live")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/api/query")
    def run_query(payload: QueryRequest) -> JSONResponse:
        outcome = app.state.pipeline.run(payload.query)
        return JSONResponse(
            status_code=outcome.status_code,
            content=outcome.body.model_dump(mode="json", exclude_none=True),
        )

    @app.post("/api/sql")
    def run_sql(payload: SqlRequest) -> JSONResponse:
        if not payload.sql or not payload.sql.strip():
            raise HTTPException(status_code=400, detail="SQL query is required")
        trace = Trace()
        try:
            result = StatementExecutor(store=_require_store(app)).execute(payload.sql, trace)
        except PipelineError as exc:
            trace.add(f"❌ Error: {exc}")
            return JSONResponse(
                status_code=exc.status_code,
                content={"error": str(exc), "milestones": trace.entries},
            )
        return JSONResponse(
            content={
                "data": result.model_dump(mode="json"),
                "milestones": trace.entries,
            }
        )

    @app.get("/api/todos")
    def list_todos() -> dict[str, list[Todo]]:
        todos = _store_or_500(lambda: _require_store(app).list_todos())
        return {"data": todos}

    @app.post("/api/todos")
    def create_todo(payload: CreateTodoRequest) -> dict[str, Todo]:
        if not payload.title or not payload.title.strip():
            raise HTTPException(status_code=400, detail="Title is required")
        todo = _store_or_500(lambda: _require_store(app).create_todo(payload.title, False))
        return {"data": todo}

    @app.put("/api/todos/{todo_id}")
    def update_todo(todo_id: str, payload: UpdateTodoRequest) -> dict[str, Todo]:
        fields = payload.model_dump(exclude_none=True)
        if not fields:
            raise HTTPException(status_code=400, detail="No fields to update")
        updated = _store_or_500(
            lambda: _require_store(app).update_todos(TodoFilter(id=todo_id), fields)
        )
        if not updated:
            raise HTTPException(status_code=404, detail="Todo not found")
        return {"data": updated[0]}

    @app.delete("/api/todos/{todo_id}")
    def delete_todo(todo_id: str) -> dict[str, str]:
        deleted = _store_or_500(lambda: _require_store(app).delete_todos(TodoFilter(id=todo_id)))
        if not deleted:
            raise HTTPException(status_code=404, detail="Todo not found")
        return {"message": "Todo deleted successfully"}

    return app


def _build_store(settings: Settings) -> TodoStore | None:
    """Construct the configured row store, or None when no database is set."""
    if settings.store_backend.lower() == "memory":
        return InMemoryTodoStore()
    database_url = settings.resolved_database_url()
    if not database_url:
        logger.warning("No database URL configured; /api/query will report it as missing.")
        return None
    store = PostgresTodoStore(database_url=database_url)
    # Ensure schema exists before serving requests.
    store.migrate()
    return store


def _require_store(app: FastAPI) -> TodoStore:
    if app.state.store is None:
        raise HTTPException(status_code=500, detail="Database configuration missing")
    return app.state.store


def _store_or_500(fn: Any) -> Any:
    try:
        return fn()
    except StoreError as exc:
        logger.error("todo_route event=store_failed reason=%s", exc)
        raise HTTPException(status_code=500, detail="Internal server error") from exc


# Module-level app for `uvicorn todo_sql_api.main:app`.
app = create_app()
