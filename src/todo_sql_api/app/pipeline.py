"""Request pipeline: natural language in, executed statement and trace out.

Stage order is fixed and never loops back:
received -> preprocessed -> intent-classified -> sql-generated ->
sql-validated -> sql-executed -> responded.

Every stage appends milestones to a per-request trace. The trace is returned
on success and on every failure path, so callers can always see how far the
request got.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .errors import (
    ConfigurationError,
    PipelineError,
    UnrepairableStatementError,
    ValidationInputError,
)
from .executor import StatementExecutor
from .generator import SQLGenerator
from .intent import classify_intent, preprocess
from .models import QueryBundle, QueryResponse, Trace
from .repair import fix_sql_syntax
from .validator import SQLValidator

logger = logging.getLogger(__name__)


@dataclass
class QueryOutcome:
    status_code: int
    body: QueryResponse


class QueryPipeline:
    """Sequence preprocessing, generation, validation, and execution."""

    def __init__(
        self,
        *,
        executor: StatementExecutor | None,
        generator: SQLGenerator | None,
        validator: SQLValidator,
    ) -> None:
        # None means the backing service was not configured.
        self.executor = executor
        self.generator = generator
        self.validator = validator

    def run(self, query: str | None) -> QueryOutcome:
        trace = Trace()
        bundle = QueryBundle()
        try:
            self._check_configuration()
            if not query or not query.strip():
                raise ValidationInputError("Natural language query is required")
            return self._run_stages(query, trace, bundle)
        except ConfigurationError as exc:
            logger.error("query_run event=failed stage=configuration reason=%s", exc)
            return self._failure(exc, [exc.milestone], bundle)
        except ValidationInputError as exc:
            return self._failure(exc, ["❌ Validation failed - No query provided"], bundle)
        except UnrepairableStatementError as exc:
            trace.add(f"❌ {exc}")
            logger.info("query_run event=rejected reason=%s", exc.reason)
            return QueryOutcome(
                status_code=exc.status_code,
                body=QueryResponse(
                    success=False,
                    error=str(exc),
                    sql=exc.sql,
                    suggestion=exc.suggestion,
                    milestones=trace.entries,
                    queries=_dump_bundle(bundle),
                ),
            )
        except PipelineError as exc:
            trace.add(f"❌ Error: {exc}")
            logger.warning("query_run event=failed error=%s reason=%s", type(exc).__name__, exc)
            return self._failure(exc, trace.entries, bundle)
        except Exception as exc:  # noqa: BLE001
            trace.add(f"❌ Error: {exc}")
            logger.exception("query_run event=failed error=unexpected")
            return QueryOutcome(
                status_code=500,
                body=QueryResponse(
                    success=False,
                    error=str(exc),
                    milestones=trace.entries,
                    queries=_dump_bundle(bundle),
                ),
            )

    def _check_configuration(self) -> None:
        if self.executor is None:
            raise ConfigurationError(
                "Database configuration missing",
                milestone="❌ Database not configured",
            )
        if self.generator is None:
            raise ConfigurationError(
                "AI service configuration missing",
                milestone="❌ AI services not configured",
            )

    def _run_stages(self, query: str, trace: Trace, bundle: QueryBundle) -> QueryOutcome:
        # 1) Received.
        bundle.original = query
        trace.add("✅ Milestone 1: Query received and validated")
        trace.add(f'🔎 Query: "{query}"')
        logger.info("query_run event=start chars=%d", len(query))

        # 2) Preprocess.
        cleaned = preprocess(query)
        bundle.preprocessed = cleaned
        trace.add("✅ Milestone 2: Query preprocessing completed")
        trace.add(f'🔎 Preprocessed Query: "{cleaned}"')

        # 3) Classify intent.
        intent = classify_intent(cleaned)
        bundle.intent = intent
        trace.add(f'✅ Milestone 3: Intent classified as "{intent}"')
        trace.add(f'🔎 Intent: "{intent}"')

        # 4) Generate SQL with provider A.
        trace.add("🔄 Milestone 4: Generating SQL...")
        generated = self.generator.generate(cleaned, intent)
        bundle.generated_sql = generated
        trace.add("✅ Milestone 4: SQL generated successfully")
        trace.add(f'🔎 Generated SQL: "{generated}"')
        logger.info("query_run event=generated intent=%s", intent)

        # 5) Validate with provider B (or local heuristics).
        trace.add("🔄 Milestone 5: Validating SQL...")
        verdict = self.validator.validate(query, generated)
        final_sql = verdict.suggestion or generated
        if not verdict.valid and not verdict.suggestion:
            final_sql = fix_sql_syntax(generated, query)
            trace.add("🔧 Applied automatic SQL fixes")
        bundle.validated_sql = final_sql
        trace.add(f"✅ Milestone 5: SQL validation {'passed' if verdict.valid else 'failed'}")
        trace.add(f'🔎 Validated SQL: "{final_sql}"')
        logger.info("query_run event=validated valid=%s", verdict.valid)

        # Never execute a statement nobody could validate or repair.
        if not verdict.valid and not verdict.suggestion and final_sql == generated:
            raise UnrepairableStatementError(verdict.reason, sql=generated, suggestion=final_sql)

        # 6) Execute through the restricted executor.
        trace.add("🔄 Milestone 6: Parsing and executing SQL query...")
        result = self.executor.execute(final_sql, trace)
        trace.add("✅ Milestone 6: Query executed successfully")
        logger.info("query_run event=executed count=%d", result.count)

        return QueryOutcome(
            status_code=200,
            body=QueryResponse(
                success=True,
                message=f'Successfully processed: "{query}"',
                sql=final_sql,
                data=result,
                milestones=trace.entries,
                queries=_dump_bundle(bundle),
            ),
        )

    @staticmethod
    def _failure(exc: PipelineError, milestones: list[str], bundle: QueryBundle) -> QueryOutcome:
        return QueryOutcome(
            status_code=exc.status_code,
            body=QueryResponse(
                success=False,
                error=str(exc),
                milestones=milestones,
                queries=_dump_bundle(bundle),
            ),
        )


def _dump_bundle(bundle: QueryBundle) -> dict[str, str]:
    return bundle.model_dump(by_alias=True, exclude_none=True)
