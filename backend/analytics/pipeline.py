"""
Analytico Backend - Chart Query Pipeline
Guard, self-heal, clamp and shape one chart's SQL result
"""

from dataclasses import dataclass, field
from time import perf_counter
from typing import Any

from .chart_limiter import (
    DEFAULT_ROW_CAP,
    axes_exist,
    clamp_result_rows,
    coerce_numeric_strings,
    limit_chart_data,
)
from .executor import QueryExecutor
from .guardrails import DEFAULT_MAX_ROWS, enforce_sql_guardrails
from .self_healing import HealingStatus, SelfHealingExhausted, run_self_healing


@dataclass
class ChartQueryResult:
    rows: list[dict[str, Any]]
    sql: str
    raw_row_count: int
    post_limit_count: int
    attempts: int = 1
    fallback_stage: str = "none"
    durations: dict[str, float] = field(default_factory=dict)


def run_chart_query(
    execute: QueryExecutor,
    sql: str,
    intent: Any,
    max_retries: int = 2,
    row_cap: int = DEFAULT_ROW_CAP,
    max_rows: int = DEFAULT_MAX_ROWS,
) -> ChartQueryResult:
    """
    Run generated SQL for one chart.
    UnsafeQueryError and SelfHealingExhausted propagate to the caller.
    """
    start = perf_counter()
    guarded_sql = enforce_sql_guardrails(sql, max_rows=max_rows)

    query_start = perf_counter()
    state = run_self_healing(execute, guarded_sql, max_retries=max_retries)
    query_end = perf_counter()
    if state.status != HealingStatus.SUCCEEDED:
        raise SelfHealingExhausted(state.last_error, state.history)
    raw_rows = state.rows

    clamped = coerce_numeric_strings(clamp_result_rows(raw_rows, row_cap), intent)
    rows = clamped
    fallback_stage = "none"
    if clamped and axes_exist(clamped, intent):
        rows = limit_chart_data(clamped, intent)

    # Never hide data the query produced behind an empty chart
    if not rows and raw_rows:
        rows = coerce_numeric_strings(clamp_result_rows(raw_rows, DEFAULT_ROW_CAP), intent)
        fallback_stage = "bypass_limiter"

    end = perf_counter()
    return ChartQueryResult(
        rows=rows,
        sql=state.sql,
        attempts=len(state.history),
        raw_row_count=len(raw_rows),
        post_limit_count=len(rows),
        fallback_stage=fallback_stage,
        durations={
            "guardrails": query_start - start,
            "query": query_end - query_start,
            "shaping": end - query_end,
            "total": end - start,
        },
    )
