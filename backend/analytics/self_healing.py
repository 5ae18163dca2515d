"""
Analytico Backend - Self-Healing Query Module
Detect NaN-poisoned results, patch the SQL with null-safety guards and retry
"""

import re
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Optional

import numpy as np

from .executor import QueryExecutor

POISONED_RESULT = "NaN or null detected"

# Aggregates already guarded, over * / DISTINCT, or inside a NULLIF guard are skipped
AGGREGATE_CALL = re.compile(
    r"(?<!NULLIF\()\b(SUM|AVG|COUNT|MIN|MAX)\("
    r"((?!\s*(?:COALESCE\(|\*|DISTINCT\b))(?:[^()]|\([^()]*\))+)\)",
    re.I,
)
# Divisor: a single (optionally qualified) identifier or number, optionally called with one
# level of nested parentheses. Bare parenthesized expressions are not guarded.
# Leading whitespace is dropped so the guarded aggregate sits directly inside NULLIF(
DIVISION_OPERAND = re.compile(
    r"/(?!\s*NULLIF\()\s*(\w+(?:\.\w+)*(?:\((?:[^()]|\([^()]*\))*\))?)",
    re.I,
)


def apply_null_safety_guards(sql: str) -> str:
    """Wrap aggregate arguments in COALESCE and divisors in NULLIF, every match at once."""
    guarded = DIVISION_OPERAND.sub(r"/NULLIF(\1,0)", sql)
    return AGGREGATE_CALL.sub(r"\1(COALESCE(\2,0))", guarded)


def _is_nan(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, Decimal):
        return value.is_nan()
    if isinstance(value, (float, np.floating)):
        return bool(np.isnan(value))
    return False


def has_poisoned_values(rows: list[dict[str, Any]]) -> bool:
    """True when any numeric field of any row is NaN"""
    return any(_is_nan(value) for row in rows for value in row.values())


class HealingStatus:
    ATTEMPTING = "attempting"
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"


@dataclass
class HealingAttempt:
    sql: str
    error: Optional[str] = None


@dataclass
class HealingState:
    sql: str
    max_retries: int
    status: str = HealingStatus.ATTEMPTING
    attempt: int = 0
    rows: list[dict[str, Any]] = field(default_factory=list)
    last_error: Optional[str] = None
    history: list[HealingAttempt] = field(default_factory=list)

    def succeed(self, rows: list[dict[str, Any]]):
        self.history.append(HealingAttempt(sql=self.sql))
        self.rows = rows
        self.status = HealingStatus.SUCCEEDED

    def fail(self, error: str):
        """Record a failed attempt, then either rewrite for the next one or give up"""
        self.history.append(HealingAttempt(sql=self.sql, error=error))
        self.last_error = error
        self.attempt += 1
        if self.attempt > self.max_retries:
            self.status = HealingStatus.EXHAUSTED
        else:
            self.sql = apply_null_safety_guards(self.sql)


class SelfHealingExhausted(RuntimeError):
    """Raised when no attempt within the retry budget produced a clean result"""

    def __init__(self, last_error: Optional[str], attempts: list[HealingAttempt]):
        super().__init__(f"Self-healing failed: {last_error}")
        self.last_error = last_error
        self.attempts = attempts


def run_self_healing(execute: QueryExecutor, sql: str, max_retries: int = 2) -> HealingState:
    """
    Execute SQL, retrying with null-safety guards when it errors or returns
    NaN values. At most max_retries + 1 attempts are made; each one runs only
    after the previous finished. Returns the final SUCCEEDED or EXHAUSTED state.
    """
    state = HealingState(sql=sql, max_retries=max(max_retries, 0))

    while state.status == HealingStatus.ATTEMPTING:
        try:
            rows = execute(state.sql)
        except Exception as e:
            state.fail(str(e))
            continue

        if rows and not has_poisoned_values(rows):
            state.succeed(list(rows))
        else:
            # Empty results are not fatal but never count as success
            state.fail(POISONED_RESULT)

    return state


def self_healing_query(execute: QueryExecutor, sql: str, max_retries: int = 2) -> list[dict[str, Any]]:
    """Rows from the first clean attempt, or SelfHealingExhausted with the last error"""
    state = run_self_healing(execute, sql, max_retries)
    if state.status == HealingStatus.SUCCEEDED:
        return state.rows
    raise SelfHealingExhausted(state.last_error, state.history)
