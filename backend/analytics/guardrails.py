"""
Analytico Backend - SQL Guardrails
Read-only enforcement and row limits for generated SQL
"""

import re
from typing import Optional

DEFAULT_MAX_ROWS = 1000
READ_ONLY_STARTS = {"select", "with", "show", "describe", "explain"}
FORBIDDEN_KEYWORDS = [
    "insert", "update", "delete", "drop", "alter", "create", "truncate",
    "grant", "revoke", "commit", "rollback", "call", "exec", "merge",
    "replace", "vacuum", "analyze",
]

COMMENT_LINE = re.compile(r"--.*?$", re.M)
COMMENT_BLOCK = re.compile(r"/\*.*?\*/", re.S)
FORBIDDEN = re.compile(r"\b(" + "|".join(FORBIDDEN_KEYWORDS) + r")\b", re.I)
LIMIT_CLAUSE = re.compile(r"\blimit\s+\d+", re.I)


class UnsafeQueryError(ValueError):
    """Raised when SQL is empty, stacked or not read-only"""


def normalize_sql(sql: Optional[str]) -> str:
    if not sql or not isinstance(sql, str):
        return ""
    s = COMMENT_LINE.sub("", sql)
    s = COMMENT_BLOCK.sub("", s)
    return s.strip()


def has_multiple_statements(sql: str) -> bool:
    parts = [part.strip() for part in normalize_sql(sql).split(";")]
    return len([p for p in parts if p]) > 1


def is_read_only_query(sql: str) -> bool:
    normalized = normalize_sql(sql).lower()
    if not normalized or has_multiple_statements(normalized):
        return False
    if FORBIDDEN.search(normalized):
        return False
    first = re.match(r"^\s*(\w+)", normalized)
    return bool(first) and first.group(1) in READ_ONLY_STARTS


def add_limit(sql: str, max_rows: int) -> str:
    if LIMIT_CLAUSE.search(sql):
        return sql
    stripped = re.sub(r";\s*$", "", sql)
    return f"{stripped} LIMIT {max_rows}"


def add_mysql_max_execution_time_hint(sql: str, timeout_ms: Optional[int]) -> str:
    if not timeout_ms:
        return sql
    if not normalize_sql(sql).lower().startswith("select"):
        return sql
    return f"/*+ MAX_EXECUTION_TIME({max(1, int(timeout_ms))}) */ {sql}"


def enforce_sql_guardrails(
    sql: str,
    max_rows: int = DEFAULT_MAX_ROWS,
    timeout_ms: Optional[int] = None,
    dialect: str = "",
) -> str:
    """Validate generated SQL and return the guarded single statement to run."""
    normalized = normalize_sql(sql)
    if not normalized:
        raise UnsafeQueryError("SQL is empty.")
    if has_multiple_statements(normalized):
        raise UnsafeQueryError("SQL must be a single statement.")
    if not is_read_only_query(normalized):
        raise UnsafeQueryError("Only read-only SELECT queries are allowed.")

    guarded = add_limit(normalized, max_rows)
    if dialect == "mysql":
        guarded = add_mysql_max_execution_time_hint(guarded, timeout_ms)
    return guarded
