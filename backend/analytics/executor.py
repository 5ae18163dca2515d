"""
Analytico Backend - Query Executor
Run SQL against the embedded engine and return plain JSON-ready records
"""

import datetime as dt
import json
import math
import uuid
from decimal import Decimal
from typing import Any, Callable

from storage import Engine

# Anything that takes SQL text and returns rows can stand in for the local engine
QueryExecutor = Callable[[str], list[dict[str, Any]]]


class QueryExecutionError(RuntimeError):
    """Raised when the engine rejects or fails a query"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


def to_scalar(value: Any) -> Any:
    """Normalize engine values to number, string, bool or None"""
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (dt.datetime, dt.date, dt.time)):
        return value.isoformat()
    if isinstance(value, dt.timedelta):
        return str(value)
    if isinstance(value, uuid.UUID):
        return str(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).hex()
    if isinstance(value, (dict, list, tuple)):
        # LIST, STRUCT and MAP values are flattened to a JSON string
        return json.dumps(_to_json_ready(value))
    return value


def _to_json_ready(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(k): _to_json_ready(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_json_ready(v) for v in value]
    scalar = to_scalar(value)
    if isinstance(scalar, float) and not math.isfinite(scalar):
        return None
    return scalar


class LocalQueryExecutor:
    """Executes SQL on an owned Engine"""

    def __init__(self, engine: Engine):
        self.engine = engine

    def execute(self, sql: str) -> list[dict[str, Any]]:
        try:
            result = self.engine.connection.execute(sql)
            if result.description is None:
                return []
            columns = [col[0] for col in result.description]
            return [
                {col: to_scalar(value) for col, value in zip(columns, row)}
                for row in result.fetchall()
            ]
        except Exception as e:
            raise QueryExecutionError(str(e)) from e

    __call__ = execute
