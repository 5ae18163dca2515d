"""
Analytico Backend - Engine Storage
Owned embedded DuckDB engine with an explicit open/close lifecycle
"""

from typing import Optional

import duckdb


class EngineError(RuntimeError):
    """Raised when the engine is used outside its open/close lifecycle"""


class Engine:
    """Container for one DuckDB database and its single connection"""

    def __init__(self, database: str = ":memory:"):
        self.database = database
        self._connection: Optional[duckdb.DuckDBPyConnection] = None

    def open(self) -> "Engine":
        """Connect to the database; calling it on an open engine is a no-op"""
        if self._connection is None:
            self._connection = duckdb.connect(database=self.database)
        return self

    def close(self):
        """Release the connection; safe to call more than once"""
        if self._connection is not None:
            self._connection.close()
            self._connection = None

    @property
    def is_open(self) -> bool:
        return self._connection is not None

    @property
    def connection(self) -> duckdb.DuckDBPyConnection:
        if self._connection is None:
            raise EngineError("Engine is not open. Call open() before using it.")
        return self._connection

    def __enter__(self) -> "Engine":
        return self.open()

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def list_tables(self) -> list[str]:
        """Names of all tables currently queryable in the main schema"""
        rows = self.connection.execute(
            "SELECT table_name FROM information_schema.tables "
            "WHERE table_schema = 'main' ORDER BY table_name"
        ).fetchall()
        return [row[0] for row in rows]

    def table_schema(self, table_name: str) -> list[dict[str, str]]:
        """Column names and DuckDB types for one table, in ordinal order"""
        rows = self.connection.execute(
            "SELECT column_name, data_type FROM information_schema.columns "
            "WHERE table_schema = 'main' AND table_name = ? ORDER BY ordinal_position",
            [table_name],
        ).fetchall()
        return [{"name": name, "type": dtype} for name, dtype in rows]

    def describe(self) -> str:
        """Human-readable schema listing, one table per line"""
        parts = []
        for table in self.list_tables():
            columns = ", ".join(f"{c['name']} ({c['type']})" for c in self.table_schema(table))
            parts.append(f"{table}: {columns}")
        return "\n".join(parts)
