"""
Analytico Backend - Tabular Registrar
Materialize in-memory sheets as queryable DuckDB tables
"""

import json
import os
import tempfile
from dataclasses import dataclass, field, replace
from typing import Any, Optional

import pandas as pd

from storage import Engine
from .identifiers import ensure_unique_identifiers, unique_column_name


class RegistrationError(RuntimeError):
    """Raised when a table's rows cannot be loaded into the engine"""


@dataclass
class ColumnSpec:
    name: str
    included: bool = True
    original_name: Optional[str] = None


@dataclass
class TableSpec:
    name: str
    columns: list[ColumnSpec]
    rows: list[dict[str, Any]] = field(default_factory=list)

    @property
    def active_columns(self) -> list[str]:
        return [col.name for col in self.columns if col.included]


def _csv_cell(value: Any) -> Any:
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value)
    return value


def _build_frame(table: TableSpec, columns: list[str]) -> pd.DataFrame:
    records = [{col: _csv_cell(row.get(col)) for col in columns} for row in table.rows]
    # object dtype keeps ints with gaps from being written as floats
    return pd.DataFrame(records, columns=columns, dtype=object)


def register_table(engine: Engine, table: TableSpec) -> bool:
    """
    Create or replace a single table from its included columns.
    Returns False when the table was skipped because no column is included.
    """
    columns = table.active_columns
    if not columns:
        return False

    with tempfile.TemporaryDirectory(prefix="analytico_") as tmp_dir:
        csv_path = os.path.join(tmp_dir, f"{table.name}.csv")
        try:
            frame = _build_frame(table, columns)
            frame.to_csv(csv_path, index=False)
        except (AttributeError, TypeError, ValueError) as e:
            raise RegistrationError(f"Could not serialize rows for table '{table.name}': {e}") from e

        quoted_name = table.name.replace('"', '""')
        quoted_path = csv_path.replace("'", "''")
        # Single statement: the table is either fully loaded or left as it was.
        # Dialect is pinned to what to_csv writes; only column types are sniffed.
        sql = (
            f'CREATE OR REPLACE TABLE "{quoted_name}" AS '
            f"SELECT * FROM read_csv_auto('{quoted_path}', header = true, "
            f"delim = ',', quote = '\"', escape = '\"')"
        )
        try:
            engine.connection.execute(sql)
        except Exception as e:
            raise RegistrationError(f"Could not load table '{table.name}': {e}") from e
    return True


def register_tables(engine: Engine, tables: list[TableSpec]) -> list[str]:
    """Register each table in order and return the names that were created"""
    registered = []
    for table in tables:
        if register_table(engine, table):
            registered.append(table.name)
    return registered


def tables_from_frames(frames: dict[str, pd.DataFrame]) -> list[TableSpec]:
    """Turn parsed sheets (name -> DataFrame) into table specs with safe identifiers"""
    sheet_names = list(frames.keys())
    table_names = ensure_unique_identifiers(sheet_names)

    tables = []
    for table_name, sheet_name in zip(table_names, sheet_names):
        df = frames[sheet_name]
        raw_columns = [
            str(col) if str(col).strip() and not str(col).startswith("Unnamed:") else f"column_{idx + 1}"
            for idx, col in enumerate(df.columns)
        ]
        column_names = ensure_unique_identifiers(raw_columns)

        clean = df.astype(object).where(pd.notna(df), None)
        rows = [
            dict(zip(column_names, values))
            for values in clean.itertuples(index=False, name=None)
        ]
        columns = [
            ColumnSpec(name=name, included=True, original_name=raw)
            for name, raw in zip(column_names, raw_columns)
        ]
        tables.append(TableSpec(name=table_name, columns=columns, rows=rows))
    return tables


def rename_column(table: TableSpec, column_name: str, desired: str) -> TableSpec:
    """Rename a column to a unique sanitized identifier and move its row data"""
    if column_name not in [col.name for col in table.columns]:
        raise KeyError(f"Column '{column_name}' not found in table '{table.name}'")

    siblings = [col.name for col in table.columns if col.name != column_name]
    new_name = unique_column_name(desired, siblings)
    if new_name == column_name:
        return table

    columns = [
        replace(col, name=new_name) if col.name == column_name else col
        for col in table.columns
    ]
    rows = []
    for row in table.rows:
        migrated = {k: v for k, v in row.items() if k != column_name}
        migrated[new_name] = row.get(column_name)
        rows.append(migrated)
    return TableSpec(name=table.name, columns=columns, rows=rows)
