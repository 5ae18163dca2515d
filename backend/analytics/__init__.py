"""
Analytico Backend Analytics Core
"""

from .identifiers import (
    sanitize_identifier,
    ensure_unique_identifiers,
    unique_column_name,
)

from .registrar import (
    RegistrationError,
    ColumnSpec,
    TableSpec,
    register_table,
    register_tables,
    tables_from_frames,
    rename_column,
)

from .executor import (
    QueryExecutor,
    QueryExecutionError,
    LocalQueryExecutor,
)

from .self_healing import (
    POISONED_RESULT,
    HealingStatus,
    HealingState,
    SelfHealingExhausted,
    apply_null_safety_guards,
    has_poisoned_values,
    run_self_healing,
    self_healing_query,
)

from .chart_limiter import (
    limit_chart_data,
    clamp_result_rows,
    coerce_numeric_strings,
    axes_exist,
)

from .guardrails import (
    UnsafeQueryError,
    enforce_sql_guardrails,
    is_read_only_query,
)

from .pipeline import (
    ChartQueryResult,
    run_chart_query,
)

__all__ = [
    # Identifiers
    'sanitize_identifier',
    'ensure_unique_identifiers',
    'unique_column_name',
    # Registrar
    'RegistrationError',
    'ColumnSpec',
    'TableSpec',
    'register_table',
    'register_tables',
    'tables_from_frames',
    'rename_column',
    # Executor
    'QueryExecutor',
    'QueryExecutionError',
    'LocalQueryExecutor',
    # Self-healing
    'POISONED_RESULT',
    'HealingStatus',
    'HealingState',
    'SelfHealingExhausted',
    'apply_null_safety_guards',
    'has_poisoned_values',
    'run_self_healing',
    'self_healing_query',
    # Chart limiter
    'limit_chart_data',
    'clamp_result_rows',
    'coerce_numeric_strings',
    'axes_exist',
    # Guardrails
    'UnsafeQueryError',
    'enforce_sql_guardrails',
    'is_read_only_query',
    # Pipeline
    'ChartQueryResult',
    'run_chart_query',
]
