"""
Analytico Backend - Chart Limiter Module
Type-aware cardinality caps, series downsampling and result post-processing
"""

import math
from decimal import Decimal
from typing import Any, Mapping, Optional

import numpy as np

CATEGORICAL_CHARTS = {"bar", "pie", "radar", "composed"}
SERIES_CHARTS = {"line", "area"}
MAX_CATEGORIES = 12
MAX_SERIES_POINTS = 24
DEFAULT_ROW_CAP = 50


def _intent_field(intent: Any, name: str, alias: str) -> Optional[str]:
    """Read a chart intent field from a ChartIntent model or a camelCase mapping"""
    if intent is None:
        return None
    if isinstance(intent, Mapping):
        value = intent.get(alias, intent.get(name))
    else:
        value = getattr(intent, name, None)
    return value if isinstance(value, str) else None


def to_number(value: Any) -> float:
    """Numeric value for ranking; anything missing or non-numeric counts as 0."""
    if value is None:
        return 0.0
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float, Decimal, np.number)):
        try:
            number = float(value)
        except (OverflowError, TypeError, ValueError):
            return 0.0
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return 0.0
        try:
            number = float(text)
        except ValueError:
            return 0.0
    else:
        return 0.0
    return number if not math.isnan(number) else 0.0


def limit_chart_data(rows: list[dict[str, Any]], intent: Any) -> list[dict[str, Any]]:
    """Keep the top 12 categories or 24 evenly spaced series points"""
    if not isinstance(rows, list) or not rows or intent is None:
        return rows

    chart_type = _intent_field(intent, "type", "type")
    y_axis = _intent_field(intent, "y_axis", "yAxis")

    if chart_type in CATEGORICAL_CHARTS and len(rows) > MAX_CATEGORIES:
        def sort_key(row):
            return to_number(row.get(y_axis)) if isinstance(row, Mapping) and y_axis else 0.0

        # sorted() is stable, so ties keep their original order
        ranked = sorted(rows, key=sort_key, reverse=True)
        return ranked[:MAX_CATEGORIES]

    if chart_type in SERIES_CHARTS and len(rows) > MAX_SERIES_POINTS:
        step = math.ceil(len(rows) / MAX_SERIES_POINTS)
        return rows[::step]

    return list(rows)


def clamp_result_rows(rows: Any, max_rows: int = DEFAULT_ROW_CAP) -> list[dict[str, Any]]:
    if not isinstance(rows, list):
        return []
    return rows[:max_rows] if len(rows) > max_rows else list(rows)


def coerce_numeric_strings(rows: list[dict[str, Any]], intent: Any) -> list[dict[str, Any]]:
    """Convert numeric text in the y-axis column to numbers so charts can plot it"""
    y_axis = _intent_field(intent, "y_axis", "yAxis")
    if not y_axis or not isinstance(rows, list):
        return rows

    coerced = []
    for row in rows:
        value = row.get(y_axis) if isinstance(row, Mapping) else None
        if isinstance(value, str) and value.strip():
            try:
                number = float(value)
            except ValueError:
                coerced.append(row)
                continue
            if not math.isfinite(number):
                coerced.append(row)
                continue
            if number.is_integer() and "." not in value and "e" not in value.lower():
                number = int(number)
            coerced.append({**row, y_axis: number})
        else:
            coerced.append(row)
    return coerced


def axes_exist(rows: list[dict[str, Any]], intent: Any) -> bool:
    """Both axes are named by the intent and present in the first row"""
    if not isinstance(rows, list) or not rows or not isinstance(rows[0], Mapping):
        return False
    x_axis = _intent_field(intent, "x_axis", "xAxis")
    y_axis = _intent_field(intent, "y_axis", "yAxis")
    columns = rows[0].keys()
    return bool(x_axis) and bool(y_axis) and x_axis in columns and y_axis in columns
