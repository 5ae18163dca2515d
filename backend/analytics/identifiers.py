"""
Analytico Backend - Identifier Module
Deterministic table/column name sanitizing and positional de-duplication
"""

import re
from typing import Iterable

MAX_IDENTIFIER_LENGTH = 63
FALLBACK_IDENTIFIER = "column"


def sanitize_identifier(raw: str) -> str:
    """Conservative, deterministic snake_case sanitizer for engine identifiers."""
    clean = re.sub(r"[^a-z0-9_]+", "_", str(raw).lower())
    clean = clean.strip("_")
    if not clean:
        return FALLBACK_IDENTIFIER
    if clean[0].isdigit():
        clean = f"col_{clean}"
    # Truncation must not leave a trailing underscore behind
    return clean[:MAX_IDENTIFIER_LENGTH].rstrip("_")


def _with_suffix(base: str, n: int) -> str:
    suffix = f"_{n}"
    return base[: MAX_IDENTIFIER_LENGTH - len(suffix)] + suffix


def ensure_unique_identifiers(values: Iterable[str]) -> list[str]:
    """
    Sanitize every value and de-duplicate by encounter order.
    The first occurrence of a base keeps it, later ones get _2, _3, etc.
    """
    seen: dict[str, int] = {}
    used: set[str] = set()
    unique = []
    for value in values:
        base = sanitize_identifier(value)
        count = seen.get(base, 0)
        candidate = base if count == 0 else _with_suffix(base, count + 1)
        # A suffixed name may already exist as a literal input
        while candidate in used:
            count += 1
            candidate = _with_suffix(base, count + 1)
        seen[base] = count + 1
        used.add(candidate)
        unique.append(candidate)
    return unique


def unique_column_name(desired: str, existing: Iterable[str]) -> str:
    """Sanitize a requested column name and suffix it until no sibling uses it"""
    base = sanitize_identifier(desired)
    taken = set(existing)
    if base not in taken:
        return base
    suffix = 2
    candidate = _with_suffix(base, suffix)
    while candidate in taken:
        suffix += 1
        candidate = _with_suffix(base, suffix)
    return candidate
