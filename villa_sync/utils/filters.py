# villa_sync/utils/filters.py
# Deterministic shape predicate builder.
# The sync service treats predicates as opaque SQL-like strings; clauses are
# sorted by field name so equal filters always produce the same string (and
# therefore the same subscription id). Values are quoted, never interpolated raw.

from typing import Any, Iterable, List, Mapping, Optional, Sequence


class Like:
    """Match with a LIKE pattern instead of equality."""

    def __init__(self, pattern: str):
        self.pattern = pattern

    def __repr__(self) -> str:
        return f"Like({self.pattern!r})"


class In:
    """Match any of several values."""

    def __init__(self, values: Iterable[Any]):
        self.values = list(values)

    def __repr__(self) -> str:
        return f"In({self.values!r})"


class InSubquery:
    """Match values selected from another table: ``field IN (SELECT column FROM table WHERE ...)``."""

    def __init__(self, table: str, filters: Mapping[str, Any], column: str = "id"):
        self.table = table
        self.filters = filters
        self.column = column

    def __repr__(self) -> str:
        return f"InSubquery({self.table!r}, {dict(self.filters)!r}, column={self.column!r})"


def quote_identifier(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def quote_literal(value: Any) -> str:
    """Render a Python value as a predicate literal."""
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return repr(value)
    return "'" + str(value).replace("'", "''") + "'"


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value == "")


def build_clause(field: str, value: Any) -> Optional[str]:
    """One comparison for ``field``; None when the value should be omitted."""
    if _is_empty(value):
        return None
    column = quote_identifier(field)
    if isinstance(value, Like):
        return f"{column} LIKE {quote_literal(value.pattern)}"
    if isinstance(value, In):
        if not value.values:
            return None
        return f"{column} IN ({', '.join(quote_literal(v) for v in value.values)})"
    if isinstance(value, InSubquery):
        inner = build_where(value.filters)
        select = f"SELECT {quote_identifier(value.column)} FROM {quote_identifier(value.table)}"
        if inner:
            select += f" WHERE {inner}"
        return f"{column} IN ({select})"
    return f"{column} = {quote_literal(value)}"


def build_where(filters: Mapping[str, Any], extra: Sequence[str] = ()) -> Optional[str]:
    """AND together one clause per non-empty filter, ordered by field name.

    ``extra`` holds pre-built clauses appended after the field clauses.
    Returns None when nothing remains.
    """
    clauses: List[str] = []
    for field in sorted(filters):
        clause = build_clause(field, filters[field])
        if clause:
            clauses.append(clause)
    clauses.extend(c for c in extra if c)
    return " AND ".join(clauses) if clauses else None
