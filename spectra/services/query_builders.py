"""Reusable query-builder helpers for service-layer list filtering."""

from __future__ import annotations

from sqlalchemy import or_


def apply_optional_equals(query, filters: dict):
    """Apply equality filters when values are not None."""
    for column, value in filters.items():
        if value is not None:
            query = query.filter(column == value)
    return query


def apply_search(query, columns: list, term: str | None):
    """Case-insensitive contains match against any of the given columns."""
    if not term or not term.strip():
        return query
    pattern = f"%{term.strip()}%"
    return query.filter(or_(*(column.ilike(pattern) for column in columns)))
