"""Common helper functions for the service layer.

This module provides reusable utilities for:
- UUID handling
- Query ordering and pagination
- Enum validation
- Entity retrieval with reference errors
"""

from __future__ import annotations

import uuid
from typing import TYPE_CHECKING, TypeVar

from spectra.errors import InvalidInputError, InvalidReferenceError

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

T = TypeVar("T")


def coerce_uuid(value, label: str = "id"):
    """Convert value to UUID, returning None if value is None.

    Raises:
        InvalidInputError: if value is not a valid UUID
    """
    if value is None:
        return None
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError as exc:
        raise InvalidInputError(f"Invalid {label}", {"field": label}) from exc


def apply_ordering(query, order_by: str, order_dir: str, allowed_columns: dict):
    """Apply ordering to a query with validation.

    Args:
        query: SQLAlchemy query object
        order_by: Column name to order by
        order_dir: Direction ('asc' or 'desc')
        allowed_columns: Dict mapping column names to SQLAlchemy columns

    Raises:
        InvalidInputError: if order_by is not in allowed_columns
    """
    if order_by not in allowed_columns:
        raise InvalidInputError(
            f"Invalid order_by. Allowed: {', '.join(sorted(allowed_columns))}",
            {"field": "order_by"},
        )
    column = allowed_columns[order_by]
    if order_dir == "desc":
        return query.order_by(column.desc())
    return query.order_by(column.asc())


def apply_pagination(query, limit: int, offset: int):
    return query.limit(limit).offset(offset)


def validate_enum(value, enum_cls, label: str):
    """Validate and convert a value to an enum member.

    Accepts enum members, their values, and case-insensitive value strings.
    Returns None if value is None.

    Raises:
        InvalidInputError: if value is not a valid enum member
    """
    if value is None:
        return None
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        pass
    if isinstance(value, str):
        try:
            return enum_cls(value.strip().upper())
        except ValueError:
            pass
    allowed = ", ".join(member.value for member in enum_cls)
    raise InvalidInputError(f"Invalid {label}. Allowed: {allowed}", {"field": label})


def get_or_404(db: Session, model: type[T], id, detail: str | None = None, **options) -> T:
    """Get entity by ID or raise a reference error.

    Raises:
        InvalidReferenceError: if entity not found
    """
    entity = db.get(model, coerce_uuid(id), **options)
    if not entity:
        raise InvalidReferenceError(detail or f"{model.__name__} not found")
    return entity


def get_by_id(db: Session, model: type[T], value, **kwargs) -> T | None:
    """Get entity by ID, returning None if not found or value is None."""
    if value is None:
        return None
    return db.get(model, coerce_uuid(value), **kwargs)


def ensure_exists(db: Session, model: type[T], id, detail: str) -> T:
    """Ensure a referenced entity exists.

    Raises:
        InvalidReferenceError: if entity not found
    """
    entity = get_by_id(db, model, id)
    if not entity:
        raise InvalidReferenceError(detail)
    return entity
