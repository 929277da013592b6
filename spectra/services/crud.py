"""Generic CRUD manager utilities for service-layer boilerplate reduction."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any, ClassVar, Generic, TypeVar, cast

from sqlalchemy.orm import Session

from spectra.errors import InvalidReferenceError
from spectra.services.common import apply_ordering, apply_pagination, coerce_uuid
from spectra.services.response import ListResponseMixin

logger = logging.getLogger(__name__)

TModel = TypeVar("TModel")


class CRUDManager(ListResponseMixin, Generic[TModel]):
    """Reusable CRUD primitives for services with model-only persistence logic."""

    model: type[TModel] | None = None
    not_found_detail: str = "Resource not found"
    ordering_columns: ClassVar[dict] = {}
    default_order_by: str = "created_at"
    default_order_dir: str = "asc"

    @classmethod
    def _require_model(cls) -> type[TModel]:
        if cls.model is None:
            raise RuntimeError(f"{cls.__name__}.model must be set")
        return cls.model

    @classmethod
    def _payload_dict(cls, payload: Any, *, exclude_unset: bool) -> dict[str, Any]:
        if hasattr(payload, "model_dump"):
            dumped = payload.model_dump(exclude_unset=exclude_unset)
            return cast(dict[str, Any], dumped)
        if isinstance(payload, Mapping):
            return dict(payload)
        return dict(payload)

    @classmethod
    def _get_or_404(cls, db: Session, entity_id, **options):
        model = cls._require_model()
        entity = db.get(model, coerce_uuid(entity_id), **options)
        if not entity:
            raise InvalidReferenceError(cls.not_found_detail, {"id": str(entity_id)})
        return entity

    @classmethod
    def filtered_query(cls, db: Session, **filters):
        if filters:
            raise TypeError(f"{cls.__name__} does not support filters {sorted(filters)}")
        return db.query(cls._require_model())

    @classmethod
    def list(
        cls,
        db: Session,
        order_by: str | None = None,
        order_dir: str | None = None,
        limit: int = 100,
        offset: int = 0,
        **filters,
    ):
        query = cls.filtered_query(db, **filters)
        query = apply_ordering(
            query,
            order_by or cls.default_order_by,
            order_dir or cls.default_order_dir,
            cls.ordering_columns,
        )
        return apply_pagination(query, limit, offset).all()

    @classmethod
    def create(cls, db: Session, payload):
        model = cls._require_model()
        entity = model(**cls._payload_dict(payload, exclude_unset=False))
        db.add(entity)
        db.commit()
        db.refresh(entity)
        return entity

    @classmethod
    def get(cls, db: Session, entity_id):
        return cls._get_or_404(db, entity_id)

    @classmethod
    def update(cls, db: Session, entity_id, payload):
        entity = cls._get_or_404(db, entity_id)
        for key, value in cls._payload_dict(payload, exclude_unset=True).items():
            setattr(entity, key, value)
        db.commit()
        db.refresh(entity)
        return entity

    @classmethod
    def delete(cls, db: Session, entity_id):
        entity = cls._get_or_404(db, entity_id)
        db.delete(entity)
        db.commit()
        logger.info("Deleted %s %s", cls._require_model().__name__, entity_id)
