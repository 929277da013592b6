"""Cable and core services."""

from __future__ import annotations

import logging

from sqlalchemy import or_
from sqlalchemy.orm import Session

from spectra.errors import ConflictError, InvalidReferenceError
from spectra.models.network import (
    EXTERNAL_CORE_STATUSES,
    AssetStatus,
    Cable,
    CableType,
    Connection,
    Core,
    CoreStatus,
    Node,
)
from spectra.schemas.network import CableCreate, CableUpdate, CoreUpdate
from spectra.services import fiber_colors
from spectra.services.common import coerce_uuid, ensure_exists, validate_enum
from spectra.services.crud import CRUDManager
from spectra.services.network.splices import (
    core_is_referenced,
    locked_cores_query,
    refresh_core_statuses,
    resolve_core_status,
)
from spectra.services.query_builders import apply_optional_equals, apply_search

logger = logging.getLogger(__name__)


def _provision_cores(first: int, last: int) -> list[Core]:
    cores = []
    for core_index in range(first, last + 1):
        colors = fiber_colors.derive_colors(core_index)
        cores.append(
            Core(
                core_index=core_index,
                tube_color=colors.tube_color,
                core_color=colors.core_color,
                status=CoreStatus.VACANT,
            )
        )
    return cores


def _ensure_endpoints(db: Session, data: dict) -> None:
    for field in ("origin_node_id", "dest_node_id"):
        if data.get(field) is not None:
            ensure_exists(db, Node, data[field], f"{field.split('_')[0].title()} node not found")


def _connections_touching(db: Session, core_ids: list):
    return (
        db.query(Connection)
        .filter(
            or_(
                Connection.input_core_id.in_(core_ids),
                Connection.output_core_id.in_(core_ids),
            )
        )
        .all()
    )


class Cables(CRUDManager[Cable]):
    model = Cable
    not_found_detail = "Cable not found"
    ordering_columns = {
        "created_at": Cable.created_at,
        "name": Cable.name,
        "core_count": Cable.core_count,
    }
    default_order_dir = "desc"

    @classmethod
    def filtered_query(
        cls,
        db: Session,
        type=None,
        status=None,
        origin_node_id=None,
        dest_node_id=None,
        search=None,
    ):
        query = db.query(Cable)
        query = apply_optional_equals(
            query,
            {
                Cable.type: validate_enum(type, CableType, "type"),
                Cable.status: validate_enum(status, AssetStatus, "status"),
                Cable.origin_node_id: coerce_uuid(origin_node_id, "origin_node_id"),
                Cable.dest_node_id: coerce_uuid(dest_node_id, "dest_node_id"),
            },
        )
        return apply_search(query, [Cable.name], search)

    @classmethod
    def create(cls, db: Session, payload: CableCreate):
        """Create a cable together with its ``core_count`` cores.

        The cable and all of its cores are written in one commit, so a failed
        insert leaves neither behind.
        """
        data = payload.model_dump()
        _ensure_endpoints(db, data)
        cable = Cable(**data)
        cable.cores = _provision_cores(1, cable.core_count)
        db.add(cable)
        try:
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(cable)
        logger.info("Created cable %s with %d cores", cable.id, cable.core_count)
        return cable

    @classmethod
    def update(cls, db: Session, cable_id, payload: CableUpdate):
        cable = cls._get_or_404(db, cable_id)
        data = payload.model_dump(exclude_unset=True)
        _ensure_endpoints(db, data)
        new_count = data.pop("core_count", None)
        try:
            if new_count is not None and new_count != cable.core_count:
                cls._resize(db, cable, new_count)
            for key, value in data.items():
                setattr(cable, key, value)
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(cable)
        return cable

    @staticmethod
    def _resize(db: Session, cable: Cable, new_count: int) -> None:
        old_count = cable.core_count
        if new_count > old_count:
            cable.cores.extend(_provision_cores(old_count + 1, new_count))
        else:
            tail = [core for core in cable.cores if core.core_index > new_count]
            spliced = _connections_touching(db, [core.id for core in tail])
            if spliced:
                raise ConflictError(
                    "Cannot remove cores that are spliced",
                    {
                        "core_count": new_count,
                        "connection_ids": sorted(str(conn.id) for conn in spliced),
                    },
                )
            for core in tail:
                cable.cores.remove(core)
        cable.core_count = new_count
        logger.info("Resized cable %s from %d to %d cores", cable.id, old_count, new_count)

    @classmethod
    def delete(cls, db: Session, cable_id):
        """Delete a cable, its cores and every splice on those cores.

        Cores on the far side of a removed splice are recomputed before the
        single commit.
        """
        cable = cls._get_or_404(db, cable_id)
        own_core_ids = [core.id for core in cable.cores]
        try:
            removed = _connections_touching(db, own_core_ids) if own_core_ids else []
            far_side = set()
            for connection in removed:
                far_side.update((connection.input_core_id, connection.output_core_id))
                db.delete(connection)
            db.flush()
            refresh_core_statuses(db, far_side.difference(own_core_ids))
            db.delete(cable)
            db.commit()
        except Exception:
            db.rollback()
            raise
        logger.info("Deleted cable %s with %d splices", cable_id, len(removed))

    @classmethod
    def list_cores(cls, db: Session, cable_id, status=None):
        cable = cls._get_or_404(db, cable_id)
        query = db.query(Core).filter(Core.cable_id == cable.id)
        query = apply_optional_equals(
            query, {Core.status: validate_enum(status, CoreStatus, "status")}
        )
        return query.order_by(Core.core_index.asc()).all()

    @classmethod
    def get_core(cls, db: Session, cable_id, core_id):
        cable = cls._get_or_404(db, cable_id)
        core = db.get(Core, coerce_uuid(core_id, "core_id"))
        if core is None or core.cable_id != cable.id:
            raise InvalidReferenceError(
                "Core not found on cable", {"cable_id": str(cable_id), "core_id": str(core_id)}
            )
        return core

    @classmethod
    def update_core(cls, db: Session, cable_id, core_id, payload: CoreUpdate):
        """Set color overrides or the field-owned RESERVED/DAMAGED flags.

        Setting VACANT clears a flag; the core then reads USED again if a
        splice still references it.
        """
        core = cls.get_core(db, cable_id, core_id)
        core = locked_cores_query(db, [core.id]).one()
        data = payload.model_dump(exclude_unset=True)
        for key in ("tube_color", "core_color"):
            if key in data:
                value = data[key]
                setattr(core, key, value.strip() if value else None)
        status = data.get("status")
        if status is not None:
            if status in EXTERNAL_CORE_STATUSES:
                core.status = status
            else:
                core.status = resolve_core_status(
                    CoreStatus.VACANT, core_is_referenced(db, core.id)
                )
        try:
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(core)
        return core

    @classmethod
    def tubes(cls, db: Session, cable_id) -> list[dict]:
        cable = cls._get_or_404(db, cable_id)
        return [
            {
                "tube_number": tube.tube_index + 1,
                "color": tube.color,
                "color_hex": fiber_colors.COLOR_HEX[tube.color],
                "first_core": tube.first_core,
                "last_core": tube.last_core,
            }
            for tube in fiber_colors.tube_layout(cable.core_count)
        ]


cables = Cables()
