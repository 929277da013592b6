"""Splice matching: creating and retiring core-to-core connections.

Each core may be the input of at most one connection and the output of at
most one connection. A core that is the output of one splice and the input of
another is a through-splice, which is how a signal path crosses several
closures. Core status is a cached projection of the connection table:
RESERVED and DAMAGED are set by people and always win, otherwise a core is
USED while any connection references it and VACANT once none does.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterable

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from spectra.config import settings
from spectra.errors import ConflictError, InvalidInputError, InvalidReferenceError
from spectra.metrics import SPLICE_CONFLICTS, SPLICE_CONNECTIONS
from spectra.models.network import (
    EXTERNAL_CORE_STATUSES,
    Cable,
    Connection,
    Core,
    CoreStatus,
    Node,
)
from spectra.schemas.network import ConnectionCreate
from spectra.services.common import coerce_uuid, get_or_404
from spectra.services.crud import CRUDManager
from spectra.services.query_builders import apply_optional_equals

logger = logging.getLogger(__name__)

MAX_TRACE_HOPS = 20


def normalize_splice_loss(value: float | None) -> float:
    """Return a usable splice loss in dB.

    Missing, non-positive and non-finite values fall back to the configured
    default; anything else is kept as measured.
    """
    if value is None:
        return settings.default_splice_loss_db
    try:
        loss = float(value)
    except (TypeError, ValueError):
        return settings.default_splice_loss_db
    if not math.isfinite(loss) or loss <= 0:
        return settings.default_splice_loss_db
    return loss


def resolve_core_status(current: CoreStatus, referenced: bool) -> CoreStatus:
    if current in EXTERNAL_CORE_STATUSES:
        return current
    return CoreStatus.USED if referenced else CoreStatus.VACANT


def core_is_referenced(db: Session, core_id) -> bool:
    return (
        db.query(Connection.id)
        .filter(or_(Connection.input_core_id == core_id, Connection.output_core_id == core_id))
        .first()
        is not None
    )


def locked_cores_query(db: Session, core_ids: Iterable):
    """Row-locking select of cores, in id order so lockers never deadlock.

    Existing identity-map state is overwritten with the locked row.
    """
    return (
        db.query(Core)
        .filter(Core.id.in_(list(core_ids)))
        .order_by(Core.id)
        .with_for_update()
        .populate_existing()
    )


def refresh_core_statuses(db: Session, core_ids: Iterable) -> None:
    """Recompute cached status for the given cores from the connection table.

    The cores are locked before the connection table is read, so a splice
    committed concurrently on one of them is seen. The caller owns the
    transaction; pending deletes must already be flushed.
    """
    ids = {core_id for core_id in core_ids if core_id is not None}
    if not ids:
        return
    for core in locked_cores_query(db, ids).all():
        status = resolve_core_status(core.status, core_is_referenced(db, core.id))
        if status != core.status:
            core.status = status


def _conflict(reason: str, message: str, details: dict) -> ConflictError:
    SPLICE_CONFLICTS.labels(reason=reason).inc()
    logger.warning("Splice rejected (%s): %s", reason, details)
    return ConflictError(message, details)


def _lock_cores(db: Session, input_core_id, output_core_id) -> dict:
    rows = locked_cores_query(db, [input_core_id, output_core_id]).all()
    return {core.id: core for core in rows}


def _core_index(db: Session, core_id) -> int:
    return db.get(Core, core_id).core_index


class Connections(CRUDManager[Connection]):
    model = Connection
    not_found_detail = "Connection not found"
    ordering_columns = {
        "created_at": Connection.created_at,
        "splice_loss": Connection.splice_loss,
    }
    default_order_dir = "desc"

    @classmethod
    def filtered_query(
        cls,
        db: Session,
        location_node_id=None,
        input_core_id=None,
        output_core_id=None,
        cable_id=None,
    ):
        query = db.query(Connection)
        query = apply_optional_equals(
            query,
            {
                Connection.location_node_id: coerce_uuid(location_node_id, "location_node_id"),
                Connection.input_core_id: coerce_uuid(input_core_id, "input_core_id"),
                Connection.output_core_id: coerce_uuid(output_core_id, "output_core_id"),
            },
        )
        cable_uuid = coerce_uuid(cable_id, "cable_id")
        if cable_uuid is not None:
            query = query.filter(
                or_(
                    Connection.input_cable_id == cable_uuid,
                    Connection.output_cable_id == cable_uuid,
                )
            )
        return query

    @classmethod
    def create(cls, db: Session, payload: ConnectionCreate):
        input_cable_id = coerce_uuid(payload.input_cable_id, "input_cable_id")
        input_core_id = coerce_uuid(payload.input_core_id, "input_core_id")
        output_cable_id = coerce_uuid(payload.output_cable_id, "output_cable_id")
        output_core_id = coerce_uuid(payload.output_core_id, "output_core_id")
        location_node_id = coerce_uuid(payload.location_node_id, "location_node_id")

        if input_core_id == output_core_id:
            raise InvalidInputError(
                "A core cannot be spliced to itself", {"core_id": str(input_core_id)}
            )

        try:
            cores = _lock_cores(db, input_core_id, output_core_id)
            input_core = cores.get(input_core_id)
            output_core = cores.get(output_core_id)
            if input_core is None:
                raise InvalidReferenceError(
                    "Input core not found", {"input_core_id": str(input_core_id)}
                )
            if output_core is None:
                raise InvalidReferenceError(
                    "Output core not found", {"output_core_id": str(output_core_id)}
                )
            if input_core.cable_id != input_cable_id:
                raise InvalidReferenceError(
                    "Input core does not belong to input cable",
                    {
                        "input_core_id": str(input_core_id),
                        "input_cable_id": str(input_cable_id),
                    },
                )
            if output_core.cable_id != output_cable_id:
                raise InvalidReferenceError(
                    "Output core does not belong to output cable",
                    {
                        "output_core_id": str(output_core_id),
                        "output_cable_id": str(output_cable_id),
                    },
                )
            if location_node_id is not None and db.get(Node, location_node_id) is None:
                raise InvalidReferenceError(
                    "Location node not found", {"location_node_id": str(location_node_id)}
                )

            for role, core in (("input", input_core), ("output", output_core)):
                if core.status == CoreStatus.DAMAGED:
                    raise _conflict(
                        "damaged", "core is damaged", {"role": role, "core_id": str(core.id)}
                    )

            existing_input = (
                db.query(Connection.id).filter(Connection.input_core_id == input_core_id).first()
            )
            if existing_input is not None:
                raise _conflict(
                    "input_taken",
                    "input already spliced",
                    {
                        "input_core_id": str(input_core_id),
                        "connection_id": str(existing_input.id),
                    },
                )
            existing_output = (
                db.query(Connection.id)
                .filter(Connection.output_core_id == output_core_id)
                .first()
            )
            if existing_output is not None:
                raise _conflict(
                    "output_taken",
                    "output already spliced",
                    {
                        "output_core_id": str(output_core_id),
                        "connection_id": str(existing_output.id),
                    },
                )

            connection = Connection(
                location_node_id=location_node_id,
                input_cable_id=input_cable_id,
                input_core_id=input_core_id,
                output_cable_id=output_cable_id,
                output_core_id=output_core_id,
                splice_loss=normalize_splice_loss(payload.splice_loss),
                notes=payload.notes,
            )
            db.add(connection)
            input_core.status = resolve_core_status(input_core.status, True)
            output_core.status = resolve_core_status(output_core.status, True)
            db.commit()
        except IntegrityError as exc:
            # A concurrent request claimed one of the cores after our checks.
            db.rollback()
            raise _conflict(
                "race",
                "core already spliced",
                {
                    "input_core_id": str(input_core_id),
                    "output_core_id": str(output_core_id),
                },
            ) from exc
        except Exception:
            db.rollback()
            raise

        db.refresh(connection)
        SPLICE_CONNECTIONS.labels(action="created").inc()
        logger.info(
            "Spliced core %s -> %s at node %s (%.2f dB)",
            input_core_id,
            output_core_id,
            location_node_id,
            connection.splice_loss,
        )
        return connection

    @classmethod
    def delete(cls, db: Session, connection_id):
        connection = cls._get_or_404(db, connection_id)
        core_ids = (connection.input_core_id, connection.output_core_id)
        try:
            db.delete(connection)
            db.flush()
            refresh_core_statuses(db, core_ids)
            db.commit()
        except Exception:
            db.rollback()
            raise
        SPLICE_CONNECTIONS.labels(action="deleted").inc()
        logger.info("Deleted connection %s (cores %s, %s)", connection_id, *core_ids)

    @staticmethod
    def by_location(db: Session, node_id):
        node = get_or_404(db, Node, node_id, "Node not found")
        return (
            db.query(Connection)
            .filter(Connection.location_node_id == node.id)
            .order_by(Connection.created_at.asc())
            .all()
        )

    @classmethod
    def splice_matrix(cls, db: Session, node_id) -> dict:
        """Cables and cores meeting at a node, with the core pairs spliced there."""
        node = get_or_404(db, Node, node_id, "Node not found")
        connections = cls.by_location(db, node.id)

        terminating = db.query(Cable.id).filter(
            or_(Cable.origin_node_id == node.id, Cable.dest_node_id == node.id)
        )
        cable_ids = {row.id for row in terminating}
        for connection in connections:
            cable_ids.add(connection.input_cable_id)
            cable_ids.add(connection.output_cable_id)

        cables = []
        cores = []
        if cable_ids:
            cables = (
                db.query(Cable)
                .filter(Cable.id.in_(cable_ids))
                .order_by(Cable.name.asc(), Cable.created_at.asc())
                .all()
            )
            cores = (
                db.query(Core)
                .filter(Core.cable_id.in_(cable_ids))
                .order_by(Core.cable_id, Core.core_index)
                .all()
            )
        core_index = {core.id: core.core_index for core in cores}

        matrix = []
        for connection in connections:
            matrix.append(
                {
                    "connection_id": connection.id,
                    "input_cable_id": connection.input_cable_id,
                    "input_core_id": connection.input_core_id,
                    "input_core_index": core_index[connection.input_core_id],
                    "output_cable_id": connection.output_cable_id,
                    "output_core_id": connection.output_core_id,
                    "output_core_index": core_index[connection.output_core_id],
                    "splice_loss": connection.splice_loss,
                }
            )
        return {
            "location_node": node,
            "cables": cables,
            "cores": cores,
            "connections": matrix,
        }

    @staticmethod
    def trace(db: Session, core_id, max_hops: int = MAX_TRACE_HOPS) -> dict:
        """Follow through-splices downstream from a core and total the loss.

        Each hop is the connection whose input is the current core; its output
        core becomes the next input. Stops at a free end, after ``max_hops``,
        or when a connection repeats.
        """
        start = get_or_404(db, Core, core_id, "Core not found")
        hops = []
        seen = set()
        current = start.id
        loop_detected = False
        truncated = False
        while True:
            connection = (
                db.query(Connection).filter(Connection.input_core_id == current).first()
            )
            if connection is None:
                break
            if connection.id in seen:
                loop_detected = True
                break
            if len(hops) >= max_hops:
                truncated = True
                break
            seen.add(connection.id)
            hops.append(
                {
                    "sequence": len(hops) + 1,
                    "connection_id": connection.id,
                    "location_node_id": connection.location_node_id,
                    "input_cable_id": connection.input_cable_id,
                    "input_core_id": connection.input_core_id,
                    "input_core_index": _core_index(db, connection.input_core_id),
                    "output_cable_id": connection.output_cable_id,
                    "output_core_id": connection.output_core_id,
                    "output_core_index": _core_index(db, connection.output_core_id),
                    "splice_loss": connection.splice_loss,
                }
            )
            current = connection.output_core_id

        total_loss = round(sum(hop["splice_loss"] for hop in hops), 4)
        if loop_detected:
            logger.warning("Splice loop detected tracing from core %s", start.id)
        return {
            "start_core_id": start.id,
            "hops": hops,
            "total_hops": len(hops),
            "total_loss_db": total_loss,
            "truncated": truncated,
            "loop_detected": loop_detected,
        }


connections = Connections()
