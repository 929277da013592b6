"""Subscriber (ONT) records and their signal status."""

from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from spectra.errors import ConflictError, InvalidReferenceError
from spectra.models.customer import Customer, CustomerStatus
from spectra.models.network import Node
from spectra.schemas.customer import (
    BulkStatusUpdate,
    CustomerCreate,
    CustomerStatusUpdate,
    CustomerUpdate,
)
from spectra.services.common import coerce_uuid, ensure_exists, validate_enum
from spectra.services.crud import CRUDManager
from spectra.services.query_builders import apply_optional_equals, apply_search

logger = logging.getLogger(__name__)


def _is_ont_sn_violation(exc: IntegrityError) -> bool:
    # PostgreSQL names the constraint; SQLite names the column.
    message = str(exc.orig)
    return "uq_customers_ont_sn" in message or "customers.ont_sn" in message


class Customers(CRUDManager[Customer]):
    model = Customer
    not_found_detail = "Customer not found"
    ordering_columns = {
        "created_at": Customer.created_at,
        "updated_at": Customer.updated_at,
        "name": Customer.name,
        "current_status": Customer.current_status,
    }
    default_order_dir = "desc"

    @classmethod
    def filtered_query(cls, db: Session, node_id=None, status=None, search=None):
        query = db.query(Customer)
        query = apply_optional_equals(
            query,
            {
                Customer.node_id: coerce_uuid(node_id, "node_id"),
                Customer.current_status: validate_enum(status, CustomerStatus, "status"),
            },
        )
        return apply_search(
            query, [Customer.name, Customer.ont_sn, Customer.phone, Customer.email], search
        )

    @staticmethod
    def _ensure_unique_ont_sn(db: Session, ont_sn: str | None, exclude_id=None) -> None:
        if not ont_sn:
            return
        query = db.query(Customer.id).filter(Customer.ont_sn == ont_sn)
        if exclude_id is not None:
            query = query.filter(Customer.id != exclude_id)
        if query.first() is not None:
            raise ConflictError("ONT serial number already registered", {"ont_sn": ont_sn})

    @staticmethod
    def _commit(db: Session, ont_sn: str | None) -> None:
        try:
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            if _is_ont_sn_violation(exc):
                raise ConflictError(
                    "ONT serial number already registered", {"ont_sn": ont_sn}
                ) from exc
            raise
        except Exception:
            db.rollback()
            raise

    @classmethod
    def create(cls, db: Session, payload: CustomerCreate):
        data = payload.model_dump()
        if data.get("node_id") is not None:
            ensure_exists(db, Node, data["node_id"], "Node not found")
        cls._ensure_unique_ont_sn(db, data.get("ont_sn"))
        customer = Customer(**data)
        db.add(customer)
        cls._commit(db, customer.ont_sn)
        db.refresh(customer)
        logger.info("Created customer %s (ont %s)", customer.id, customer.ont_sn)
        return customer

    @classmethod
    def update(cls, db: Session, customer_id, payload: CustomerUpdate):
        customer = cls._get_or_404(db, customer_id)
        data = payload.model_dump(exclude_unset=True)
        if data.get("node_id") is not None:
            ensure_exists(db, Node, data["node_id"], "Node not found")
        if "ont_sn" in data:
            data["ont_sn"] = (data["ont_sn"] or "").strip() or None
            cls._ensure_unique_ont_sn(db, data["ont_sn"], exclude_id=customer.id)
        for key, value in data.items():
            setattr(customer, key, value)
        cls._commit(db, customer.ont_sn)
        db.refresh(customer)
        return customer

    @staticmethod
    def get_by_ont_sn(db: Session, ont_sn: str):
        customer = db.query(Customer).filter(Customer.ont_sn == ont_sn.strip()).first()
        if customer is None:
            raise InvalidReferenceError("Customer not found", {"ont_sn": ont_sn})
        return customer

    @staticmethod
    def list_los(db: Session):
        return (
            db.query(Customer)
            .filter(Customer.current_status == CustomerStatus.LOS)
            .order_by(Customer.updated_at.desc())
            .all()
        )

    @classmethod
    def update_status(cls, db: Session, customer_id, payload: CustomerStatusUpdate):
        customer = cls._get_or_404(db, customer_id)
        previous = customer.current_status
        customer.current_status = payload.status
        if payload.rx_power is not None:
            customer.last_rx_power = payload.rx_power
        db.commit()
        db.refresh(customer)
        if previous != customer.current_status:
            logger.info(
                "Customer %s status %s -> %s",
                customer.id,
                previous.value,
                customer.current_status.value,
            )
        return customer

    @staticmethod
    def bulk_update_status(db: Session, payload: BulkStatusUpdate) -> dict:
        """Apply ONT-reported statuses keyed by serial number in one commit.

        Serials that match no customer are reported back, not raised.
        """
        updated = 0
        not_found = []
        try:
            for item in payload.updates:
                customer = (
                    db.query(Customer).filter(Customer.ont_sn == item.ont_sn.strip()).first()
                )
                if customer is None:
                    not_found.append(item.ont_sn)
                    continue
                customer.current_status = item.status
                if item.rx_power is not None:
                    customer.last_rx_power = item.rx_power
                updated += 1
            db.commit()
        except Exception:
            db.rollback()
            raise
        logger.info("Bulk status update: %d updated, %d unknown", updated, len(not_found))
        return {"updated": updated, "not_found": not_found}

    @staticmethod
    def status_snapshot(db: Session, limit: int = 1000) -> list[tuple]:
        """(id, name, current_status) rows for the status change detector."""
        rows = (
            db.query(Customer.id, Customer.name, Customer.current_status)
            .order_by(Customer.created_at.asc(), Customer.id.asc())
            .limit(limit)
            .all()
        )
        return [(row.id, row.name, row.current_status) for row in rows]


customers = Customers()
