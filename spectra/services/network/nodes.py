"""Node (OLT/ODC/ODP/closure/pole/customer premises) services."""

from __future__ import annotations

import logging
import math

from sqlalchemy.orm import Session

from spectra.errors import InvalidInputError
from spectra.models.customer import Customer
from spectra.models.network import AssetStatus, Cable, Connection, Node, NodeType
from spectra.schemas.network import NodeCreate, NodeUpdate
from spectra.services.common import validate_enum
from spectra.services.crud import CRUDManager
from spectra.services.network.splices import refresh_core_statuses
from spectra.services.query_builders import apply_optional_equals, apply_search

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0
KM_PER_DEGREE = 111.32
MIN_RADIUS_KM = 0.1
MAX_RADIUS_KM = 100.0


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)
    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    return 2 * EARTH_RADIUS_KM * math.asin(min(1.0, math.sqrt(a)))


class Nodes(CRUDManager[Node]):
    model = Node
    not_found_detail = "Node not found"
    ordering_columns = {
        "created_at": Node.created_at,
        "name": Node.name,
        "type": Node.type,
        "status": Node.status,
    }
    default_order_dir = "desc"

    @classmethod
    def filtered_query(cls, db: Session, type=None, status=None, search=None):
        query = db.query(Node)
        query = apply_optional_equals(
            query,
            {
                Node.type: validate_enum(type, NodeType, "type"),
                Node.status: validate_enum(status, AssetStatus, "status"),
            },
        )
        return apply_search(query, [Node.name, Node.address, Node.model], search)

    @classmethod
    def create(cls, db: Session, payload: NodeCreate):
        node = super().create(db, payload)
        logger.info("Created %s node %s (%s)", node.type.value, node.name, node.id)
        return node

    @classmethod
    def update(cls, db: Session, node_id, payload: NodeUpdate):
        node = cls._get_or_404(db, node_id)
        data = payload.model_dump(exclude_unset=True)
        capacity = data.get("capacity_ports", node.capacity_ports)
        used = data.get("used_ports", node.used_ports)
        if used > capacity:
            raise InvalidInputError(
                "used_ports cannot exceed capacity_ports",
                {"used_ports": used, "capacity_ports": capacity},
            )
        try:
            for key, value in data.items():
                setattr(node, key, value)
            db.commit()
        except Exception:
            db.rollback()
            raise
        db.refresh(node)
        return node

    @classmethod
    def delete(cls, db: Session, node_id):
        """Delete a node and everything that only makes sense at that node.

        Splices located at the node are removed and the cores they touched
        are recomputed. Cables and customers survive with their reference to
        the node cleared.
        """
        node = cls._get_or_404(db, node_id)
        try:
            located = db.query(Connection).filter(Connection.location_node_id == node.id).all()
            touched = set()
            for connection in located:
                touched.update((connection.input_core_id, connection.output_core_id))
                db.delete(connection)
            for cable in db.query(Cable).filter(Cable.origin_node_id == node.id):
                cable.origin_node_id = None
            for cable in db.query(Cable).filter(Cable.dest_node_id == node.id):
                cable.dest_node_id = None
            for customer in db.query(Customer).filter(Customer.node_id == node.id):
                customer.node_id = None
            db.flush()
            refresh_core_statuses(db, touched)
            db.delete(node)
            db.commit()
        except Exception:
            db.rollback()
            raise
        logger.info("Deleted node %s with %d splices", node_id, len(located))

    @staticmethod
    def nearby(
        db: Session,
        latitude: float,
        longitude: float,
        radius_km: float = 1.0,
        type=None,
        limit: int = 100,
    ) -> list[dict]:
        """Nodes within ``radius_km`` of a point, nearest first."""
        if not -90 <= latitude <= 90 or not -180 <= longitude <= 180:
            raise InvalidInputError(
                "Invalid coordinates", {"latitude": latitude, "longitude": longitude}
            )
        if not MIN_RADIUS_KM <= radius_km <= MAX_RADIUS_KM:
            raise InvalidInputError(
                f"radius_km must be between {MIN_RADIUS_KM} and {MAX_RADIUS_KM}",
                {"radius_km": radius_km},
            )
        node_type = validate_enum(type, NodeType, "type")

        # Bounding box prefilter, exact distance below.
        d_lat = radius_km / KM_PER_DEGREE
        query = db.query(Node).filter(
            Node.latitude >= latitude - d_lat, Node.latitude <= latitude + d_lat
        )
        cos_lat = math.cos(math.radians(latitude))
        if abs(latitude) + d_lat < 90 and cos_lat > 0:
            d_lng = radius_km / (KM_PER_DEGREE * cos_lat)
            if d_lng < 180:
                query = query.filter(
                    Node.longitude >= longitude - d_lng, Node.longitude <= longitude + d_lng
                )
        if node_type is not None:
            query = query.filter(Node.type == node_type)

        results = []
        for node in query.all():
            distance = haversine_km(latitude, longitude, node.latitude, node.longitude)
            if distance <= radius_km:
                results.append({"node": node, "distance_km": round(distance, 4)})
        results.sort(key=lambda item: item["distance_km"])
        return results[:limit]


nodes = Nodes()
