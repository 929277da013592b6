"""GeoJSON projection of the outside plant for map clients."""

from __future__ import annotations

from sqlalchemy.orm import Session, joinedload

from spectra.models.network import AssetStatus, Cable, CableType, Node, NodeType
from spectra.services.common import validate_enum


def _feature_collection(features: list[dict]) -> dict:
    return {"type": "FeatureCollection", "features": features}


def node_feature(node: Node) -> dict:
    properties = {
        "id": str(node.id),
        "name": node.name,
        "type": node.type.value,
        "status": node.status.value,
        "capacity_ports": node.capacity_ports,
        "used_ports": node.used_ports,
    }
    if node.address:
        properties["address"] = node.address
    if node.model:
        properties["model"] = node.model
    return {
        "type": "Feature",
        "geometry": {"type": "Point", "coordinates": [node.longitude, node.latitude]},
        "properties": properties,
    }


def cable_path(cable: Cable) -> list[list[float]] | None:
    """Stored route, else a straight line between the two end nodes."""
    if cable.path_coordinates and len(cable.path_coordinates) >= 2:
        return [list(point) for point in cable.path_coordinates]
    if cable.origin_node is not None and cable.dest_node is not None:
        return [
            [cable.origin_node.longitude, cable.origin_node.latitude],
            [cable.dest_node.longitude, cable.dest_node.latitude],
        ]
    return None


def cable_feature(cable: Cable) -> dict | None:
    coordinates = cable_path(cable)
    if coordinates is None:
        return None
    properties = {
        "id": str(cable.id),
        "type": cable.type.value,
        "core_count": cable.core_count,
        "status": cable.status.value,
        "color_hex": cable.color_hex,
    }
    if cable.name:
        properties["name"] = cable.name
    if cable.length_meter is not None:
        properties["length_meter"] = cable.length_meter
    if cable.origin_node_id is not None:
        properties["origin_node_id"] = str(cable.origin_node_id)
    if cable.dest_node_id is not None:
        properties["dest_node_id"] = str(cable.dest_node_id)
    return {
        "type": "Feature",
        "geometry": {"type": "LineString", "coordinates": coordinates},
        "properties": properties,
    }


def build_nodes_geojson(db: Session, *, type=None, status=None) -> dict:
    query = db.query(Node)
    node_type = validate_enum(type, NodeType, "type")
    if node_type is not None:
        query = query.filter(Node.type == node_type)
    node_status = validate_enum(status, AssetStatus, "status")
    if node_status is not None:
        query = query.filter(Node.status == node_status)
    return _feature_collection([node_feature(node) for node in query.order_by(Node.name).all()])


def build_cables_geojson(db: Session, *, type=None, status=None) -> dict:
    """Cables as LineStrings; cables with no route and no end nodes are left out."""
    query = db.query(Cable).options(
        joinedload(Cable.origin_node), joinedload(Cable.dest_node)
    )
    cable_type = validate_enum(type, CableType, "type")
    if cable_type is not None:
        query = query.filter(Cable.type == cable_type)
    cable_status = validate_enum(status, AssetStatus, "status")
    if cable_status is not None:
        query = query.filter(Cable.status == cable_status)
    features = []
    for cable in query.order_by(Cable.created_at).all():
        feature = cable_feature(cable)
        if feature is not None:
            features.append(feature)
    return _feature_collection(features)
