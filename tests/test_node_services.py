"""Tests for node services."""

import uuid

import pytest
from fastapi import HTTPException
from pydantic import ValidationError

from spectra.errors import InvalidInputError, InvalidReferenceError
from spectra.models.customer import Customer
from spectra.models.network import AssetStatus, Connection, CoreStatus, NodeType
from spectra.schemas.network import NodeCreate, NodeUpdate
from spectra.services.network import nodes as node_service
from spectra.services.network.nodes import haversine_km
from tests.helpers import core_at


class TestNodesCRUD:
    """Tests for Nodes CRUD operations."""

    def test_create_node_defaults(self, db_session):
        node = node_service.create(
            db_session,
            NodeCreate(name="ODP-17", type=NodeType.ODP, latitude=-6.21, longitude=106.82),
        )
        assert node.id is not None
        assert node.capacity_ports == 8
        assert node.used_ports == 0
        assert node.status == AssetStatus.ACTIVE
        assert node.created_at is not None

    def test_create_node_rejects_bad_coordinates(self):
        with pytest.raises(ValidationError):
            NodeCreate(name="Bad", type=NodeType.POLE, latitude=91, longitude=0)

    def test_create_node_rejects_blank_name(self):
        with pytest.raises(ValidationError):
            NodeCreate(name="   ", type=NodeType.POLE, latitude=0, longitude=0)

    def test_get_node_not_found(self, db_session):
        with pytest.raises(HTTPException) as exc_info:
            node_service.get(db_session, str(uuid.uuid4()))
        assert exc_info.value.status_code == 404
        assert isinstance(exc_info.value, InvalidReferenceError)

    def test_get_node_malformed_id(self, db_session):
        with pytest.raises(InvalidInputError):
            node_service.get(db_session, "not-a-uuid")

    def test_update_node(self, db_session, make_node):
        node = make_node(name="ODC-1", node_type=NodeType.ODC)
        updated = node_service.update(
            db_session, str(node.id), NodeUpdate(used_ports=4, status=AssetStatus.MAINTENANCE)
        )
        assert updated.used_ports == 4
        assert updated.status == AssetStatus.MAINTENANCE

    def test_update_rejects_used_ports_over_capacity(self, db_session, make_node):
        node = make_node(capacity_ports=8)
        with pytest.raises(InvalidInputError):
            node_service.update(db_session, node.id, NodeUpdate(used_ports=9))
        node_service.update(db_session, node.id, NodeUpdate(used_ports=4))
        with pytest.raises(InvalidInputError):
            node_service.update(db_session, node.id, NodeUpdate(capacity_ports=2))

    def test_update_schema_rejects_inconsistent_ports(self):
        with pytest.raises(ValidationError):
            NodeUpdate(capacity_ports=4, used_ports=5)

    @pytest.mark.parametrize("field", ["name", "type", "latitude", "capacity_ports", "status"])
    def test_update_schema_rejects_null_required_column(self, field):
        with pytest.raises(ValidationError):
            NodeUpdate(**{field: None})

    def test_update_schema_allows_null_address(self):
        assert NodeUpdate(address=None).model_dump(exclude_unset=True) == {"address": None}

    def test_update_strips_name(self, db_session, make_node):
        node = make_node(name="ODP-1")
        updated = node_service.update(db_session, node.id, NodeUpdate(name="  ODP-1A "))
        assert updated.name == "ODP-1A"

    def test_update_rejects_blank_name(self):
        with pytest.raises(ValidationError):
            NodeUpdate(name="   ")

    def test_failed_update_rolls_back(self, db_session, make_node, monkeypatch):
        node = make_node(name="ODP-2")

        def failing_commit():
            raise RuntimeError("database unreachable")

        monkeypatch.setattr(db_session, "commit", failing_commit)
        with pytest.raises(RuntimeError):
            node_service.update(db_session, node.id, NodeUpdate(name="ODP-2B"))
        monkeypatch.undo()
        assert node_service.get(db_session, node.id).name == "ODP-2"


class TestNodeListing:
    """Tests for node filters, search and pagination."""

    def test_filter_by_type_and_status(self, db_session, make_node):
        make_node(NodeType.OLT, name="OLT-Central")
        make_node(NodeType.ODP, name="ODP-1")
        make_node(NodeType.ODP, name="ODP-2", status=AssetStatus.PLAN)

        odps = node_service.list(db_session, type="odp")
        assert {node.name for node in odps} == {"ODP-1", "ODP-2"}
        planned = node_service.list(db_session, type="ODP", status="PLAN")
        assert [node.name for node in planned] == ["ODP-2"]

    def test_search_matches_name_address_model(self, db_session, make_node):
        make_node(name="Closure Alpha")
        make_node(name="Pole 9", address="Jl. Sudirman 12")
        make_node(name="ODC West", model="HW-ODC-144")
        found = node_service.list(db_session, search="sudirman")
        assert [node.name for node in found] == ["Pole 9"]
        found = node_service.list(db_session, search="hw-odc")
        assert [node.name for node in found] == ["ODC West"]

    def test_invalid_type_filter(self, db_session):
        with pytest.raises(InvalidInputError):
            node_service.list(db_session, type="SATELLITE")

    def test_invalid_order_by(self, db_session):
        with pytest.raises(InvalidInputError):
            node_service.list(db_session, order_by="latitude")

    def test_list_response_pagination(self, db_session, make_node):
        for i in range(5):
            make_node(name=f"Pole {i}", node_type=NodeType.POLE)
        payload = node_service.list_response(
            db_session, limit=2, offset=2, order_by="name", order_dir="asc", type="POLE"
        )
        assert payload["success"] is True
        assert [node.name for node in payload["data"]] == ["Pole 2", "Pole 3"]
        assert payload["pagination"] == {
            "total": 5,
            "limit": 2,
            "offset": 2,
            "has_more": True,
        }

        last_page = node_service.list_response(
            db_session, limit=2, offset=4, order_by="name", order_dir="asc", type="POLE"
        )
        assert last_page["pagination"]["has_more"] is False


class TestNearbyNodes:
    """Tests for radius search."""

    def test_haversine_known_distance(self):
        # Monas to Bundaran HI, Jakarta: roughly 2.4 km
        distance = haversine_km(-6.1754, 106.8272, -6.1949, 106.8230)
        assert 2.0 < distance < 2.6

    def test_nearby_orders_by_distance_and_respects_radius(self, db_session, make_node):
        make_node(name="Far", latitude=-6.30, longitude=106.82)
        make_node(name="Near", latitude=-6.2010, longitude=106.8166)
        make_node(name="Here", latitude=-6.2000, longitude=106.8166)

        results = node_service.nearby(db_session, -6.2000, 106.8166, radius_km=1.0)
        assert [item["node"].name for item in results] == ["Here", "Near"]
        assert results[0]["distance_km"] == 0
        assert results[1]["distance_km"] == pytest.approx(0.111, abs=0.01)

    def test_nearby_type_filter(self, db_session, make_node):
        make_node(NodeType.POLE, name="Pole")
        make_node(NodeType.ODP, name="ODP")
        results = node_service.nearby(db_session, -6.2, 106.8166, radius_km=0.5, type="ODP")
        assert [item["node"].name for item in results] == ["ODP"]

    @pytest.mark.parametrize("radius", [0.05, 150])
    def test_nearby_rejects_radius_out_of_range(self, db_session, radius):
        with pytest.raises(InvalidInputError):
            node_service.nearby(db_session, 0, 0, radius_km=radius)


class TestNodeDelete:
    """Tests for deleting nodes with dependent records."""

    def test_delete_node_removes_located_splices_and_clears_references(
        self, db_session, closure, make_cable, splice
    ):
        cable_a = make_cable(origin_node_id=closure.id)
        cable_b = make_cable(dest_node_id=closure.id)
        splice(cable_a, 1, cable_b, 1, location=closure)
        customer = Customer(name="Budi", node_id=closure.id, ont_sn="ZTEG0001")
        db_session.add(customer)
        db_session.commit()

        node_service.delete(db_session, closure.id)

        assert db_session.query(Connection).count() == 0
        db_session.refresh(cable_a)
        db_session.refresh(cable_b)
        db_session.refresh(customer)
        assert cable_a.origin_node_id is None
        assert cable_b.dest_node_id is None
        assert customer.node_id is None
        assert core_at(cable_a, 1).status == CoreStatus.VACANT
        assert core_at(cable_b, 1).status == CoreStatus.VACANT

    def test_delete_node_keeps_splices_elsewhere(
        self, db_session, closure, make_node, make_cable, splice
    ):
        other = make_node(name="JC-02")
        cable_a = make_cable()
        cable_b = make_cable()
        splice(cable_a, 1, cable_b, 1, location=closure)
        splice(cable_a, 2, cable_b, 2, location=other)

        node_service.delete(db_session, closure.id)

        remaining = db_session.query(Connection).all()
        assert len(remaining) == 1
        assert remaining[0].location_node_id == other.id
        db_session.refresh(cable_a)
        assert core_at(cable_a, 2).status == CoreStatus.USED

    def test_delete_node_not_found(self, db_session):
        with pytest.raises(InvalidReferenceError):
            node_service.delete(db_session, uuid.uuid4())
