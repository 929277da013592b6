"""Tests for cable and core services."""

import sys
import uuid

import pytest
from pydantic import ValidationError
from sqlalchemy.dialects import postgresql

from spectra.errors import ConflictError, InvalidReferenceError
from spectra.models.network import Cable, CableType, Connection, Core, CoreStatus
from spectra.schemas.network import CableCreate, CableUpdate, CoreRead, CoreUpdate
from spectra.services import fiber_colors
from spectra.services.network import cables as cable_service
from spectra.services.network.splices import locked_cores_query
from tests.helpers import core_at


class TestCableCreate:
    """Tests for cable creation and core provisioning."""

    @pytest.mark.parametrize("core_count", [1, 12, 24, 48, 288])
    def test_provisions_contiguous_cores(self, db_session, make_cable, core_count):
        cable = make_cable(core_count=core_count)
        indexes = [
            row.core_index
            for row in db_session.query(Core.core_index)
            .filter(Core.cable_id == cable.id)
            .order_by(Core.core_index)
        ]
        assert indexes == list(range(1, core_count + 1))

    def test_new_cores_are_vacant_and_colored(self, make_cable):
        cable = make_cable(core_count=24)
        assert {core.status for core in cable.cores} == {CoreStatus.VACANT}
        core_13 = core_at(cable, 13)
        assert (core_13.tube_color, core_13.core_color) == ("Orange", "Blue")

    def test_defaults(self, make_cable):
        cable = make_cable(core_count=12)
        assert cable.color_hex == "#000000"
        assert cable.path_coordinates is None

    @pytest.mark.parametrize("core_count", [0, 3, 10, 300])
    def test_rejects_unsupported_core_count(self, core_count):
        with pytest.raises(ValidationError):
            CableCreate(type=CableType.ADSS, core_count=core_count)

    def test_rejects_bad_color_hex(self):
        with pytest.raises(ValidationError):
            CableCreate(type=CableType.DROP, core_count=1, color_hex="black")

    def test_rejects_bad_path(self):
        with pytest.raises(ValidationError):
            CableCreate(type=CableType.DUCT, core_count=12, path_coordinates=[[106.8]])
        with pytest.raises(ValidationError):
            CableCreate(type=CableType.DUCT, core_count=12, path_coordinates=[[200, 0], [0, 0]])

    def test_unknown_origin_node_rolls_back(self, db_session):
        before = db_session.query(Cable).count()
        with pytest.raises(InvalidReferenceError):
            cable_service.create(
                db_session,
                CableCreate(type=CableType.ADSS, core_count=12, origin_node_id=uuid.uuid4()),
            )
        assert db_session.query(Cable).count() == before
        assert db_session.query(Core).count() == 0


class TestCableUpdate:
    """Tests for cable updates, including resizing."""

    def test_update_fields(self, db_session, make_cable, closure):
        cable = make_cable()
        updated = cable_service.update(
            db_session,
            cable.id,
            CableUpdate(name="FO-Backbone", dest_node_id=closure.id, length_meter=1250.5),
        )
        assert updated.name == "FO-Backbone"
        assert updated.dest_node_id == closure.id
        assert updated.length_meter == 1250.5

    def test_grow_appends_cores(self, db_session, make_cable):
        cable = make_cable(core_count=12)
        cable_service.update(db_session, cable.id, CableUpdate(core_count=24))
        cores = cable_service.list_cores(db_session, cable.id)
        assert [core.core_index for core in cores] == list(range(1, 25))
        assert cable.core_count == 24

    @pytest.mark.parametrize("field", ["type", "core_count", "color_hex", "status"])
    def test_null_required_column_rejected(self, field):
        with pytest.raises(ValidationError):
            CableUpdate(**{field: None})

    def test_null_optional_column_allowed(self, db_session, make_cable, closure):
        cable = make_cable(name="FO-1", dest_node_id=closure.id)
        updated = cable_service.update(
            db_session, cable.id, CableUpdate(name=None, dest_node_id=None)
        )
        assert updated.name is None
        assert updated.dest_node_id is None

    def test_shrink_removes_free_tail(self, db_session, make_cable):
        cable = make_cable(core_count=24)
        cable_service.update(db_session, cable.id, CableUpdate(core_count=12))
        assert db_session.query(Core).filter(Core.cable_id == cable.id).count() == 12

    def test_shrink_rejected_when_tail_core_spliced(self, db_session, make_cable, splice):
        cable_a = make_cable(core_count=24)
        cable_b = make_cable(core_count=24)
        splice(cable_a, 20, cable_b, 1)
        with pytest.raises(ConflictError):
            cable_service.update(db_session, cable_a.id, CableUpdate(core_count=12))
        db_session.refresh(cable_a)
        assert cable_a.core_count == 24
        assert db_session.query(Core).filter(Core.cable_id == cable_a.id).count() == 24


class TestCableDelete:
    """Tests for cascading cable deletes."""

    def test_delete_removes_cores_and_connections(self, db_session, make_cable, splice):
        cable_a = make_cable()
        cable_b = make_cable()
        splice(cable_a, 5, cable_b, 5)
        splice(cable_b, 6, cable_a, 6)
        cable_a_id = cable_a.id

        cable_service.delete(db_session, cable_a_id)

        assert db_session.get(Cable, cable_a_id) is None
        assert db_session.query(Core).filter(Core.cable_id == cable_a_id).count() == 0
        assert db_session.query(Connection).count() == 0

    def test_delete_frees_far_side_cores(self, db_session, make_cable, splice):
        cable_a = make_cable()
        cable_b = make_cable()
        splice(cable_a, 5, cable_b, 5)
        cable_service.delete(db_session, cable_a.id)
        db_session.refresh(cable_b)
        assert core_at(cable_b, 5).status == CoreStatus.VACANT

    def test_delete_keeps_far_side_through_splice(self, db_session, make_cable, splice):
        cable_a = make_cable()
        cable_b = make_cable()
        cable_c = make_cable()
        splice(cable_a, 1, cable_b, 1)
        splice(cable_b, 1, cable_c, 1)
        cable_service.delete(db_session, cable_a.id)
        db_session.refresh(cable_b)
        assert core_at(cable_b, 1).status == CoreStatus.USED
        assert db_session.query(Connection).count() == 1


class TestCores:
    """Tests for core listing, overrides and externally owned status."""

    def test_list_cores_by_status(self, db_session, make_cable, splice):
        cable_a = make_cable(core_count=12)
        cable_b = make_cable(core_count=12)
        splice(cable_a, 3, cable_b, 3)
        used = cable_service.list_cores(db_session, cable_a.id, status="USED")
        assert [core.core_index for core in used] == [3]

    def test_core_read_exposes_tube_and_display_colors(self, db_session, make_cable):
        cable = make_cable(core_count=24)
        core = cable_service.update_core(
            db_session, cable.id, core_at(cable, 14).id, CoreUpdate(core_color="Aqua")
        )
        read = CoreRead.model_validate(core)
        assert read.tube_number == 2
        assert read.display_tube_color == "Orange"
        assert read.display_core_color == "Aqua"
        assert read.tube_color_hex == fiber_colors.COLOR_HEX["Orange"]
        assert read.core_color_hex == fiber_colors.COLOR_HEX["Aqua"]

    def test_core_read_hex_for_unknown_override(self, db_session, make_cable):
        cable = make_cable(core_count=12)
        core = cable_service.update_core(
            db_session, cable.id, core_at(cable, 1).id, CoreUpdate(core_color="Mauve")
        )
        read = CoreRead.model_validate(core)
        assert read.display_core_color == "Mauve"
        assert read.core_color_hex is None
        assert read.tube_color_hex == fiber_colors.COLOR_HEX["Blue"]

    def test_reserve_and_release(self, db_session, make_cable):
        cable = make_cable(core_count=12)
        core_id = core_at(cable, 1).id
        core = cable_service.update_core(
            db_session, cable.id, core_id, CoreUpdate(status=CoreStatus.RESERVED)
        )
        assert core.status == CoreStatus.RESERVED
        core = cable_service.update_core(
            db_session, cable.id, core_id, CoreUpdate(status=CoreStatus.VACANT)
        )
        assert core.status == CoreStatus.VACANT

    def test_clearing_flag_on_spliced_core_restores_used(self, db_session, make_cable, splice):
        cable_a = make_cable(core_count=12)
        cable_b = make_cable(core_count=12)
        splice(cable_a, 2, cable_b, 2)
        core_id = core_at(cable_a, 2).id
        cable_service.update_core(
            db_session, cable_a.id, core_id, CoreUpdate(status=CoreStatus.DAMAGED)
        )
        core = cable_service.update_core(
            db_session, cable_a.id, core_id, CoreUpdate(status=CoreStatus.VACANT)
        )
        assert core.status == CoreStatus.USED

    def test_update_core_locks_the_row(self, db_session, make_cable, monkeypatch):
        cable = make_cable(core_count=12)
        core_id = core_at(cable, 1).id
        locked = []

        def recording_query(db, core_ids):
            locked.append(list(core_ids))
            return locked_cores_query(db, core_ids)

        monkeypatch.setattr(
            sys.modules["spectra.services.network.cables"],
            "locked_cores_query",
            recording_query,
        )
        cable_service.update_core(
            db_session, cable.id, core_id, CoreUpdate(status=CoreStatus.RESERVED)
        )
        assert locked == [[core_id]]

        sql = str(
            locked_cores_query(db_session, [core_id]).statement.compile(
                dialect=postgresql.dialect()
            )
        )
        assert "FOR UPDATE" in sql
        assert "ORDER BY cores.id" in sql

    def test_used_cannot_be_set_directly(self):
        with pytest.raises(ValidationError):
            CoreUpdate(status=CoreStatus.USED)

    def test_core_from_other_cable_rejected(self, db_session, make_cable):
        cable_a = make_cable(core_count=12)
        cable_b = make_cable(core_count=12)
        with pytest.raises(InvalidReferenceError):
            cable_service.get_core(db_session, cable_a.id, core_at(cable_b, 1).id)

    def test_tubes(self, db_session, make_cable):
        cable = make_cable(core_count=24)
        tubes = cable_service.tubes(db_session, cable.id)
        assert [(t["tube_number"], t["color"], t["first_core"], t["last_core"]) for t in tubes] == [
            (1, "Blue", 1, 12),
            (2, "Orange", 13, 24),
        ]
