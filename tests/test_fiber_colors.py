"""Tests for TIA-598 core and tube color derivation."""

from types import SimpleNamespace

import pytest

from spectra.services import fiber_colors


def test_first_tube_follows_palette_order():
    colors = [fiber_colors.derive_colors(i).core_color for i in range(1, 13)]
    assert colors == list(fiber_colors.PALETTE)
    assert {fiber_colors.derive_colors(i).tube_color for i in range(1, 13)} == {"Blue"}


@pytest.mark.parametrize("core_index", [1, 5, 12, 13, 77, 144, 288])
def test_colors_repeat_every_twelve_cores(core_index):
    here = fiber_colors.derive_colors(core_index)
    next_tube = fiber_colors.derive_colors(core_index + 12)
    assert here.core_color == next_tube.core_color
    assert next_tube.tube_index == here.tube_index + 1


def test_tube_color_wraps_after_twelve_tubes():
    assert fiber_colors.derive_colors(13).tube_color == "Orange"
    assert fiber_colors.derive_colors(12 * 12 + 1).tube_color == "Blue"
    assert fiber_colors.derive_colors(12 * 12 + 13).tube_color == "Orange"


def test_core_25_is_blue_in_green_tube():
    colors = fiber_colors.derive_colors(25)
    assert colors.tube_number == 3
    assert colors.tube_color == "Green"
    assert colors.core_color == "Blue"


def test_derivation_is_repeatable():
    assert fiber_colors.derive_colors(40) == fiber_colors.derive_colors(40)


@pytest.mark.parametrize("bad", [0, -1, 1.5, "3", True, None])
def test_invalid_core_index_rejected(bad):
    with pytest.raises(ValueError):
        fiber_colors.derive_colors(bad)


def test_stored_overrides_win():
    colors = fiber_colors.resolve_colors(3, tube_color="Red", core_color=None)
    assert colors.tube_color == "Red"
    assert colors.core_color == "Green"


def test_colors_for_core_reads_record_without_mutating_it():
    core = SimpleNamespace(core_index=14, tube_color=None, core_color="Aqua")
    colors = fiber_colors.colors_for_core(core)
    assert colors.tube_color == "Orange"
    assert colors.core_color == "Aqua"
    assert core.tube_color is None


class TestTubeLayout:
    """Tests for tube grouping of a cable's cores."""

    def test_24_core_cable_has_two_tubes(self):
        tubes = fiber_colors.tube_layout(24)
        assert len(tubes) == 2
        assert list(tubes[0].core_indexes) == list(range(1, 13))
        assert list(tubes[1].core_indexes) == list(range(13, 25))
        assert [tube.color for tube in tubes] == ["Blue", "Orange"]

    def test_partial_tube(self):
        tubes = fiber_colors.tube_layout(6)
        assert len(tubes) == 1
        assert (tubes[0].first_core, tubes[0].last_core) == (1, 6)

    @pytest.mark.parametrize(
        "core_count,expected", [(1, 1), (12, 1), (13, 2), (48, 4), (288, 24)]
    )
    def test_tube_count(self, core_count, expected):
        assert fiber_colors.tube_count(core_count) == expected

    def test_tube_count_rejects_empty_cable(self):
        with pytest.raises(ValueError):
            fiber_colors.tube_count(0)


def test_hex_for_is_case_insensitive():
    assert fiber_colors.hex_for("violet") == fiber_colors.COLOR_HEX["Violet"]
    assert fiber_colors.hex_for("Mauve") is None
    assert fiber_colors.hex_for(None) is None
