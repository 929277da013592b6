"""TIA-598 color coding for fiber cores and buffer tubes.

A cable groups its cores into tubes of twelve. Core ``i`` (1-based) sits in
tube ``(i - 1) // 12`` and carries the palette color at ``(i - 1) % 12``; the
tube itself takes the palette color at its own index, wrapping after twelve
tubes. Colors stored on a core record override the derived values.

Everything here is a pure function of its arguments: nothing reads or writes
the database.
"""

from __future__ import annotations

from dataclasses import dataclass

CORES_PER_TUBE = 12

PALETTE: tuple[str, ...] = (
    "Blue",
    "Orange",
    "Green",
    "Brown",
    "Slate",
    "White",
    "Red",
    "Black",
    "Yellow",
    "Violet",
    "Rose",
    "Aqua",
)

COLOR_HEX: dict[str, str] = {
    "Blue": "#3b82f6",
    "Orange": "#f97316",
    "Green": "#22c55e",
    "Brown": "#92400e",
    "Slate": "#64748b",
    "White": "#f1f5f9",
    "Red": "#ef4444",
    "Black": "#1e293b",
    "Yellow": "#eab308",
    "Violet": "#8b5cf6",
    "Rose": "#f43f5e",
    "Aqua": "#06b6d4",
}


@dataclass(frozen=True)
class CoreColors:
    core_index: int
    tube_index: int
    tube_color: str
    core_color: str

    @property
    def tube_number(self) -> int:
        return self.tube_index + 1


@dataclass(frozen=True)
class Tube:
    tube_index: int
    color: str
    first_core: int
    last_core: int

    @property
    def core_indexes(self) -> range:
        return range(self.first_core, self.last_core + 1)


def _check_index(core_index: int) -> None:
    if isinstance(core_index, bool) or not isinstance(core_index, int) or core_index < 1:
        raise ValueError(f"core_index must be an integer >= 1, got {core_index!r}")


def tube_index_for(core_index: int) -> int:
    _check_index(core_index)
    return (core_index - 1) // CORES_PER_TUBE


def derive_colors(core_index: int) -> CoreColors:
    """Return the default tube/core colors for a 1-based core index."""
    tube_index = tube_index_for(core_index)
    return CoreColors(
        core_index=core_index,
        tube_index=tube_index,
        tube_color=PALETTE[tube_index % len(PALETTE)],
        core_color=PALETTE[(core_index - 1) % len(PALETTE)],
    )


def resolve_colors(
    core_index: int,
    tube_color: str | None = None,
    core_color: str | None = None,
) -> CoreColors:
    """Apply stored overrides on top of the derived colors."""
    derived = derive_colors(core_index)
    return CoreColors(
        core_index=core_index,
        tube_index=derived.tube_index,
        tube_color=tube_color or derived.tube_color,
        core_color=core_color or derived.core_color,
    )


def colors_for_core(core) -> CoreColors:
    """Colors for a Core record (anything with core_index/tube_color/core_color)."""
    return resolve_colors(core.core_index, core.tube_color, core.core_color)


def tube_count(core_count: int) -> int:
    if core_count < 1:
        raise ValueError(f"core_count must be >= 1, got {core_count!r}")
    return -(-core_count // CORES_PER_TUBE)


def tube_layout(core_count: int) -> list[Tube]:
    tubes = []
    for tube_index in range(tube_count(core_count)):
        first = tube_index * CORES_PER_TUBE + 1
        last = min((tube_index + 1) * CORES_PER_TUBE, core_count)
        tubes.append(
            Tube(
                tube_index=tube_index,
                color=PALETTE[tube_index % len(PALETTE)],
                first_core=first,
                last_core=last,
            )
        )
    return tubes


def hex_for(color: str | None) -> str | None:
    if color is None:
        return None
    return COLOR_HEX.get(color.strip().title())
