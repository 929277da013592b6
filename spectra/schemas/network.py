from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
    model_validator,
)

from spectra.models.network import (
    SUPPORTED_CORE_COUNTS,
    AssetStatus,
    CableType,
    CoreStatus,
    NodeType,
)
from spectra.services import fiber_colors

HEX_COLOR_PATTERN = r"^#[0-9A-Fa-f]{6}$"


def reject_explicit_nulls(model: BaseModel, fields: tuple[str, ...]) -> None:
    """Raise if a PATCH payload sets a non-nullable column to null."""
    nulled = sorted(
        name
        for name in fields
        if name in model.model_fields_set and getattr(model, name) is None
    )
    if nulled:
        raise ValueError(f"{', '.join(nulled)} cannot be null")


def _check_core_count(value: int | None) -> int | None:
    if value is not None and value not in SUPPORTED_CORE_COUNTS:
        allowed = ", ".join(str(count) for count in SUPPORTED_CORE_COUNTS)
        raise ValueError(f"core_count must be one of {allowed}")
    return value


def _check_path(value: list[list[float]] | None) -> list[list[float]] | None:
    if value is None:
        return None
    for point in value:
        if len(point) != 2:
            raise ValueError("path coordinates must be [lng, lat] pairs")
        lng, lat = point
        if not -180 <= lng <= 180 or not -90 <= lat <= 90:
            raise ValueError("path coordinate out of range")
    return value


# --- Nodes -----------------------------------------------------------------


class NodeBase(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    type: NodeType
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    address: str | None = None
    capacity_ports: int = Field(default=8, ge=1)
    model: str | None = Field(default=None, max_length=120)
    status: AssetStatus = AssetStatus.ACTIVE

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("name is required")
        return value


class NodeCreate(NodeBase):
    model_config = ConfigDict(extra="forbid")


class NodeUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(default=None, min_length=1, max_length=100)
    type: NodeType | None = None
    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)
    address: str | None = None
    capacity_ports: int | None = Field(default=None, ge=1)
    used_ports: int | None = Field(default=None, ge=0)
    model: str | None = Field(default=None, max_length=120)
    status: AssetStatus | None = None

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip()
        if not value:
            raise ValueError("name is required")
        return value

    @model_validator(mode="after")
    def _check_ports(self) -> NodeUpdate:
        reject_explicit_nulls(
            self,
            (
                "name",
                "type",
                "latitude",
                "longitude",
                "capacity_ports",
                "used_ports",
                "status",
            ),
        )
        if (
            self.capacity_ports is not None
            and self.used_ports is not None
            and self.used_ports > self.capacity_ports
        ):
            raise ValueError("used_ports cannot exceed capacity_ports")
        return self


class NodeRead(NodeBase):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    used_ports: int
    created_at: datetime
    updated_at: datetime


# --- Cables ----------------------------------------------------------------


class CableBase(BaseModel):
    name: str | None = Field(default=None, max_length=160)
    type: CableType
    core_count: int
    length_meter: float | None = Field(default=None, ge=0)
    origin_node_id: UUID | None = None
    dest_node_id: UUID | None = None
    path_coordinates: list[list[float]] | None = None
    color_hex: str = Field(default="#000000", pattern=HEX_COLOR_PATTERN)
    status: AssetStatus = AssetStatus.ACTIVE


class CableCreate(CableBase):
    model_config = ConfigDict(extra="forbid")

    @field_validator("core_count")
    @classmethod
    def _supported_core_count(cls, value: int) -> int:
        return _check_core_count(value)

    @field_validator("path_coordinates")
    @classmethod
    def _valid_path(cls, value):
        return _check_path(value)


class CableUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(default=None, max_length=160)
    type: CableType | None = None
    core_count: int | None = None
    length_meter: float | None = Field(default=None, ge=0)
    origin_node_id: UUID | None = None
    dest_node_id: UUID | None = None
    path_coordinates: list[list[float]] | None = None
    color_hex: str | None = Field(default=None, pattern=HEX_COLOR_PATTERN)
    status: AssetStatus | None = None

    @field_validator("core_count")
    @classmethod
    def _supported_core_count(cls, value):
        return _check_core_count(value)

    @field_validator("path_coordinates")
    @classmethod
    def _valid_path(cls, value):
        return _check_path(value)

    @model_validator(mode="after")
    def _required_columns(self) -> CableUpdate:
        reject_explicit_nulls(self, ("type", "core_count", "color_hex", "status"))
        return self


class CableRead(CableBase):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    created_at: datetime
    updated_at: datetime


# --- Cores -----------------------------------------------------------------


class CoreRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    cable_id: UUID
    core_index: int
    tube_color: str | None = None
    core_color: str | None = None
    status: CoreStatus
    created_at: datetime
    updated_at: datetime

    @computed_field
    @property
    def tube_number(self) -> int:
        return fiber_colors.tube_index_for(self.core_index) + 1

    @computed_field
    @property
    def display_tube_color(self) -> str:
        return fiber_colors.colors_for_core(self).tube_color

    @computed_field
    @property
    def display_core_color(self) -> str:
        return fiber_colors.colors_for_core(self).core_color

    @computed_field
    @property
    def tube_color_hex(self) -> str | None:
        return fiber_colors.hex_for(self.display_tube_color)

    @computed_field
    @property
    def core_color_hex(self) -> str | None:
        return fiber_colors.hex_for(self.display_core_color)


class CoreUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    tube_color: str | None = Field(default=None, max_length=20)
    core_color: str | None = Field(default=None, max_length=20)
    status: CoreStatus | None = None

    @field_validator("status")
    @classmethod
    def _status_not_used(cls, value: CoreStatus | None) -> CoreStatus | None:
        if value == CoreStatus.USED:
            raise ValueError("USED is derived from splice connections and cannot be set")
        return value


class TubeRead(BaseModel):
    tube_number: int
    color: str
    color_hex: str
    first_core: int
    last_core: int


# --- Connections -----------------------------------------------------------


class ConnectionCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    location_node_id: UUID | None = None
    input_cable_id: UUID
    input_core_id: UUID
    output_cable_id: UUID
    output_core_id: UUID
    # Missing, non-positive or non-finite values fall back to the default loss.
    splice_loss: float | None = None
    notes: str | None = None


class ConnectionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    location_node_id: UUID | None = None
    input_cable_id: UUID
    input_core_id: UUID
    output_cable_id: UUID
    output_core_id: UUID
    splice_loss: float
    notes: str | None = None
    created_at: datetime
    updated_at: datetime


class MatrixConnectionRead(BaseModel):
    connection_id: UUID
    input_cable_id: UUID
    input_core_id: UUID
    input_core_index: int
    output_cable_id: UUID
    output_core_id: UUID
    output_core_index: int
    splice_loss: float


class SpliceMatrixRead(BaseModel):
    location_node: NodeRead
    cables: list[CableRead]
    cores: list[CoreRead]
    connections: list[MatrixConnectionRead]


class TraceHopRead(BaseModel):
    sequence: int
    connection_id: UUID
    location_node_id: UUID | None = None
    input_cable_id: UUID
    input_core_id: UUID
    input_core_index: int
    output_cable_id: UUID
    output_core_id: UUID
    output_core_index: int
    splice_loss: float


class FiberTraceRead(BaseModel):
    start_core_id: UUID
    hops: list[TraceHopRead]
    total_hops: int
    total_loss_db: float
    truncated: bool
    loop_detected: bool


class NearbyNodeRead(BaseModel):
    node: NodeRead
    distance_km: float
