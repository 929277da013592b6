import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from spectra.db import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class NodeType(enum.Enum):
    OLT = "OLT"
    ODC = "ODC"
    ODP = "ODP"
    CLOSURE = "CLOSURE"
    POLE = "POLE"
    CUSTOMER = "CUSTOMER"


class AssetStatus(enum.Enum):
    ACTIVE = "ACTIVE"
    MAINTENANCE = "MAINTENANCE"
    PLAN = "PLAN"
    INACTIVE = "INACTIVE"


class CableType(enum.Enum):
    ADSS = "ADSS"
    DUCT = "DUCT"
    DROP = "DROP"


class CoreStatus(enum.Enum):
    VACANT = "VACANT"
    USED = "USED"
    RESERVED = "RESERVED"
    DAMAGED = "DAMAGED"


# Statuses owned by field crews / provisioning; splicing never overrides them.
EXTERNAL_CORE_STATUSES = frozenset({CoreStatus.RESERVED, CoreStatus.DAMAGED})

SUPPORTED_CORE_COUNTS = (1, 2, 4, 6, 8, 12, 24, 48, 72, 96, 144, 288)


class Node(Base):
    __tablename__ = "nodes"
    __table_args__ = (
        CheckConstraint("latitude >= -90 AND latitude <= 90", name="ck_nodes_latitude"),
        CheckConstraint("longitude >= -180 AND longitude <= 180", name="ck_nodes_longitude"),
        CheckConstraint("used_ports <= capacity_ports", name="ck_nodes_port_usage"),
        Index("ix_nodes_type_status", "type", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    type: Mapped[NodeType] = mapped_column(Enum(NodeType), nullable=False)
    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    longitude: Mapped[float] = mapped_column(Float, nullable=False)
    address: Mapped[str | None] = mapped_column(Text)
    capacity_ports: Mapped[int] = mapped_column(Integer, default=8, nullable=False)
    used_ports: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    model: Mapped[str | None] = mapped_column(String(120))
    status: Mapped[AssetStatus] = mapped_column(
        Enum(AssetStatus), default=AssetStatus.ACTIVE, nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    connections = relationship("Connection", back_populates="location_node")


class Cable(Base):
    __tablename__ = "cables"
    __table_args__ = (
        CheckConstraint("core_count >= 1", name="ck_cables_core_count"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str | None] = mapped_column(String(160))
    type: Mapped[CableType] = mapped_column(Enum(CableType), nullable=False)
    core_count: Mapped[int] = mapped_column(Integer, nullable=False)
    length_meter: Mapped[float | None] = mapped_column(Float)
    origin_node_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("nodes.id", ondelete="SET NULL"), index=True
    )
    dest_node_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("nodes.id", ondelete="SET NULL"), index=True
    )
    # [[lng, lat], ...]
    path_coordinates: Mapped[list | None] = mapped_column(JSON)
    color_hex: Mapped[str] = mapped_column(String(7), default="#000000", nullable=False)
    status: Mapped[AssetStatus] = mapped_column(
        Enum(AssetStatus), default=AssetStatus.ACTIVE, nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    origin_node = relationship("Node", foreign_keys=[origin_node_id])
    dest_node = relationship("Node", foreign_keys=[dest_node_id])
    cores = relationship(
        "Core",
        back_populates="cable",
        cascade="all, delete-orphan",
        order_by="Core.core_index",
    )


class Core(Base):
    __tablename__ = "cores"
    __table_args__ = (
        UniqueConstraint("cable_id", "core_index", name="uq_cores_cable_index"),
        CheckConstraint("core_index >= 1", name="ck_cores_core_index"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    cable_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("cables.id", ondelete="CASCADE"), nullable=False, index=True
    )
    core_index: Mapped[int] = mapped_column(Integer, nullable=False)
    tube_color: Mapped[str | None] = mapped_column(String(20))
    core_color: Mapped[str | None] = mapped_column(String(20))
    status: Mapped[CoreStatus] = mapped_column(
        Enum(CoreStatus), default=CoreStatus.VACANT, nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    cable = relationship("Cable", back_populates="cores")


class Connection(Base):
    """A splice joining one core (input) to another core (output)."""

    __tablename__ = "connections"
    __table_args__ = (
        # One splice per role per core. A core may still be the output of one
        # connection and the input of another (through-splice).
        UniqueConstraint("input_core_id", name="uq_connections_input_core"),
        UniqueConstraint("output_core_id", name="uq_connections_output_core"),
        CheckConstraint("input_core_id <> output_core_id", name="ck_connections_distinct_cores"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    location_node_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("nodes.id", ondelete="CASCADE"), index=True
    )
    input_cable_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("cables.id", ondelete="CASCADE"), nullable=False, index=True
    )
    input_core_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("cores.id", ondelete="CASCADE"), nullable=False
    )
    output_cable_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("cables.id", ondelete="CASCADE"), nullable=False, index=True
    )
    output_core_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("cores.id", ondelete="CASCADE"), nullable=False
    )
    splice_loss: Mapped[float] = mapped_column(Float, default=0.1, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    location_node = relationship("Node", back_populates="connections")
    input_core = relationship("Core", foreign_keys=[input_core_id])
    output_core = relationship("Core", foreign_keys=[output_core_id])
