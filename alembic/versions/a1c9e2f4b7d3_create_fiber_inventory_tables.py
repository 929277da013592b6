"""Create fiber inventory tables.

Revision ID: a1c9e2f4b7d3
Revises:
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "a1c9e2f4b7d3"
down_revision = None
branch_labels = None
depends_on = None

ENUMS = {
    "nodetype": ("OLT", "ODC", "ODP", "CLOSURE", "POLE", "CUSTOMER"),
    "assetstatus": ("ACTIVE", "MAINTENANCE", "PLAN", "INACTIVE"),
    "cabletype": ("ADSS", "DUCT", "DROP"),
    "corestatus": ("VACANT", "USED", "RESERVED", "DAMAGED"),
    "customerstatus": ("ONLINE", "OFFLINE", "LOS", "POWER_OFF"),
}


def _enum(name: str) -> postgresql.ENUM:
    return postgresql.ENUM(*ENUMS[name], name=name, create_type=False)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    bind = op.get_bind()
    for name, values in ENUMS.items():
        postgresql.ENUM(*values, name=name).create(bind, checkfirst=True)

    op.create_table(
        "nodes",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("type", _enum("nodetype"), nullable=False),
        sa.Column("latitude", sa.Float(), nullable=False),
        sa.Column("longitude", sa.Float(), nullable=False),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("capacity_ports", sa.Integer(), nullable=False, server_default="8"),
        sa.Column("used_ports", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("model", sa.String(120), nullable=True),
        sa.Column("status", _enum("assetstatus"), nullable=False, server_default="ACTIVE"),
        *_timestamps(),
        sa.CheckConstraint("latitude >= -90 AND latitude <= 90", name="ck_nodes_latitude"),
        sa.CheckConstraint(
            "longitude >= -180 AND longitude <= 180", name="ck_nodes_longitude"
        ),
        sa.CheckConstraint("used_ports <= capacity_ports", name="ck_nodes_port_usage"),
    )
    op.create_index("ix_nodes_type_status", "nodes", ["type", "status"])

    op.create_table(
        "cables",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(160), nullable=True),
        sa.Column("type", _enum("cabletype"), nullable=False),
        sa.Column("core_count", sa.Integer(), nullable=False),
        sa.Column("length_meter", sa.Float(), nullable=True),
        sa.Column(
            "origin_node_id",
            sa.Uuid(),
            sa.ForeignKey("nodes.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "dest_node_id",
            sa.Uuid(),
            sa.ForeignKey("nodes.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("path_coordinates", sa.JSON(), nullable=True),
        sa.Column("color_hex", sa.String(7), nullable=False, server_default="#000000"),
        sa.Column("status", _enum("assetstatus"), nullable=False, server_default="ACTIVE"),
        *_timestamps(),
        sa.CheckConstraint("core_count >= 1", name="ck_cables_core_count"),
    )
    op.create_index("ix_cables_origin_node_id", "cables", ["origin_node_id"])
    op.create_index("ix_cables_dest_node_id", "cables", ["dest_node_id"])

    op.create_table(
        "cores",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "cable_id",
            sa.Uuid(),
            sa.ForeignKey("cables.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("core_index", sa.Integer(), nullable=False),
        sa.Column("tube_color", sa.String(20), nullable=True),
        sa.Column("core_color", sa.String(20), nullable=True),
        sa.Column("status", _enum("corestatus"), nullable=False, server_default="VACANT"),
        *_timestamps(),
        sa.UniqueConstraint("cable_id", "core_index", name="uq_cores_cable_index"),
        sa.CheckConstraint("core_index >= 1", name="ck_cores_core_index"),
    )
    op.create_index("ix_cores_cable_id", "cores", ["cable_id"])

    op.create_table(
        "connections",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "location_node_id",
            sa.Uuid(),
            sa.ForeignKey("nodes.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column(
            "input_cable_id",
            sa.Uuid(),
            sa.ForeignKey("cables.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "input_core_id",
            sa.Uuid(),
            sa.ForeignKey("cores.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "output_cable_id",
            sa.Uuid(),
            sa.ForeignKey("cables.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "output_core_id",
            sa.Uuid(),
            sa.ForeignKey("cores.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("splice_loss", sa.Float(), nullable=False, server_default="0.1"),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("input_core_id", name="uq_connections_input_core"),
        sa.UniqueConstraint("output_core_id", name="uq_connections_output_core"),
        sa.CheckConstraint(
            "input_core_id <> output_core_id", name="ck_connections_distinct_cores"
        ),
    )
    op.create_index("ix_connections_location_node_id", "connections", ["location_node_id"])
    op.create_index("ix_connections_input_cable_id", "connections", ["input_cable_id"])
    op.create_index("ix_connections_output_cable_id", "connections", ["output_cable_id"])

    op.create_table(
        "customers",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "node_id",
            sa.Uuid(),
            sa.ForeignKey("nodes.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("ont_sn", sa.String(64), nullable=True),
        sa.Column("phone", sa.String(40), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column(
            "current_status",
            _enum("customerstatus"),
            nullable=False,
            server_default="OFFLINE",
        ),
        sa.Column("last_rx_power", sa.Float(), nullable=True),
        sa.Column("subscription_type", sa.String(80), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("ont_sn", name="uq_customers_ont_sn"),
    )
    op.create_index("ix_customers_node_id", "customers", ["node_id"])
    op.create_index("ix_customers_current_status", "customers", ["current_status"])


def downgrade() -> None:
    op.drop_table("customers")
    op.drop_table("connections")
    op.drop_table("cores")
    op.drop_table("cables")
    op.drop_table("nodes")
    bind = op.get_bind()
    for name in reversed(list(ENUMS)):
        postgresql.ENUM(name=name).drop(bind, checkfirst=True)
