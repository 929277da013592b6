import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, Enum, Float, ForeignKey, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from spectra.db import Base


class CustomerStatus(enum.Enum):
    ONLINE = "ONLINE"
    OFFLINE = "OFFLINE"
    LOS = "LOS"
    POWER_OFF = "POWER_OFF"


RX_POWER_GOOD_DBM = -25.0
RX_POWER_WARNING_DBM = -27.0


def rx_power_status(rx_power: float | None) -> str | None:
    """Classify received optical power (dBm): GOOD, WARNING or CRITICAL."""
    if rx_power is None:
        return None
    if rx_power >= RX_POWER_GOOD_DBM:
        return "GOOD"
    if rx_power >= RX_POWER_WARNING_DBM:
        return "WARNING"
    return "CRITICAL"


class Customer(Base):
    __tablename__ = "customers"
    __table_args__ = (UniqueConstraint("ont_sn", name="uq_customers_ont_sn"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    node_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("nodes.id", ondelete="SET NULL"), index=True
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    ont_sn: Mapped[str | None] = mapped_column(String(64))
    phone: Mapped[str | None] = mapped_column(String(40))
    email: Mapped[str | None] = mapped_column(String(255))
    current_status: Mapped[CustomerStatus] = mapped_column(
        Enum(CustomerStatus), default=CustomerStatus.OFFLINE, nullable=False, index=True
    )
    last_rx_power: Mapped[float | None] = mapped_column(Float)
    subscription_type: Mapped[str | None] = mapped_column(String(80))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    node = relationship("Node")
