from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    computed_field,
    field_validator,
    model_validator,
)

from spectra.models.customer import CustomerStatus, rx_power_status
from spectra.schemas.network import reject_explicit_nulls


class CustomerBase(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    node_id: UUID | None = None
    ont_sn: str | None = Field(default=None, max_length=64)
    phone: str | None = Field(default=None, max_length=40)
    email: EmailStr | None = None
    current_status: CustomerStatus = CustomerStatus.OFFLINE
    last_rx_power: float | None = None
    subscription_type: str | None = Field(default=None, max_length=80)

    @field_validator("ont_sn")
    @classmethod
    def _normalize_ont_sn(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip()
        return value or None


class CustomerCreate(CustomerBase):
    model_config = ConfigDict(extra="forbid")


class CustomerUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(default=None, min_length=1, max_length=100)
    node_id: UUID | None = None
    ont_sn: str | None = Field(default=None, max_length=64)
    phone: str | None = Field(default=None, max_length=40)
    email: EmailStr | None = None
    current_status: CustomerStatus | None = None
    last_rx_power: float | None = None
    subscription_type: str | None = Field(default=None, max_length=80)

    @model_validator(mode="after")
    def _required_columns(self) -> CustomerUpdate:
        reject_explicit_nulls(self, ("name", "current_status"))
        return self


class CustomerRead(CustomerBase):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    email: str | None = None
    created_at: datetime
    updated_at: datetime

    @computed_field
    @property
    def rx_status(self) -> str | None:
        return rx_power_status(self.last_rx_power)


class CustomerStatusUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    status: CustomerStatus
    rx_power: float | None = None


class BulkStatusItem(BaseModel):
    ont_sn: str = Field(min_length=1, max_length=64)
    status: CustomerStatus
    rx_power: float | None = None


class BulkStatusUpdate(BaseModel):
    updates: list[BulkStatusItem] = Field(min_length=1, max_length=1000)


class BulkStatusResult(BaseModel):
    updated: int
    not_found: list[str]
