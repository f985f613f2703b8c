"""Pydantic models for ledger records and their API payloads.

Attributes are snake_case in Python and camelCase on the wire (``jobId``,
``customerName``...), which is also the layout of stored collections and of
exported snapshots.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from ..core.constants import DeliveryMode, RecordStatus, SNAPSHOT_VERSION
from ..core.money import normalize_amount


def _check_iso_date(value: str) -> str:
    cleaned = value.strip()
    try:
        date.fromisoformat(cleaned)
    except ValueError:
        try:
            datetime.fromisoformat(cleaned.replace("Z", "+00:00"))
        except ValueError as exc:
            raise ValueError(f"expected an ISO date, got {value!r}") from exc
    return cleaned


def _optional_date(value: object) -> object:
    if value is None:
        return None
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, str):
        if not value.strip():
            return None
        return _check_iso_date(value)
    return value


def _required_date(value: object) -> object:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, str):
        if not value.strip():
            raise ValueError("date is required")
        return _check_iso_date(value)
    return value


def _optional_delivery_mode(value: object) -> object:
    if isinstance(value, str) and not value.strip():
        return None
    return value


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        extra="ignore",
    )


# ---------- Stored records ----------


class InwardRecord(CamelModel):
    id: int
    job_id: str = Field(min_length=1)
    date: str
    customer_name: str = Field(min_length=1)
    phone_number: str = ""
    received_from: str = ""
    notes: str = ""
    estimated_amount: Optional[float] = Field(default=None, ge=0)
    estimated_delivery_date: Optional[str] = None
    is_delivered: bool = False
    delivery_date: Optional[str] = None
    estimate_number: Optional[str] = None

    check_amount = field_validator("estimated_amount", mode="before")(normalize_amount)
    check_date = field_validator("date", mode="before")(_required_date)
    check_dates = field_validator("estimated_delivery_date", "delivery_date", mode="before")(_optional_date)


class OutwardRecord(CamelModel):
    id: int
    job_id: str = Field(min_length=1)
    date: str
    customer_name: str = ""
    phone_number: str = ""
    delivered_to: str = ""
    delivery_mode: Optional[DeliveryMode] = None
    notes: str = ""
    estimated_amount: Optional[float] = Field(default=None, ge=0)
    is_completed: bool = False
    completed_date: Optional[str] = None

    check_amount = field_validator("estimated_amount", mode="before")(normalize_amount)
    check_date = field_validator("date", mode="before")(_required_date)
    check_completed = field_validator("completed_date", mode="before")(_optional_date)
    check_mode = field_validator("delivery_mode", mode="before")(_optional_delivery_mode)


class HardDiskRecord(CamelModel):
    id: int
    job_id: str = Field(min_length=1)
    date: Optional[str] = None
    device_info: str = ""
    serial_number: str = ""
    capacity: str = ""
    notes: str = ""

    check_date = field_validator("date", mode="before")(_optional_date)


class CounterEntry(CamelModel):
    """Highest sequence number ever issued in one identifier namespace."""

    name: str = Field(min_length=1)
    value: int = Field(ge=0)


class StatusOverride(CamelModel):
    job_id: str = Field(min_length=1)
    status: RecordStatus
    changed_at: str
    note: Optional[str] = None


# ---------- Payloads ----------


class InwardCreate(CamelModel):
    job_id: Optional[str] = None
    date: Optional[str] = None
    customer_name: Optional[str] = None
    phone_number: Optional[str] = None
    received_from: Optional[str] = None
    notes: Optional[str] = None
    estimated_amount: Optional[float] = None
    estimated_delivery_date: Optional[str] = None

    check_amount = field_validator("estimated_amount", mode="before")(normalize_amount)


class InwardUpdate(CamelModel):
    date: Optional[str] = None
    customer_name: Optional[str] = None
    phone_number: Optional[str] = None
    received_from: Optional[str] = None
    notes: Optional[str] = None
    estimated_amount: Optional[float] = None
    estimated_delivery_date: Optional[str] = None

    check_amount = field_validator("estimated_amount", mode="before")(normalize_amount)


class OutwardCreate(CamelModel):
    job_id: str
    date: Optional[str] = None
    customer_name: Optional[str] = None
    phone_number: Optional[str] = None
    delivered_to: Optional[str] = None
    delivery_mode: Optional[DeliveryMode] = None
    notes: Optional[str] = None
    estimated_amount: Optional[float] = None

    check_amount = field_validator("estimated_amount", mode="before")(normalize_amount)


class OutwardUpdate(CamelModel):
    date: Optional[str] = None
    customer_name: Optional[str] = None
    phone_number: Optional[str] = None
    delivered_to: Optional[str] = None
    delivery_mode: Optional[DeliveryMode] = None
    notes: Optional[str] = None
    estimated_amount: Optional[float] = None

    check_amount = field_validator("estimated_amount", mode="before")(normalize_amount)


class HardDiskCreate(CamelModel):
    job_id: str
    date: Optional[str] = None
    device_info: Optional[str] = None
    serial_number: Optional[str] = None
    capacity: Optional[str] = None
    notes: Optional[str] = None


class HardDiskUpdate(CamelModel):
    date: Optional[str] = None
    device_info: Optional[str] = None
    serial_number: Optional[str] = None
    capacity: Optional[str] = None
    notes: Optional[str] = None


class DeliveryDetails(CamelModel):
    """Input to the delivery workflow; folded into the outward record on commit."""

    delivered_to: str = Field(min_length=1)
    completed_date: str
    delivery_mode: Optional[DeliveryMode] = None
    notes: Optional[str] = None
    estimated_amount: Optional[float] = Field(default=None, ge=0)

    check_amount = field_validator("estimated_amount", mode="before")(normalize_amount)
    check_date = field_validator("completed_date", mode="before")(_required_date)
    check_mode = field_validator("delivery_mode", mode="before")(_optional_delivery_mode)

    @field_validator("delivered_to")
    @classmethod
    def strip_delivered_to(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("deliveredTo is required")
        return cleaned


class StatusOverrideRequest(CamelModel):
    status: RecordStatus
    note: Optional[str] = None


# ---------- Derived views ----------


class MasterRecord(CamelModel):
    job_id: str
    status: RecordStatus
    derived_status: RecordStatus
    overridden: bool = False
    estimated_amount: Optional[float] = None
    completed_date: Optional[str] = None


class NextIdentifier(CamelModel):
    value: str


class Snapshot(CamelModel):
    """Whole-database document used for export and import."""

    version: int = SNAPSHOT_VERSION
    inward: list[InwardRecord] = Field(default_factory=list)
    outward: list[OutwardRecord] = Field(default_factory=list)
    hard_disk: list[HardDiskRecord] = Field(default_factory=list)
    counters: list[CounterEntry] = Field(default_factory=list)
    status_overrides: list[StatusOverride] = Field(default_factory=list)
