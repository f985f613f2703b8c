from __future__ import annotations

from decimal import Decimal
from typing import Optional

from pydantic import Field

from ..core.constants import RecordStatus
from .records import CamelModel


class ReportRow(CamelModel):
    """One job joined across inward, outward, hard disk and master data."""

    job_id: str
    customer_name: str = ""
    phone_number: str = ""
    device_info: Optional[str] = None
    serial_number: Optional[str] = None
    inward_date: Optional[str] = None
    outward_date: Optional[str] = None
    date: Optional[str] = None
    delivered_to: str = ""
    delivery_mode: Optional[str] = None
    status: RecordStatus
    completed_date: Optional[str] = None
    estimated_amount: Optional[float] = None


class DateRange(CamelModel):
    kind: str
    date_from: Optional[str] = None
    date_to: Optional[str] = None


class ReportSummary(CamelModel):
    total_jobs: int = 0
    pending: int = 0
    in_progress: int = 0
    completed: int = 0
    delivered_revenue: Decimal = Field(default=Decimal("0.00"))
    average_delivered_amount: Decimal = Field(default=Decimal("0.00"))
    date_range: Optional[DateRange] = None
