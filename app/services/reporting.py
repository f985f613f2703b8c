from __future__ import annotations

import csv
import io
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, Sequence

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.constants import STATUS_LABELS, RecordStatus, normalize_status
from ..core.errors import ValidationError
from ..core.money import format_currency, quantize_currency, to_decimal
from ..crud.ledger import LedgerSnapshot, load_snapshot
from ..schemas.records import InwardRecord
from ..schemas.reports import DateRange, ReportRow, ReportSummary
from .dates import format_day, local_today, parse_day
from .status import build_master_record

DATE_RANGE_KINDS = ("today", "week", "month", "quarter", "year", "all", "custom")

CSV_HEADERS = (
    "Job ID",
    "Customer Name",
    "Phone",
    "Device Info",
    "Serial Number",
    "Inward Date",
    "Outward Date",
    "Delivered To",
    "Delivery Mode",
    "Status",
    "Completed Date",
    "Estimated Amount",
)


def _report_row(snapshot: LedgerSnapshot, inward: InwardRecord) -> ReportRow:
    job_id = inward.job_id
    outward = snapshot.outward_for(job_id)
    master = build_master_record(job_id, inward, outward, snapshot.override_for(job_id))
    disks = snapshot.hard_disks_for(job_id)
    disk = disks[0] if disks else None

    customer = (outward.customer_name if outward else "") or inward.customer_name
    phone = (outward.phone_number if outward else "") or inward.phone_number
    inward_date = inward.date
    outward_date = outward.date if outward else None
    return ReportRow(
        job_id=job_id,
        customer_name=customer,
        phone_number=phone,
        device_info=(disk.device_info or None) if disk else None,
        serial_number=(disk.serial_number or None) if disk else None,
        inward_date=inward_date,
        outward_date=outward_date,
        date=outward_date or inward_date,
        delivered_to=outward.delivered_to if outward else "",
        delivery_mode=outward.delivery_mode.value if outward and outward.delivery_mode else None,
        status=master.status,
        completed_date=master.completed_date,
        estimated_amount=master.estimated_amount,
    )


def report_rows_from(snapshot: LedgerSnapshot) -> list[ReportRow]:
    return [_report_row(snapshot, inward) for inward in snapshot.inward]


def build_report_rows(db: Session) -> list[ReportRow]:
    """One row per job, read from a single snapshot of the ledger."""

    return report_rows_from(load_snapshot(db))


def resolve_date_range(
    kind: str,
    today: date | None = None,
    date_from: str | None = None,
    date_to: str | None = None,
) -> DateRange:
    """Translate a named period into inclusive ISO bounds ending today.

    Weeks start on Sunday. ``custom`` passes ``date_from``/``date_to`` through.
    """

    kind = (kind or "all").strip().lower()
    if kind not in DATE_RANGE_KINDS:
        raise ValidationError(f"Unknown date range {kind!r}", details={"allowed": list(DATE_RANGE_KINDS)})
    if kind == "all":
        return DateRange(kind=kind)
    if kind == "custom":
        for label, value in (("dateFrom", date_from), ("dateTo", date_to)):
            if value and parse_day(value) is None:
                raise ValidationError(f"{label} must be an ISO date")
        return DateRange(kind=kind, date_from=date_from or None, date_to=date_to or None)

    today = today or local_today()
    if kind == "today":
        start = today
    elif kind == "week":
        start = today - timedelta(days=(today.weekday() + 1) % 7)
    elif kind == "month":
        start = today.replace(day=1)
    elif kind == "quarter":
        start = date(today.year, ((today.month - 1) // 3) * 3 + 1, 1)
    else:
        start = date(today.year, 1, 1)
    return DateRange(kind=kind, date_from=start.isoformat(), date_to=today.isoformat())


def _normalize_filter(value: str | None) -> str | None:
    if value is None:
        return None
    cleaned = value.strip()
    if not cleaned or cleaned.lower() == "all":
        return None
    return cleaned


def _in_range(row: ReportRow, start: date | None, end: date | None) -> bool:
    if start is None and end is None:
        return True
    day = parse_day(row.date)
    if day is None:
        return False
    if start is not None and day < start:
        return False
    if end is not None and day > end:
        return False
    return True


def filter_report_rows(
    rows: Iterable[ReportRow],
    search: str | None = None,
    status: str | None = None,
    delivery_mode: str | None = None,
    date_from: str | None = None,
    date_to: str | None = None,
) -> list[ReportRow]:
    term = (search or "").strip().lower()
    try:
        wanted = normalize_status(_normalize_filter(status))
    except ValueError as exc:
        raise ValidationError(f"Unknown status {status!r}") from exc
    delivery_mode = _normalize_filter(delivery_mode)
    start = parse_day(date_from)
    end = parse_day(date_to)

    filtered: list[ReportRow] = []
    for row in rows:
        if term and not (
            term in row.job_id.lower()
            or term in row.customer_name.lower()
            or term in row.delivered_to.lower()
            or term in (row.device_info or "").lower()
            or term in row.phone_number
        ):
            continue
        if wanted is not None and row.status is not wanted:
            continue
        if delivery_mode and row.delivery_mode != delivery_mode:
            continue
        if not _in_range(row, start, end):
            continue
        filtered.append(row)
    return filtered


def summarize_reports(rows: Sequence[ReportRow], date_range: DateRange | None = None) -> ReportSummary:
    """Counts per status plus revenue from completed jobs that carry an amount."""

    counts = {status: 0 for status in RecordStatus}
    revenue = Decimal("0")
    priced = 0
    for row in rows:
        counts[row.status] += 1
        if row.status is RecordStatus.COMPLETED:
            amount = to_decimal(row.estimated_amount)
            if amount:
                revenue += amount
                priced += 1

    average = revenue / Decimal(priced) if priced else Decimal("0")
    return ReportSummary(
        total_jobs=len(rows),
        pending=counts[RecordStatus.PENDING],
        in_progress=counts[RecordStatus.IN_PROGRESS],
        completed=counts[RecordStatus.COMPLETED],
        delivered_revenue=quantize_currency(revenue),
        average_delivered_amount=quantize_currency(average),
        date_range=date_range,
    )


def _text(value: str | None) -> str:
    return value if value else "N/A"


def render_report_csv(rows: Iterable[ReportRow]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for row in rows:
        writer.writerow(
            [
                row.job_id,
                row.customer_name,
                row.phone_number,
                _text(row.device_info),
                _text(row.serial_number),
                format_day(row.inward_date),
                format_day(row.outward_date),
                _text(row.delivered_to),
                _text(row.delivery_mode),
                STATUS_LABELS[row.status],
                format_day(row.completed_date),
                format_currency(row.estimated_amount, settings.CURRENCY_SYMBOL),
            ]
        )
    return buffer.getvalue()


def report_filename(today: date | None = None) -> str:
    return f"delivery-reports-{(today or local_today()).isoformat()}.csv"


__all__ = [
    "CSV_HEADERS",
    "DATE_RANGE_KINDS",
    "build_report_rows",
    "filter_report_rows",
    "render_report_csv",
    "report_filename",
    "report_rows_from",
    "resolve_date_range",
    "summarize_reports",
]
