import os
import sys
from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATA_DIR", str(ROOT / "data"))

from app.core.constants import RecordStatus
from app.core.errors import ValidationError
from app.crud.collections import write_collections
from app.db.session import Base
from app.services.reporting import (
    CSV_HEADERS,
    build_report_rows,
    filter_report_rows,
    render_report_csv,
    resolve_date_range,
    summarize_reports,
)

# Ensure models are registered so metadata tables are created
from app.models import collection as collection_model  # noqa: F401


@pytest.fixture()
def db_session():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False})
    TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def ledger(db_session):
    write_collections(
        db_session,
        {
            "inward": [
                {"id": 1, "jobId": "JOB-0001", "date": "2024-01-02", "customerName": "Anil", "phoneNumber": "9000000001", "estimatedAmount": 500},
                {"id": 2, "jobId": "JOB-0002", "date": "2024-01-10", "customerName": "Bina", "estimatedAmount": 800},
                {"id": 3, "jobId": "JOB-0003", "date": "2024-02-01", "customerName": "Chetan"},
                {"id": 4, "jobId": "JOB-0004", "date": "2024-02-03", "customerName": "Divya", "estimatedAmount": 300},
            ],
            "outward": [
                {"id": 1, "jobId": "JOB-0001", "date": "2024-01-05", "deliveredTo": "Anil", "deliveryMode": "In Person",
                 "estimatedAmount": 1234.5, "isCompleted": True, "completedDate": "2024-01-05"},
                {"id": 2, "jobId": "JOB-0002", "date": "2024-01-12", "deliveredTo": "Courier desk", "deliveryMode": "Courier"},
                {"id": 3, "jobId": "JOB-0004", "date": "2024-02-05", "deliveredTo": "Divya", "deliveryMode": "Post",
                 "isCompleted": True, "completedDate": "2024-02-06"},
            ],
            "hardDisk": [
                {"id": 1, "jobId": "JOB-0001", "deviceInfo": "Seagate 2TB", "serialNumber": "ZFL1"},
            ],
        },
    )
    return db_session


def test_rows_cover_every_job_once(ledger):
    rows = {row.job_id: row for row in build_report_rows(ledger)}

    assert list(rows) == ["JOB-0001", "JOB-0002", "JOB-0003", "JOB-0004"]
    assert rows["JOB-0001"].status is RecordStatus.COMPLETED
    assert rows["JOB-0001"].estimated_amount == 1234.5
    assert rows["JOB-0001"].device_info == "Seagate 2TB"
    assert rows["JOB-0002"].status is RecordStatus.IN_PROGRESS
    assert rows["JOB-0002"].customer_name == "Bina"
    assert rows["JOB-0003"].status is RecordStatus.PENDING
    assert rows["JOB-0003"].date == "2024-02-01"


def test_filters_combine(ledger):
    rows = build_report_rows(ledger)

    assert [r.job_id for r in filter_report_rows(rows, status="completed")] == ["JOB-0001", "JOB-0004"]
    assert [r.job_id for r in filter_report_rows(rows, status="In Progress")] == ["JOB-0002"]
    assert [r.job_id for r in filter_report_rows(rows, delivery_mode="Courier")] == ["JOB-0002"]
    assert [r.job_id for r in filter_report_rows(rows, search="seagate")] == ["JOB-0001"]
    assert [r.job_id for r in filter_report_rows(rows, date_from="2024-02-01", date_to="2024-02-05")] == [
        "JOB-0003",
        "JOB-0004",
    ]
    with pytest.raises(ValidationError):
        filter_report_rows(rows, status="lost")


def test_summary_counts_and_revenue(ledger):
    summary = summarize_reports(build_report_rows(ledger))

    assert summary.total_jobs == 4
    assert (summary.pending, summary.in_progress, summary.completed) == (1, 1, 2)
    assert summary.delivered_revenue == Decimal("1534.50")
    assert summary.average_delivered_amount == Decimal("767.25")


def test_date_ranges():
    today = date(2024, 5, 16)  # a Thursday
    assert resolve_date_range("today", today).date_from == "2024-05-16"
    assert resolve_date_range("week", today).date_from == "2024-05-12"
    assert resolve_date_range("month", today).date_from == "2024-05-01"
    assert resolve_date_range("quarter", today).date_from == "2024-04-01"
    assert resolve_date_range("year", today).date_from == "2024-01-01"
    assert resolve_date_range("all", today).date_from is None
    custom = resolve_date_range("custom", today, date_from="2024-01-01", date_to="2024-01-31")
    assert (custom.date_from, custom.date_to) == ("2024-01-01", "2024-01-31")
    with pytest.raises(ValidationError):
        resolve_date_range("fortnight", today)


def test_csv_quotes_cells_and_formats_values(ledger):
    text = render_report_csv(build_report_rows(ledger))
    lines = text.splitlines()

    assert lines[0] == ",".join(f'"{header}"' for header in CSV_HEADERS)
    assert lines[1] == (
        '"JOB-0001","Anil","9000000001","Seagate 2TB","ZFL1","02/01/2024","05/01/2024",'
        '"Anil","In Person","Completed","05/01/2024","₹1,234.50"'
    )
    assert lines[3].endswith('"Pending","N/A","N/A"')
