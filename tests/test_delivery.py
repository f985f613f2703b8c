import os
import sys
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATA_DIR", str(ROOT / "data"))

from app.core.constants import DeliveryMode, RecordStatus
from app.core.errors import InvalidStateError, NotFoundError, StorageError
from app.crud.collections import write_collections
from app.crud.ledger import load_snapshot
from app.db.session import Base
from app.schemas.records import DeliveryDetails
from app.services.delivery import mark_delivered
from app.services.status import get_master_record_data

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


def _seed(db, outward=True):
    collections = {
        "inward": [
            {"id": 1, "jobId": "JOB-0001", "date": "2024-01-01", "customerName": "Nikhil", "estimatedAmount": 500}
        ]
    }
    if outward:
        collections["outward"] = [
            {
                "id": 1,
                "jobId": "JOB-0001",
                "date": "2024-01-04",
                "customerName": "Nikhil",
                "notes": "Data copied to new drive",
                "estimatedAmount": 600,
                "isCompleted": False,
            }
        ]
    write_collections(db, collections)


def test_pending_in_progress_completed_walkthrough(db_session):
    write_collections(
        db_session,
        {"inward": [{"id": 1, "jobId": "JOB-0001", "date": "2024-01-01", "customerName": "Nikhil", "estimatedAmount": 500}]},
    )
    master = get_master_record_data(db_session, "JOB-0001")
    assert (master.status, master.estimated_amount) == (RecordStatus.PENDING, 500)

    _seed(db_session)
    master = get_master_record_data(db_session, "JOB-0001")
    assert (master.status, master.estimated_amount) == (RecordStatus.IN_PROGRESS, 600)

    details = DeliveryDetails(delivered_to="X", completed_date="2024-01-05")
    master = mark_delivered(db_session, "JOB-0001", details)
    assert master.status is RecordStatus.COMPLETED
    assert master.completed_date == "2024-01-05"
    assert get_master_record_data(db_session, "JOB-0001") == master

    with pytest.raises(InvalidStateError):
        mark_delivered(db_session, "JOB-0001", details)


def test_delivery_updates_both_records(db_session):
    _seed(db_session)
    details = DeliveryDetails(
        delivered_to="Nikhil's brother",
        delivery_mode=DeliveryMode.COURIER,
        completed_date="2024-01-06",
        notes="Signed receipt",
        estimated_amount="₹650",
    )

    mark_delivered(db_session, "job-0001", details)

    snapshot = load_snapshot(db_session)
    inward = snapshot.inward_for("JOB-0001")
    outward = snapshot.outward_for("JOB-0001")
    assert inward.is_delivered is True
    assert inward.delivery_date == "2024-01-06"
    assert outward.is_completed is True
    assert outward.delivered_to == "Nikhil's brother"
    assert outward.delivery_mode is DeliveryMode.COURIER
    assert outward.estimated_amount == 650
    assert outward.notes == "Data copied to new drive\nSigned receipt"


def test_second_delivery_changes_nothing(db_session):
    _seed(db_session)
    mark_delivered(db_session, "JOB-0001", DeliveryDetails(delivered_to="X", completed_date="2024-01-05"))
    before = load_snapshot(db_session)

    with pytest.raises(InvalidStateError):
        mark_delivered(db_session, "JOB-0001", DeliveryDetails(delivered_to="Y", completed_date="2024-02-01"))

    assert load_snapshot(db_session) == before


def test_delivery_without_outward_is_not_found(db_session):
    _seed(db_session, outward=False)
    with pytest.raises(NotFoundError):
        mark_delivered(db_session, "JOB-0001", DeliveryDetails(delivered_to="X", completed_date="2024-01-05"))
    assert load_snapshot(db_session).inward_for("JOB-0001").is_delivered is False


def test_storage_failure_leaves_job_awaiting_delivery(db_session, monkeypatch):
    _seed(db_session)

    def boom():
        raise OperationalError("COMMIT", {}, Exception("locked"))

    monkeypatch.setattr(db_session, "commit", boom)
    with pytest.raises(StorageError):
        mark_delivered(db_session, "JOB-0001", DeliveryDetails(delivered_to="X", completed_date="2024-01-05"))
    monkeypatch.undo()

    snapshot = load_snapshot(db_session)
    assert snapshot.outward_for("JOB-0001").is_completed is False
    assert snapshot.inward_for("JOB-0001").is_delivered is False
