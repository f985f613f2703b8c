import os
import sys
from pathlib import Path

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATA_DIR", str(ROOT / "data"))

from app.core.errors import InvalidStateError, ValidationError
from app.crud.collections import write_collections
from app.crud.inward import create_inward, issue_estimate
from app.crud.outward import create_outward
from app.db.session import Base
from app.services.identifiers import next_estimate_number, next_job_id, sequence_number
from app.services.delivery import mark_delivered
from app.schemas.records import DeliveryDetails

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


def _intake(db, **overrides):
    payload = {"customer_name": "Asha", "date": "2024-01-02"}
    payload.update(overrides)
    return create_inward(db, payload)


def test_sequence_number_reads_trailing_digits():
    assert sequence_number("JOB-0042") == 42
    assert sequence_number("legacy") is None
    assert sequence_number(None) is None


def test_empty_ledger_starts_at_configured_base(db_session):
    assert next_job_id(db_session) == "JOB-0001"
    assert next_estimate_number(db_session) == "EST-0001"


def test_next_job_id_is_a_peek(db_session):
    assert next_job_id(db_session) == next_job_id(db_session) == "JOB-0001"
    record = _intake(db_session)
    assert record.job_id == "JOB-0001"
    assert next_job_id(db_session) == "JOB-0002"


def test_supplied_job_id_must_be_unique_and_well_formed(db_session):
    _intake(db_session, job_id="job-0007")
    assert next_job_id(db_session) == "JOB-0008"

    with pytest.raises(ValidationError):
        _intake(db_session, job_id="JOB-0007")
    with pytest.raises(ValidationError):
        _intake(db_session, job_id="REPAIR-1")


def test_import_with_higher_numbers_moves_generator_forward(db_session):
    write_collections(
        db_session,
        {
            "inward": [
                {"id": 1, "jobId": "JOB-0003", "date": "2024-01-01", "customerName": "A"},
                {"id": 2, "jobId": "JOB-0120", "date": "2024-01-02", "customerName": "B"},
            ],
            "outward": [{"id": 1, "jobId": "JOB-0150", "date": "2024-01-03"}],
        },
    )
    assert next_job_id(db_session) == "JOB-0151"


def test_counter_keeps_numbers_from_being_reused(db_session):
    write_collections(db_session, {"counters": [{"name": "jobId", "value": 40}]})
    assert _intake(db_session).job_id == "JOB-0041"


def test_issue_estimate_is_idempotent_and_sequential(db_session):
    first = _intake(db_session)
    second = _intake(db_session)

    assert issue_estimate(db_session, first.job_id).estimate_number == "EST-0001"
    assert issue_estimate(db_session, first.job_id).estimate_number == "EST-0001"
    assert issue_estimate(db_session, second.job_id).estimate_number == "EST-0002"
    assert next_estimate_number(db_session) == "EST-0003"


def test_estimate_refused_after_delivery(db_session):
    record = _intake(db_session)
    create_outward(db_session, {"job_id": record.job_id})
    mark_delivered(db_session, record.job_id, DeliveryDetails(delivered_to="Asha", completed_date="2024-01-09"))

    with pytest.raises(InvalidStateError):
        issue_estimate(db_session, record.job_id)


def test_supplied_job_id_below_high_water_is_refused(db_session):
    write_collections(db_session, {"counters": [{"name": "jobId", "value": 40}]})
    with pytest.raises(ValidationError):
        _intake(db_session, job_id="JOB-0005")
    assert _intake(db_session, job_id="JOB-0041").job_id == "JOB-0041"


def test_supplied_job_id_taken_by_outward_record_is_refused(db_session):
    write_collections(db_session, {"outward": [{"id": 1, "jobId": "JOB-0003", "date": "2024-01-03"}]})
    with pytest.raises(ValidationError):
        _intake(db_session, job_id="JOB-0003")
    assert next_job_id(db_session) == "JOB-0004"
