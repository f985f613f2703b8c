"""Per-job status derivation (the "master record").

Status is never stored. It is recomputed from the intake record, the delivery
record and an optional manual override every time it is read:

* no outward record            -> pending
* outward record, not complete -> in progress
* outward record, complete     -> completed

The outward amount, when set, wins over the inward estimate. A manual override
only changes the displayed ``status``; it is ignored once the outward record
is completed and removed by the delivery workflow.
"""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from ..core.constants import COLLECTION_STATUS_OVERRIDES, RecordStatus
from ..core.errors import InvalidStateError, NotFoundError
from ..core.logging import log_event
from ..crud.collections import WRITE_LOCK, write_collections
from ..crud.ledger import LedgerSnapshot, dump_records, load_snapshot, normalize_job_id
from ..schemas.records import InwardRecord, MasterRecord, OutwardRecord, StatusOverride
from .dates import utc_timestamp

logger = logging.getLogger(__name__)


def derived_status(outward: OutwardRecord | None) -> RecordStatus:
    if outward is None:
        return RecordStatus.PENDING
    if outward.is_completed:
        return RecordStatus.COMPLETED
    return RecordStatus.IN_PROGRESS


def effective_amount(inward: InwardRecord | None, outward: OutwardRecord | None) -> float | None:
    if outward is not None and outward.estimated_amount is not None:
        return outward.estimated_amount
    return inward.estimated_amount if inward is not None else None


def build_master_record(
    job_id: str,
    inward: InwardRecord | None,
    outward: OutwardRecord | None,
    override: StatusOverride | None,
) -> MasterRecord:
    derived = derived_status(outward)
    overridden = override is not None and derived is not RecordStatus.COMPLETED
    return MasterRecord(
        job_id=job_id,
        status=override.status if overridden else derived,
        derived_status=derived,
        overridden=overridden,
        estimated_amount=effective_amount(inward, outward),
        completed_date=outward.completed_date if derived is RecordStatus.COMPLETED else None,
    )


def derive_master(snapshot: LedgerSnapshot, job_id: str) -> MasterRecord | None:
    inward = snapshot.inward_for(job_id)
    if inward is None:
        return None
    return build_master_record(inward.job_id, inward, snapshot.outward_for(job_id), snapshot.override_for(job_id))


def derive_all(snapshot: LedgerSnapshot) -> dict[str, MasterRecord]:
    """Master records for every job with an intake record, keyed by normalised job id."""

    return {
        normalize_job_id(inward.job_id): build_master_record(
            inward.job_id,
            inward,
            snapshot.outward_for(inward.job_id),
            snapshot.override_for(inward.job_id),
        )
        for inward in snapshot.inward
    }


def get_master_record_data(db: Session, job_id: str) -> MasterRecord | None:
    return derive_master(load_snapshot(db), job_id)


def set_status_override(db: Session, job_id: str, status: RecordStatus, note: str | None = None) -> MasterRecord:
    with WRITE_LOCK:
        snapshot = load_snapshot(db, strict=True)
        inward = snapshot.inward_for(job_id)
        if inward is None:
            raise NotFoundError(f"No inward record for job {job_id}")
        if derived_status(snapshot.outward_for(job_id)) is RecordStatus.COMPLETED:
            raise InvalidStateError(f"Job {inward.job_id} is completed; its status can no longer be overridden")

        override = StatusOverride(
            job_id=inward.job_id,
            status=status,
            changed_at=utc_timestamp(),
            note=(note or "").strip() or None,
        )
        key = normalize_job_id(job_id)
        overrides = [item for item in snapshot.status_overrides if normalize_job_id(item.job_id) != key]
        overrides.append(override)
        write_collections(db, {COLLECTION_STATUS_OVERRIDES: dump_records(overrides)})
        master = build_master_record(inward.job_id, inward, snapshot.outward_for(job_id), override)
    log_event(logger, "ledger.status.overridden", job_id=inward.job_id, status=status.value)
    return master


def clear_status_override(db: Session, job_id: str) -> MasterRecord:
    """Drop a manual override; clearing a job without one is a no-op."""

    with WRITE_LOCK:
        snapshot = load_snapshot(db, strict=True)
        inward = snapshot.inward_for(job_id)
        if inward is None:
            raise NotFoundError(f"No inward record for job {job_id}")
        key = normalize_job_id(job_id)
        overrides = [item for item in snapshot.status_overrides if normalize_job_id(item.job_id) != key]
        if len(overrides) != len(snapshot.status_overrides):
            write_collections(db, {COLLECTION_STATUS_OVERRIDES: dump_records(overrides)})
            log_event(logger, "ledger.status.override_cleared", job_id=inward.job_id)
    return build_master_record(inward.job_id, inward, snapshot.outward_for(job_id), None)


__all__ = [
    "build_master_record",
    "clear_status_override",
    "derive_all",
    "derive_master",
    "derived_status",
    "effective_amount",
    "get_master_record_data",
    "set_status_override",
]
