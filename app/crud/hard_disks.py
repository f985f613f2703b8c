"""Device identity metadata attached to a job."""

from __future__ import annotations

import logging

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from ..core.constants import COLLECTION_HARD_DISK
from ..core.errors import NotFoundError, ValidationError, validation_error_from
from ..core.logging import log_event
from ..schemas.records import HardDiskRecord
from .collections import WRITE_LOCK, write_collections
from .ledger import LedgerSnapshot, dump_records, load_snapshot, next_record_id, normalize_job_id, replace_record

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("date", "device_info", "serial_number", "capacity", "notes")


def _clean(payload: dict) -> dict:
    return {
        key: value.strip() if isinstance(value, str) else value
        for key, value in payload.items()
        if key in EDITABLE_FIELDS and value is not None
    }


def _known_job(snapshot: LedgerSnapshot, job_id: str) -> str | None:
    record = snapshot.inward_for(job_id) or snapshot.outward_for(job_id)
    return record.job_id if record else None


def list_hard_disks(db: Session, job_id: str | None = None) -> list[HardDiskRecord]:
    snapshot = load_snapshot(db)
    if job_id:
        return snapshot.hard_disks_for(job_id)
    return list(snapshot.hard_disks)


def get_hard_disk(db: Session, record_id: int) -> HardDiskRecord | None:
    for record in load_snapshot(db).hard_disks:
        if record.id == record_id:
            return record
    return None


def create_hard_disk(db: Session, payload: dict) -> HardDiskRecord:
    requested = normalize_job_id(payload.get("job_id"))
    if not requested:
        raise ValidationError("jobId is required")

    with WRITE_LOCK:
        snapshot = load_snapshot(db, strict=True)
        job_id = _known_job(snapshot, requested)
        if job_id is None:
            raise NotFoundError(f"No job {requested}")
        try:
            record = HardDiskRecord.model_validate(
                {**_clean(payload), "id": next_record_id(snapshot.hard_disks), "job_id": job_id}
            )
        except PydanticValidationError as exc:
            raise validation_error_from(exc, "Invalid hard disk record") from exc
        write_collections(db, {COLLECTION_HARD_DISK: dump_records([*snapshot.hard_disks, record])})
    log_event(logger, "ledger.hard_disk.created", job_id=record.job_id, record_id=record.id)
    return record


def update_hard_disk(db: Session, record_id: int, payload: dict) -> HardDiskRecord:
    with WRITE_LOCK:
        snapshot = load_snapshot(db, strict=True)
        current = next((record for record in snapshot.hard_disks if record.id == record_id), None)
        if current is None:
            raise NotFoundError(f"No hard disk record {record_id}")
        changes = _clean(payload)
        if not changes:
            return current
        try:
            updated = HardDiskRecord.model_validate({**current.model_dump(), **changes})
        except PydanticValidationError as exc:
            raise validation_error_from(exc, "Invalid hard disk record") from exc
        records = replace_record(snapshot.hard_disks, current, updated)
        write_collections(db, {COLLECTION_HARD_DISK: dump_records(records)})
    log_event(logger, "ledger.hard_disk.updated", record_id=record_id, fields=sorted(changes))
    return updated


__all__ = ["create_hard_disk", "get_hard_disk", "list_hard_disks", "update_hard_disk"]
