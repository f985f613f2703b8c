"""Delivery-leg (outward) record operations."""

from __future__ import annotations

import logging

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from ..core.constants import COLLECTION_OUTWARD
from ..core.errors import InvalidStateError, NotFoundError, ValidationError, validation_error_from
from ..core.logging import log_event
from ..schemas.records import OutwardRecord
from ..services.dates import today_iso
from .collections import WRITE_LOCK, write_collections
from .ledger import dump_records, load_snapshot, next_record_id, normalize_job_id, replace_record

logger = logging.getLogger(__name__)

# isCompleted/completedDate are owned by the delivery workflow.
EDITABLE_FIELDS = (
    "date",
    "customer_name",
    "phone_number",
    "delivered_to",
    "delivery_mode",
    "notes",
    "estimated_amount",
)


def _clean_text(value: object) -> object:
    return value.strip() if isinstance(value, str) else value


def list_outward(db: Session, search: str | None = None) -> list[OutwardRecord]:
    term = (search or "").strip().lower()
    records = load_snapshot(db).outward
    if not term:
        return list(records)
    return [
        record
        for record in records
        if term in record.job_id.lower()
        or term in record.customer_name.lower()
        or term in record.delivered_to.lower()
    ]


def get_outward(db: Session, job_id: str) -> OutwardRecord | None:
    return load_snapshot(db).outward_for(job_id)


def create_outward(db: Session, payload: dict) -> OutwardRecord:
    """Open the delivery leg of an existing job.

    Customer name and phone are copied from the intake record unless given,
    and the date defaults to today in the shop's timezone.
    """

    job_id = normalize_job_id(payload.get("job_id"))
    if not job_id:
        raise ValidationError("jobId is required")
    data = {key: _clean_text(value) for key, value in payload.items() if key in EDITABLE_FIELDS}

    with WRITE_LOCK:
        snapshot = load_snapshot(db, strict=True)
        inward = snapshot.inward_for(job_id)
        if inward is None:
            raise NotFoundError(f"No inward record for job {job_id}")
        if snapshot.outward_for(job_id) is not None:
            raise InvalidStateError(f"Job {inward.job_id} already has an outward record")

        if not data.get("customer_name"):
            data["customer_name"] = inward.customer_name
        if not data.get("phone_number"):
            data["phone_number"] = inward.phone_number
        if not data.get("date"):
            data["date"] = today_iso()
        try:
            record = OutwardRecord.model_validate(
                {
                    **data,
                    "id": next_record_id(snapshot.outward),
                    "job_id": inward.job_id,
                    "is_completed": False,
                    "completed_date": None,
                }
            )
        except PydanticValidationError as exc:
            raise validation_error_from(exc, "Invalid outward record") from exc

        write_collections(db, {COLLECTION_OUTWARD: dump_records([*snapshot.outward, record])})
    log_event(logger, "ledger.outward.created", job_id=record.job_id, record_id=record.id)
    return record


def update_outward(db: Session, job_id: str, payload: dict) -> OutwardRecord:
    with WRITE_LOCK:
        snapshot = load_snapshot(db, strict=True)
        current = snapshot.outward_for(job_id)
        if current is None:
            raise NotFoundError(f"No outward record for job {job_id}")
        if current.is_completed:
            raise InvalidStateError(f"Job {current.job_id} is completed and can no longer be edited")

        changes = {key: _clean_text(value) for key, value in payload.items() if key in EDITABLE_FIELDS}
        if not changes:
            return current
        try:
            updated = OutwardRecord.model_validate({**current.model_dump(), **changes})
        except PydanticValidationError as exc:
            raise validation_error_from(exc, "Invalid outward record") from exc

        records = replace_record(snapshot.outward, current, updated)
        write_collections(db, {COLLECTION_OUTWARD: dump_records(records)})
    log_event(logger, "ledger.outward.updated", job_id=updated.job_id, fields=sorted(changes))
    return updated


__all__ = ["EDITABLE_FIELDS", "create_outward", "get_outward", "list_outward", "update_outward"]
