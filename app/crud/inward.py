"""Intake (inward) record operations."""

from __future__ import annotations

import logging
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from ..core.constants import COLLECTION_COUNTERS, COLLECTION_INWARD, COUNTER_ESTIMATE_NUMBER, COUNTER_JOB_ID
from ..core.errors import InvalidStateError, NotFoundError, ValidationError, validation_error_from
from ..core.logging import log_event
from ..schemas.records import InwardRecord
from ..services.identifiers import (
    format_estimate_number,
    format_job_id,
    is_job_id_format,
    job_high_water,
    next_estimate_sequence,
    next_job_number,
    sequence_number,
)
from .collections import WRITE_LOCK, write_collections
from .ledger import dump_records, load_snapshot, next_record_id, normalize_job_id, replace_record, with_counter

logger = logging.getLogger(__name__)

# Fields an ordinary edit may touch. Identity and delivery facts only change
# through creation and the delivery workflow.
EDITABLE_FIELDS = (
    "date",
    "customer_name",
    "phone_number",
    "received_from",
    "notes",
    "estimated_amount",
    "estimated_delivery_date",
)


def _clean_text(value: object) -> object:
    return value.strip() if isinstance(value, str) else value


def _matches(record: InwardRecord, search: str) -> bool:
    return (
        search in record.job_id.lower()
        or search in record.customer_name.lower()
        or search in record.received_from.lower()
    )


def list_inward(db: Session, search: str | None = None, include_delivered: bool = False) -> list[InwardRecord]:
    """Inward records, delivered ones hidden unless ``include_delivered``."""

    records = list(load_snapshot(db).inward)
    term = (search or "").strip().lower()
    return [
        record
        for record in records
        if (include_delivered or not record.is_delivered) and (not term or _matches(record, term))
    ]


def get_inward(db: Session, job_id: str) -> InwardRecord | None:
    return load_snapshot(db).inward_for(job_id)


def create_inward(db: Session, payload: dict) -> InwardRecord:
    """Create an intake record, generating its job id unless one is supplied."""

    data = {key: _clean_text(value) for key, value in payload.items() if key in EDITABLE_FIELDS or key == "job_id"}
    if not data.get("customer_name"):
        raise ValidationError("customerName is required")
    if not data.get("date"):
        raise ValidationError("date is required")

    with WRITE_LOCK:
        snapshot = load_snapshot(db, strict=True)
        requested = data.pop("job_id", None)
        if requested:
            job_id = normalize_job_id(requested)
            if not is_job_id_format(job_id):
                raise ValidationError(f"jobId {requested!r} does not match the job identifier format")
            number = sequence_number(job_id) or 0
            # Every number up to the high-water mark counts as issued.
            if number <= job_high_water(snapshot):
                raise ValidationError(f"jobId {job_id} has already been issued")
        else:
            number = next_job_number(snapshot)
            job_id = format_job_id(number)

        try:
            record = InwardRecord.model_validate(
                {
                    **data,
                    "id": next_record_id(snapshot.inward),
                    "job_id": job_id,
                    "is_delivered": False,
                    "delivery_date": None,
                }
            )
        except PydanticValidationError as exc:
            raise validation_error_from(exc, "Invalid inward record") from exc

        write_collections(
            db,
            {
                COLLECTION_INWARD: dump_records([*snapshot.inward, record]),
                COLLECTION_COUNTERS: dump_records(with_counter(snapshot.counters, COUNTER_JOB_ID, number)),
            },
        )
    log_event(logger, "ledger.inward.created", job_id=record.job_id, record_id=record.id)
    return record


def update_inward(db: Session, job_id: str, payload: dict) -> InwardRecord:
    """Edit an intake record. Unknown and protected keys are ignored."""

    with WRITE_LOCK:
        snapshot = load_snapshot(db, strict=True)
        current = snapshot.inward_for(job_id)
        if current is None:
            raise NotFoundError(f"No inward record for job {job_id}")
        if current.is_delivered:
            raise InvalidStateError(f"Job {current.job_id} has been delivered and can no longer be edited")

        changes = {key: _clean_text(value) for key, value in payload.items() if key in EDITABLE_FIELDS}
        if not changes:
            return current
        try:
            updated = InwardRecord.model_validate({**current.model_dump(), **changes})
        except PydanticValidationError as exc:
            raise validation_error_from(exc, "Invalid inward record") from exc

        write_collections(db, {COLLECTION_INWARD: dump_records(replace_record(snapshot.inward, current, updated))})
    log_event(logger, "ledger.inward.updated", job_id=updated.job_id, fields=sorted(changes))
    return updated


def issue_estimate(db: Session, job_id: str) -> InwardRecord:
    """Attach an estimate number to an intake record; repeat calls keep the first one."""

    with WRITE_LOCK:
        snapshot = load_snapshot(db, strict=True)
        current = snapshot.inward_for(job_id)
        if current is None:
            raise NotFoundError(f"No inward record for job {job_id}")
        if current.estimate_number:
            return current
        if current.is_delivered:
            raise InvalidStateError(f"Job {current.job_id} has been delivered; estimates are closed")

        number = next_estimate_sequence(snapshot)
        updated = current.model_copy(update={"estimate_number": format_estimate_number(number)})
        write_collections(
            db,
            {
                COLLECTION_INWARD: dump_records(replace_record(snapshot.inward, current, updated)),
                COLLECTION_COUNTERS: dump_records(
                    with_counter(snapshot.counters, COUNTER_ESTIMATE_NUMBER, number)
                ),
            },
        )
    log_event(logger, "ledger.estimate.issued", job_id=updated.job_id, estimate_number=updated.estimate_number)
    return updated


__all__ = [
    "EDITABLE_FIELDS",
    "create_inward",
    "get_inward",
    "issue_estimate",
    "list_inward",
    "update_inward",
]
