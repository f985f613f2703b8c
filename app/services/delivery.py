"""Delivery workflow: the single awaiting -> delivered transition of a job."""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from ..core.constants import COLLECTION_INWARD, COLLECTION_OUTWARD, COLLECTION_STATUS_OVERRIDES
from ..core.errors import InvalidStateError, NotFoundError
from ..core.logging import log_event
from ..crud.collections import WRITE_LOCK, write_collections
from ..crud.ledger import dump_records, load_snapshot, normalize_job_id, replace_record
from ..schemas.records import DeliveryDetails, MasterRecord
from .status import build_master_record

logger = logging.getLogger(__name__)


def _merge_notes(existing: str, extra: str | None) -> str:
    extra = (extra or "").strip()
    if not extra:
        return existing
    if not existing:
        return extra
    return f"{existing}\n{extra}"


def mark_delivered(db: Session, job_id: str, details: DeliveryDetails) -> MasterRecord:
    """Complete the outward record and mark the intake record delivered.

    Both records and the removal of any manual status override are written in
    one transaction. Nothing is written when a precondition fails.
    """

    with WRITE_LOCK:
        snapshot = load_snapshot(db, strict=True)
        outward = snapshot.outward_for(job_id)
        if outward is None:
            raise NotFoundError(f"No outward record for job {job_id}")
        if outward.is_completed:
            raise InvalidStateError(f"Job {outward.job_id} has already been delivered")
        inward = snapshot.inward_for(job_id)
        if inward is None:
            raise NotFoundError(f"No inward record for job {job_id}")

        outward_changes = {
            "delivered_to": details.delivered_to,
            "completed_date": details.completed_date,
            "is_completed": True,
            "notes": _merge_notes(outward.notes, details.notes),
        }
        if details.delivery_mode is not None:
            outward_changes["delivery_mode"] = details.delivery_mode
        if details.estimated_amount is not None:
            outward_changes["estimated_amount"] = details.estimated_amount
        completed = outward.model_copy(update=outward_changes)
        delivered = inward.model_copy(update={"is_delivered": True, "delivery_date": details.completed_date})

        key = normalize_job_id(job_id)
        writes = {
            COLLECTION_OUTWARD: dump_records(replace_record(snapshot.outward, outward, completed)),
            COLLECTION_INWARD: dump_records(replace_record(snapshot.inward, inward, delivered)),
        }
        overrides = [item for item in snapshot.status_overrides if normalize_job_id(item.job_id) != key]
        if len(overrides) != len(snapshot.status_overrides):
            writes[COLLECTION_STATUS_OVERRIDES] = dump_records(overrides)
        write_collections(db, writes)

    log_event(
        logger,
        "ledger.delivery.completed",
        job_id=completed.job_id,
        completed_date=details.completed_date,
        delivered_to=details.delivered_to,
    )
    return build_master_record(delivered.job_id, delivered, completed, None)


__all__ = ["mark_delivered"]
