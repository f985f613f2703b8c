from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..core.errors import NotFoundError
from ..db.session import get_db
from ..deps.auth import require_api_key
from ..schemas.records import MasterRecord, NextIdentifier, StatusOverrideRequest
from ..services.identifiers import next_estimate_number, next_job_id
from ..services.status import clear_status_override, get_master_record_data, set_status_override

router = APIRouter(prefix="/api/v1/jobs", tags=["jobs"], dependencies=[Depends(require_api_key)])


@router.get("/next-id", response_model=NextIdentifier)
def api_next_job_id(db: Session = Depends(get_db)):
    return NextIdentifier(value=next_job_id(db))


@router.get("/next-estimate-number", response_model=NextIdentifier)
def api_next_estimate_number(db: Session = Depends(get_db)):
    return NextIdentifier(value=next_estimate_number(db))


@router.get("/{job_id}/status", response_model=MasterRecord)
def api_status(job_id: str, db: Session = Depends(get_db)):
    master = get_master_record_data(db, job_id)
    if master is None:
        raise NotFoundError(f"No inward record for job {job_id}")
    return master


@router.put("/{job_id}/status-override", response_model=MasterRecord)
def api_set_override(job_id: str, payload: StatusOverrideRequest, db: Session = Depends(get_db)):
    return set_status_override(db, job_id, payload.status, note=payload.note)


@router.delete("/{job_id}/status-override", response_model=MasterRecord)
def api_clear_override(job_id: str, db: Session = Depends(get_db)):
    return clear_status_override(db, job_id)
