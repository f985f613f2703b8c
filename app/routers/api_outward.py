from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..core.errors import NotFoundError
from ..crud.outward import create_outward, get_outward, list_outward, update_outward
from ..db.session import get_db
from ..deps.auth import require_api_key
from ..schemas.records import DeliveryDetails, MasterRecord, OutwardCreate, OutwardRecord, OutwardUpdate
from ..services.delivery import mark_delivered

router = APIRouter(prefix="/api/v1/outward", tags=["outward"], dependencies=[Depends(require_api_key)])


@router.get("", response_model=list[OutwardRecord])
def api_list(search: str | None = None, db: Session = Depends(get_db)):
    return list_outward(db, search=search)


@router.get("/{job_id}", response_model=OutwardRecord)
def api_get(job_id: str, db: Session = Depends(get_db)):
    record = get_outward(db, job_id)
    if record is None:
        raise NotFoundError(f"No outward record for job {job_id}")
    return record


@router.post("", response_model=OutwardRecord, status_code=201)
def api_create(payload: OutwardCreate, db: Session = Depends(get_db)):
    return create_outward(db, payload.model_dump(exclude_none=True))


@router.patch("/{job_id}", response_model=OutwardRecord)
def api_update(job_id: str, payload: OutwardUpdate, db: Session = Depends(get_db)):
    return update_outward(db, job_id, payload.model_dump(exclude_unset=True))


@router.post("/{job_id}/deliver", response_model=MasterRecord)
def api_deliver(job_id: str, details: DeliveryDetails, db: Session = Depends(get_db)):
    return mark_delivered(db, job_id, details)
