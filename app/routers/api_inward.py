from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..core.errors import NotFoundError
from ..crud.inward import create_inward, get_inward, issue_estimate, list_inward, update_inward
from ..db.session import get_db
from ..deps.auth import require_api_key
from ..schemas.records import InwardCreate, InwardRecord, InwardUpdate

router = APIRouter(prefix="/api/v1/inward", tags=["inward"], dependencies=[Depends(require_api_key)])


@router.get("", response_model=list[InwardRecord])
def api_list(
    search: str | None = None,
    include_delivered: bool = Query(default=False, alias="includeDelivered"),
    db: Session = Depends(get_db),
):
    return list_inward(db, search=search, include_delivered=include_delivered)


@router.get("/{job_id}", response_model=InwardRecord)
def api_get(job_id: str, db: Session = Depends(get_db)):
    record = get_inward(db, job_id)
    if record is None:
        raise NotFoundError(f"No inward record for job {job_id}")
    return record


@router.post("", response_model=InwardRecord, status_code=201)
def api_create(payload: InwardCreate, db: Session = Depends(get_db)):
    return create_inward(db, payload.model_dump(exclude_none=True))


@router.patch("/{job_id}", response_model=InwardRecord)
def api_update(job_id: str, payload: InwardUpdate, db: Session = Depends(get_db)):
    return update_inward(db, job_id, payload.model_dump(exclude_unset=True))


@router.post("/{job_id}/estimate", response_model=InwardRecord)
def api_issue_estimate(job_id: str, db: Session = Depends(get_db)):
    return issue_estimate(db, job_id)
