from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..core.errors import NotFoundError
from ..crud.hard_disks import create_hard_disk, get_hard_disk, list_hard_disks, update_hard_disk
from ..db.session import get_db
from ..deps.auth import require_api_key
from ..schemas.records import HardDiskCreate, HardDiskRecord, HardDiskUpdate

router = APIRouter(prefix="/api/v1/hard-disks", tags=["hard-disks"], dependencies=[Depends(require_api_key)])


@router.get("", response_model=list[HardDiskRecord])
def api_list(job_id: str | None = Query(default=None, alias="jobId"), db: Session = Depends(get_db)):
    return list_hard_disks(db, job_id=job_id)


@router.get("/{record_id}", response_model=HardDiskRecord)
def api_get(record_id: int, db: Session = Depends(get_db)):
    record = get_hard_disk(db, record_id)
    if record is None:
        raise NotFoundError(f"No hard disk record {record_id}")
    return record


@router.post("", response_model=HardDiskRecord, status_code=201)
def api_create(payload: HardDiskCreate, db: Session = Depends(get_db)):
    return create_hard_disk(db, payload.model_dump(exclude_none=True))


@router.patch("/{record_id}", response_model=HardDiskRecord)
def api_update(record_id: int, payload: HardDiskUpdate, db: Session = Depends(get_db)):
    return update_hard_disk(db, record_id, payload.model_dump(exclude_unset=True))
