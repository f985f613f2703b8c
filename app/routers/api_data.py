from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, Response
from sqlalchemy.orm import Session

from ..db.session import get_db
from ..deps.auth import deny_when_refused, master_password_gate, require_api_key
from ..services.data_management import (
    Authorizer,
    backup_filename,
    clear_all,
    export_all,
    import_all,
    serialize_snapshot,
)

router = APIRouter(prefix="/api/v1/data", tags=["data"], dependencies=[Depends(require_api_key)])


@router.get("/export")
def api_export(authorize: Authorizer = Depends(master_password_gate), db: Session = Depends(get_db)):
    result = export_all(db, authorize)
    deny_when_refused(result.action, result.granted)
    headers = {"Content-Disposition": f'attachment; filename="{backup_filename()}"'}
    return Response(content=serialize_snapshot(result.snapshot), media_type="application/json", headers=headers)


@router.post("/import")
def api_import(
    document: Any = Body(...),
    authorize: Authorizer = Depends(master_password_gate),
    db: Session = Depends(get_db),
):
    result = import_all(db, document, authorize)
    deny_when_refused(result.action, result.granted)
    snapshot = result.snapshot or {}
    return {
        "status": "imported",
        "counts": {name: len(items) for name, items in snapshot.items() if isinstance(items, list)},
    }


@router.post("/clear")
def api_clear(authorize: Authorizer = Depends(master_password_gate), db: Session = Depends(get_db)):
    result = clear_all(db, authorize)
    deny_when_refused(result.action, result.granted)
    return {"status": "cleared"}
