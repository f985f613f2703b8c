"""Whole-ledger export, import and clear.

All three operations ask an authorizer first. A denial is reported in the
result and never raised; nothing is read or written after one.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Literal, Optional, Protocol

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from ..core.constants import (
    ALL_COLLECTIONS,
    COLLECTION_COUNTERS,
    COLLECTION_HARD_DISK,
    COLLECTION_INWARD,
    COLLECTION_OUTWARD,
    COLLECTION_STATUS_OVERRIDES,
    SNAPSHOT_VERSION,
)
from ..core.errors import ValidationError
from ..core.logging import log_event
from ..crud.collections import WRITE_LOCK, clear_collections, read_collections, write_collections
from ..crud.ledger import normalize_job_id
from ..schemas.records import Snapshot
from .dates import local_today

logger = logging.getLogger(__name__)

DataAction = Literal["export", "import", "clear"]


class Authorizer(Protocol):
    def __call__(self, action: DataAction) -> bool: ...


@dataclass(frozen=True)
class DataOperationResult:
    action: DataAction
    granted: bool
    snapshot: Optional[dict[str, Any]] = None


def _ask(authorize: Authorizer, action: DataAction) -> bool:
    granted = bool(authorize(action))
    if not granted:
        log_event(logger, "ledger.data.denied", action=action)
    return granted


def build_snapshot(db: Session) -> dict[str, Any]:
    """The full document, with collections in stored order and stored form."""

    raw = read_collections(db, strict=True)
    document: dict[str, Any] = {"version": SNAPSHOT_VERSION}
    for name in ALL_COLLECTIONS:
        document[name] = raw[name]
    return document


def serialize_snapshot(snapshot: dict[str, Any]) -> str:
    return json.dumps(snapshot, ensure_ascii=False, indent=2)


def parse_snapshot_text(text: str | bytes) -> Any:
    try:
        return json.loads(text)
    except (TypeError, ValueError) as exc:
        raise ValidationError("Backup file is not valid JSON") from exc


def backup_filename() -> str:
    return f"data-recovery-backup-{local_today().isoformat()}.json"


def _collection_problems(snapshot: Snapshot) -> list[dict[str, Any]]:
    """Identity and reference checks the record models cannot make on their own."""

    problems: list[dict[str, Any]] = []
    for name, records in (
        (COLLECTION_INWARD, snapshot.inward),
        (COLLECTION_OUTWARD, snapshot.outward),
        (COLLECTION_HARD_DISK, snapshot.hard_disk),
    ):
        ids: set[int] = set()
        for index, record in enumerate(records):
            if record.id in ids:
                problems.append({"loc": [name, index, "id"], "msg": f"duplicate id {record.id}"})
            ids.add(record.id)

    jobs: set[str] = set()
    for index, record in enumerate(snapshot.inward):
        key = normalize_job_id(record.job_id)
        if key in jobs:
            problems.append({"loc": [COLLECTION_INWARD, index, "jobId"], "msg": f"duplicate jobId {record.job_id}"})
        jobs.add(key)

    delivered: set[str] = set()
    for index, record in enumerate(snapshot.outward):
        key = normalize_job_id(record.job_id)
        if key not in jobs:
            problems.append({"loc": [COLLECTION_OUTWARD, index, "jobId"], "msg": f"no inward record for {record.job_id}"})
        elif key in delivered:
            problems.append(
                {"loc": [COLLECTION_OUTWARD, index, "jobId"], "msg": f"more than one outward record for {record.job_id}"}
            )
        delivered.add(key)

    for name, records in (
        (COLLECTION_HARD_DISK, snapshot.hard_disk),
        (COLLECTION_STATUS_OVERRIDES, snapshot.status_overrides),
    ):
        for index, record in enumerate(records):
            if normalize_job_id(record.job_id) not in jobs:
                problems.append({"loc": [name, index, "jobId"], "msg": f"no inward record for {record.job_id}"})

    overridden: set[str] = set()
    for index, record in enumerate(snapshot.status_overrides):
        key = normalize_job_id(record.job_id)
        if key in overridden:
            problems.append(
                {"loc": [COLLECTION_STATUS_OVERRIDES, index, "jobId"], "msg": f"more than one override for {record.job_id}"}
            )
        overridden.add(key)

    names: set[str] = set()
    for index, entry in enumerate(snapshot.counters):
        if entry.name in names:
            problems.append({"loc": [COLLECTION_COUNTERS, index, "name"], "msg": f"duplicate counter {entry.name}"})
        names.add(entry.name)
    return problems


def validate_snapshot(document: Any) -> dict[str, list[dict]]:
    """Check a snapshot document and return its collections as canonical records.

    Every problem found is collected into one ``ValidationError``. Record ids
    and inward job ids must be unique, and every outward, hard disk and
    override record must belong to an inward job.
    """

    if not isinstance(document, dict):
        raise ValidationError("Snapshot must be a JSON object")

    problems: list[dict[str, Any]] = []
    for name in ALL_COLLECTIONS:
        if name not in document:
            problems.append({"loc": [name], "msg": "missing collection"})
        elif not isinstance(document[name], list):
            problems.append({"loc": [name], "msg": "collection must be a list"})
    if problems:
        raise ValidationError("Snapshot failed validation", details=problems)

    try:
        snapshot = Snapshot.model_validate(document)
    except PydanticValidationError as exc:
        details = [{"loc": list(err.get("loc", ())), "msg": err.get("msg", "invalid record")} for err in exc.errors()]
        raise ValidationError("Snapshot failed validation", details=details) from exc

    if snapshot.version != SNAPSHOT_VERSION:
        problems.append({"loc": ["version"], "msg": f"unsupported snapshot version {snapshot.version!r}"})
    problems.extend(_collection_problems(snapshot))
    if problems:
        raise ValidationError("Snapshot failed validation", details=problems)

    dumped = snapshot.model_dump(by_alias=True, mode="json")
    return {name: dumped[name] for name in ALL_COLLECTIONS}


def export_all(db: Session, authorize: Authorizer) -> DataOperationResult:
    if not _ask(authorize, "export"):
        return DataOperationResult(action="export", granted=False)
    with WRITE_LOCK:
        snapshot = build_snapshot(db)
    log_event(
        logger,
        "ledger.export.completed",
        **{f"{name}_count": len(snapshot[name]) for name in ALL_COLLECTIONS},
    )
    return DataOperationResult(action="export", granted=True, snapshot=snapshot)


def import_all(db: Session, document: Any, authorize: Authorizer) -> DataOperationResult:
    """Replace every collection with the document's, in one transaction."""

    if not _ask(authorize, "import"):
        return DataOperationResult(action="import", granted=False)
    collections = validate_snapshot(document)
    with WRITE_LOCK:
        write_collections(db, collections)
        snapshot = build_snapshot(db)
    log_event(
        logger,
        "ledger.import.completed",
        **{f"{name}_count": len(collections[name]) for name in ALL_COLLECTIONS},
    )
    return DataOperationResult(action="import", granted=True, snapshot=snapshot)


def clear_all(db: Session, authorize: Authorizer) -> DataOperationResult:
    if not _ask(authorize, "clear"):
        return DataOperationResult(action="clear", granted=False)
    clear_collections(db)
    log_event(logger, "ledger.clear.completed")
    return DataOperationResult(action="clear", granted=True)


__all__ = [
    "Authorizer",
    "DataAction",
    "DataOperationResult",
    "backup_filename",
    "build_snapshot",
    "clear_all",
    "export_all",
    "import_all",
    "parse_snapshot_text",
    "serialize_snapshot",
    "validate_snapshot",
]
