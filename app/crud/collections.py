"""Key/value persistence for named ledger collections.

Each collection is stored as JSON text in one ``ledger_collections`` row.
Reads fail soft (an absent or corrupt collection reads as empty) while writes
either commit completely or raise :class:`StorageError` after rolling back.
"""

from __future__ import annotations

import json
import logging
import threading
from typing import Iterable, Mapping, Sequence

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.constants import ALL_COLLECTIONS
from ..core.errors import StorageError
from ..models.collection import StoredCollection
from ..services.dates import utc_timestamp

logger = logging.getLogger(__name__)

# Serialises read-modify-write sequences. The app is the only writer, but sync
# FastAPI handlers run on a thread pool.
WRITE_LOCK = threading.RLock()


def serialize_items(items: Iterable[Mapping[str, object]]) -> str:
    """Canonical text form of a collection."""

    return json.dumps(list(items), ensure_ascii=False, separators=(",", ":"))


def _unreadable(name: str, event: str, strict: bool) -> list[dict]:
    if strict:
        logger.error(event, extra={"extra_data": {"collection": name}})
        raise StorageError(f"Stored collection {name!r} is unreadable")
    logger.warning(event, extra={"extra_data": {"collection": name}})
    return []


def _decode(name: str, raw: str | None, strict: bool = False) -> list[dict]:
    if not raw:
        return []
    try:
        decoded = json.loads(raw)
    except (TypeError, json.JSONDecodeError):
        return _unreadable(name, "collection.unreadable", strict)
    if not isinstance(decoded, list):
        return _unreadable(name, "collection.not_a_list", strict)
    items = [item for item in decoded if isinstance(item, dict)]
    if strict and len(items) != len(decoded):
        return _unreadable(name, "collection.bad_item", strict)
    return items


def read_collection(db: Session, name: str) -> list[dict]:
    """Return the stored items of ``name``; empty when absent or unparsable."""

    try:
        row = db.get(StoredCollection, name)
    except SQLAlchemyError:
        logger.exception("collection.read_failed", extra={"extra_data": {"collection": name}})
        return []
    return _decode(name, row.payload if row else None)


def read_collections(
    db: Session,
    names: Sequence[str] = ALL_COLLECTIONS,
    *,
    strict: bool = False,
) -> dict[str, list[dict]]:
    """Read several collections with a single query so they come from one state.

    Display reads degrade to empty collections. With ``strict`` (every
    read-modify-write path) a failed query or an unreadable payload raises
    :class:`StorageError` so a partial view is never written back.
    """

    result: dict[str, list[dict]] = {name: [] for name in names}
    try:
        rows = db.execute(select(StoredCollection).where(StoredCollection.name.in_(tuple(names)))).scalars().all()
    except SQLAlchemyError as exc:
        logger.exception("collection.read_failed", extra={"extra_data": {"collections": list(names)}})
        db.rollback()
        if strict:
            raise StorageError("Could not read the ledger store") from exc
        return result
    for row in rows:
        result[row.name] = _decode(row.name, row.payload, strict)
    return result


def _stage(db: Session, name: str, items: Iterable[Mapping[str, object]], now: str) -> None:
    payload = serialize_items(items)
    row = db.get(StoredCollection, name)
    if row is None:
        db.add(StoredCollection(name=name, payload=payload, revision=1, updated_at=now))
        return
    row.payload = payload
    row.revision = (row.revision or 0) + 1
    row.updated_at = now


def write_collections(db: Session, collections: Mapping[str, Iterable[Mapping[str, object]]]) -> None:
    """Replace every given collection in one transaction, all or nothing."""

    if not collections:
        return
    now = utc_timestamp()
    with WRITE_LOCK:
        try:
            for name, items in collections.items():
                _stage(db, name, items, now)
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("collection.write_failed", extra={"extra_data": {"collections": list(collections)}})
            raise StorageError("Could not write to the ledger store") from exc


def write_collection(db: Session, name: str, items: Iterable[Mapping[str, object]]) -> None:
    write_collections(db, {name: items})


def clear_collections(db: Session) -> None:
    """Drop every stored collection, returning the store to its empty state."""

    with WRITE_LOCK:
        try:
            db.execute(delete(StoredCollection))
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("collection.clear_failed")
            raise StorageError("Could not clear the ledger store") from exc


__all__ = [
    "WRITE_LOCK",
    "clear_collections",
    "read_collection",
    "read_collections",
    "serialize_items",
    "write_collection",
    "write_collections",
]
