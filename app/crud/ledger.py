"""Typed, point-in-time view over every ledger collection."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Sequence, TypeVar

from pydantic import BaseModel, ValidationError as PydanticValidationError
from sqlalchemy.orm import Session

from ..core.constants import (
    COLLECTION_COUNTERS,
    COLLECTION_HARD_DISK,
    COLLECTION_INWARD,
    COLLECTION_OUTWARD,
    COLLECTION_STATUS_OVERRIDES,
)
from ..core.errors import StorageError
from ..schemas.records import (
    CounterEntry,
    HardDiskRecord,
    InwardRecord,
    OutwardRecord,
    StatusOverride,
)
from .collections import read_collections

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", bound=BaseModel)


def normalize_job_id(value: str | None) -> str:
    return (value or "").strip().upper()


def _parse(name: str, model: type[RecordT], items: Iterable[dict], strict: bool = False) -> tuple[RecordT, ...]:
    parsed: list[RecordT] = []
    for index, item in enumerate(items):
        try:
            parsed.append(model.model_validate(item))
        except PydanticValidationError as exc:
            if strict:
                logger.error(
                    "collection.record_invalid",
                    extra={"extra_data": {"collection": name, "index": index}},
                )
                raise StorageError(f"Stored {name} record #{index} is invalid") from exc
            logger.warning(
                "collection.record_skipped",
                extra={"extra_data": {"collection": name, "index": index}},
            )
    return tuple(parsed)


def dump_records(records: Iterable[BaseModel]) -> list[dict]:
    """Serialise records with their camelCase field names, every field present."""

    return [record.model_dump(by_alias=True, mode="json") for record in records]


@dataclass(frozen=True)
class LedgerSnapshot:
    """Immutable copy of all collections taken from a single read."""

    inward: tuple[InwardRecord, ...] = ()
    outward: tuple[OutwardRecord, ...] = ()
    hard_disks: tuple[HardDiskRecord, ...] = ()
    counters: tuple[CounterEntry, ...] = ()
    status_overrides: tuple[StatusOverride, ...] = ()
    _inward_index: dict[str, InwardRecord] = field(default_factory=dict, init=False, repr=False, compare=False)
    _outward_index: dict[str, OutwardRecord] = field(default_factory=dict, init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        for record in self.inward:
            self._inward_index.setdefault(normalize_job_id(record.job_id), record)
        for record in self.outward:
            self._outward_index.setdefault(normalize_job_id(record.job_id), record)

    def inward_for(self, job_id: str) -> InwardRecord | None:
        return self._inward_index.get(normalize_job_id(job_id))

    def outward_for(self, job_id: str) -> OutwardRecord | None:
        return self._outward_index.get(normalize_job_id(job_id))

    def override_for(self, job_id: str) -> StatusOverride | None:
        key = normalize_job_id(job_id)
        for override in self.status_overrides:
            if normalize_job_id(override.job_id) == key:
                return override
        return None

    def hard_disks_for(self, job_id: str) -> list[HardDiskRecord]:
        key = normalize_job_id(job_id)
        return [record for record in self.hard_disks if normalize_job_id(record.job_id) == key]

    def counter(self, name: str) -> int:
        for entry in self.counters:
            if entry.name == name:
                return entry.value
        return 0


def load_snapshot(db: Session, *, strict: bool = False) -> LedgerSnapshot:
    """Read every collection at once.

    Pass ``strict=True`` before writing anything derived from the snapshot: an
    unreadable store or an invalid record then raises ``StorageError`` instead
    of silently dropping data.
    """

    raw = read_collections(db, strict=strict)
    return LedgerSnapshot(
        inward=_parse(COLLECTION_INWARD, InwardRecord, raw[COLLECTION_INWARD], strict),
        outward=_parse(COLLECTION_OUTWARD, OutwardRecord, raw[COLLECTION_OUTWARD], strict),
        hard_disks=_parse(COLLECTION_HARD_DISK, HardDiskRecord, raw[COLLECTION_HARD_DISK], strict),
        counters=_parse(COLLECTION_COUNTERS, CounterEntry, raw[COLLECTION_COUNTERS], strict),
        status_overrides=_parse(COLLECTION_STATUS_OVERRIDES, StatusOverride, raw[COLLECTION_STATUS_OVERRIDES], strict),
    )


def replace_record(records: Sequence[RecordT], current: RecordT, updated: RecordT) -> list[RecordT]:
    """Swap ``current`` (the very object taken from the snapshot) for ``updated``, by position."""

    return [updated if record is current else record for record in records]


def next_record_id(records: Sequence[BaseModel]) -> int:
    """Auto-increment id: one past the largest id in the collection."""

    return max((getattr(record, "id", 0) for record in records), default=0) + 1


def with_counter(counters: Sequence[CounterEntry], name: str, value: int) -> list[CounterEntry]:
    """Return counters with ``name`` raised to at least ``value`` (never lowered)."""

    updated: list[CounterEntry] = []
    found = False
    for entry in counters:
        if entry.name == name:
            found = True
            updated.append(entry.model_copy(update={"value": max(entry.value, value)}))
        else:
            updated.append(entry)
    if not found:
        updated.append(CounterEntry(name=name, value=value))
    return updated


__all__ = [
    "LedgerSnapshot",
    "dump_records",
    "load_snapshot",
    "next_record_id",
    "replace_record",
    "normalize_job_id",
    "with_counter",
]
