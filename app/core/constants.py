"""Shared status, delivery mode and collection name constants."""

from __future__ import annotations

from enum import Enum


class RecordStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class DeliveryMode(str, Enum):
    IN_PERSON = "In Person"
    COURIER = "Courier"
    POST = "Post"
    PICKUP_AGENT = "Pickup Agent"
    OTHER = "Other"


STATUS_LABELS = {
    RecordStatus.PENDING: "Pending",
    RecordStatus.IN_PROGRESS: "In Progress",
    RecordStatus.COMPLETED: "Completed",
}

# Collection names double as the top-level keys of an exported snapshot.
COLLECTION_INWARD = "inward"
COLLECTION_OUTWARD = "outward"
COLLECTION_HARD_DISK = "hardDisk"
COLLECTION_COUNTERS = "counters"
COLLECTION_STATUS_OVERRIDES = "statusOverrides"

ALL_COLLECTIONS = (
    COLLECTION_INWARD,
    COLLECTION_OUTWARD,
    COLLECTION_HARD_DISK,
    COLLECTION_COUNTERS,
    COLLECTION_STATUS_OVERRIDES,
)

COUNTER_JOB_ID = "jobId"
COUNTER_ESTIMATE_NUMBER = "estimateNumber"

SNAPSHOT_VERSION = 1


def normalize_status(value: str | RecordStatus | None) -> RecordStatus | None:
    """Return a RecordStatus from loose user input (``"In Progress"``, ``"completed"``...)."""

    if value is None:
        return None
    if isinstance(value, RecordStatus):
        return value
    cleaned = value.strip().lower().replace("-", "_").replace(" ", "_")
    if not cleaned:
        return None
    return RecordStatus(cleaned)


__all__ = [
    "ALL_COLLECTIONS",
    "COLLECTION_COUNTERS",
    "COLLECTION_HARD_DISK",
    "COLLECTION_INWARD",
    "COLLECTION_OUTWARD",
    "COLLECTION_STATUS_OVERRIDES",
    "COUNTER_ESTIMATE_NUMBER",
    "COUNTER_JOB_ID",
    "DeliveryMode",
    "RecordStatus",
    "SNAPSHOT_VERSION",
    "STATUS_LABELS",
    "normalize_status",
]
