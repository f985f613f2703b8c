"""Job identifier and estimate number generation.

Both namespaces follow the same rule: take the highest sequence number that
can be observed right now (in the records themselves and in the stored
high-water counter) and add one. Nothing depends on a separately incremented
counter alone, so importing an older or out-of-order snapshot can never make
the generator hand out a number that already exists.
"""

from __future__ import annotations

import re
from typing import Iterable

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.constants import COUNTER_ESTIMATE_NUMBER, COUNTER_JOB_ID
from ..crud.ledger import LedgerSnapshot, load_snapshot

_TRAILING_DIGITS_RE = re.compile(r"(\d+)\s*$")


def sequence_number(identifier: str | None) -> int | None:
    """Extract the numeric suffix of ``JOB-0042`` style identifiers."""

    if not identifier:
        return None
    match = _TRAILING_DIGITS_RE.search(identifier)
    if not match:
        return None
    return int(match.group(1))


def _max_sequence(identifiers: Iterable[str | None]) -> int:
    numbers = [n for n in (sequence_number(value) for value in identifiers) if n is not None]
    return max(numbers, default=0)


def format_job_id(number: int) -> str:
    return f"{settings.JOB_ID_PREFIX}{number:0{settings.JOB_ID_PADDING}d}"


def format_estimate_number(number: int) -> str:
    return f"{settings.ESTIMATE_PREFIX}{number:0{settings.ESTIMATE_PADDING}d}"


def _next_number(observed: int, start: int) -> int:
    return max(observed + 1, start)


def job_high_water(snapshot: LedgerSnapshot) -> int:
    """Highest job number ever handed out, from the records and the stored counter."""

    return max(
        _max_sequence(record.job_id for record in (*snapshot.inward, *snapshot.outward)),
        snapshot.counter(COUNTER_JOB_ID),
    )


def next_job_number(snapshot: LedgerSnapshot) -> int:
    return _next_number(job_high_water(snapshot), settings.JOB_ID_START)


def next_estimate_sequence(snapshot: LedgerSnapshot) -> int:
    observed = max(
        _max_sequence(record.estimate_number for record in snapshot.inward),
        snapshot.counter(COUNTER_ESTIMATE_NUMBER),
    )
    return _next_number(observed, settings.ESTIMATE_START)


def is_job_id_format(value: str) -> bool:
    """True when ``value`` looks like ``<prefix><digits>`` for the configured prefix."""

    prefix = settings.JOB_ID_PREFIX.upper()
    cleaned = value.strip().upper()
    return cleaned.startswith(prefix) and cleaned[len(prefix):].isdigit()


def next_job_id(db: Session) -> str:
    """Peek at the identifier the next intake record will receive."""

    return format_job_id(next_job_number(load_snapshot(db)))


def next_estimate_number(db: Session) -> str:
    return format_estimate_number(next_estimate_sequence(load_snapshot(db)))


__all__ = [
    "format_estimate_number",
    "format_job_id",
    "is_job_id_format",
    "job_high_water",
    "next_estimate_number",
    "next_estimate_sequence",
    "next_job_id",
    "next_job_number",
    "sequence_number",
]
