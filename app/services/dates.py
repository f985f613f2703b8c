from __future__ import annotations
from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from ..core.config import settings


def parse_day(value: str | None) -> date | None:
    """Calendar day of a stored ``YYYY-MM-DD`` (or full timestamp) value; None when blank or unparsable."""
    if not value:
        return None
    text = value.strip()
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


def local_today(tz: str | None = None) -> date:
    zone = tz or settings.TZ
    if not zone:
        return date.today()
    return datetime.now(ZoneInfo(zone)).date()


def today_iso() -> str:
    return local_today().isoformat()


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")


def format_day(value: str | None, fmt: str | None = None) -> str:
    """Render a stored date for people, ``N/A`` when missing."""
    day = parse_day(value)
    if day is None:
        return "N/A"
    return day.strftime(fmt or settings.REPORT_DATE_FORMAT)
