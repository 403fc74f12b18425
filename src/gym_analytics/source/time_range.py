"""Reporting time windows.

`DateWindow` bounds the `created_at` filter applied when fetching records.
Presets count today as the last day, so "7d" starts six days ago at the
current time of day.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

log = logging.getLogger(__name__)

PRESET_DAYS = {"7d": 6, "30d": 29, "90d": 89}
PRESETS = ("7d", "30d", "90d", "custom", "all")
DEFAULT_PRESET = "30d"


@dataclass(frozen=True)
class DateWindow:
    """Inclusive `created_at` bounds (tz-aware).

    Attributes:
        start: Earliest timestamp included.
        end: Latest timestamp included.
    """
    start: datetime
    end: datetime


def _as_date(value: date | str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(value.strip())


def resolve_window(
    preset: str,
    custom_from: date | str | None = None,
    custom_to: date | str | None = None,
    now: datetime | None = None,
    tz: str = "UTC",
) -> DateWindow | None:
    """Translate a time-range selection into a `DateWindow`.

    Args:
        preset: One of "7d", "30d", "90d", "custom" or "all".
        custom_from: First day for "custom" (date or YYYY-MM-DD).
        custom_to: Last day for "custom" (date or YYYY-MM-DD).
        now: Reference time (defaults to the current UTC time).
        tz: Timezone in which custom days start and end.

    Returns:
        A DateWindow, or None when no filter applies ("all", or "custom"
        with a missing bound). Unknown presets fall back to "30d".

    Raises:
        ValueError: if a custom bound is not a valid date or `custom_from`
            is after `custom_to`.
    """
    if preset == "all":
        return None

    if preset == "custom":
        if not custom_from or not custom_to:
            return None
        zone = ZoneInfo(tz)
        start = datetime.combine(_as_date(custom_from), time.min, tzinfo=zone)
        end = datetime.combine(_as_date(custom_to), time(23, 59, 59), tzinfo=zone)
        if start > end:
            raise ValueError(f"custom range starts after it ends: {custom_from} > {custom_to}")
        return DateWindow(start=start, end=end)

    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    days = PRESET_DAYS.get(preset)
    if days is None:
        log.warning("Unknown time range %r; using %s", preset, DEFAULT_PRESET)
        days = PRESET_DAYS[DEFAULT_PRESET]

    return DateWindow(start=now - timedelta(days=days), end=now)
