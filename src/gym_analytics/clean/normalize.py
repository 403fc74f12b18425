"""Record normalization.

Raw rows arrive from the data source with missing, blank or malformed
fields. Every row is normalized into a pandas DataFrame with a stable
schema so the aggregation functions never have to fall back to defaults
themselves.

Normalized columns:
- `created_at`: tz-aware `pd.Timestamp` in the report timezone, or None
- `month_label`: "Mon YY" bucket key, or None when `created_at` is None
- `package_name` / `status`: always a string (sentinel when missing)
- `price` / `coaching_cost`: float (0.0 when missing or invalid), with a
  boolean `*_valid` column flagging non-numeric input
"""
from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from datetime import date, datetime
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import numpy as np
import pandas as pd
from pandas.api.types import is_scalar
from pydantic import BaseModel

log = logging.getLogger(__name__)

UNASSIGNED_PACKAGE = "Unassigned"
UNKNOWN_STATUS = "unknown"

# Fixed English abbreviations; strftime("%b") would follow the process locale.
MONTH_ABBR = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)

SIGNUP_COLUMNS = ["id", "created_at"]
MEMBERSHIP_COLUMNS = [
    "id",
    "user_id",
    "package_name",
    "status",
    "price",
    "coaching_cost",
    "created_at",
]

# camelCase / upstream view names -> normalized column names
_ALIASES = {
    "createdAt": "created_at",
    "packageName": "package_name",
    "userId": "user_id",
    "package_price": "price",
    "coachingCost": "coaching_cost",
    "one_to_one_coaching_cost": "coaching_cost",
}


def check_timezone(tz: str) -> str:
    """Return `tz` unchanged if it names a known IANA timezone.

    Raises:
        ValueError: for unknown timezone names.
    """
    try:
        ZoneInfo(tz)
    except (ZoneInfoNotFoundError, ValueError):
        raise ValueError(f"Unknown timezone: {tz!r}") from None
    return tz


def label_for(year: int, month: int) -> str:
    """Return the bucket label for a calendar month, e.g. `label_for(2024, 1) == "Jan 24"`."""
    return f"{MONTH_ABBR[month - 1]} {year % 100:02d}"


def month_label(ts: datetime) -> str:
    """Return the month bucket label of a timestamp."""
    return label_for(ts.year, ts.month)


def _is_missing(value: Any) -> bool:
    """True for None and scalar nulls (NaN, NaT, pd.NA); containers are never missing."""
    if value is None:
        return True
    return bool(is_scalar(value) and pd.isna(value))


def parse_timestamp(value: Any, tz: str = "UTC") -> pd.Timestamp | None:
    """Parse a raw `created_at` value into a tz-aware timestamp.

    Naive values are read as wall-clock time in `tz`; aware values are
    converted to `tz`.

    Args:
        value: ISO-8601 string, `datetime`/`date`, or anything else.
        tz: Report timezone name.

    Returns:
        A `pd.Timestamp` in `tz`, or None when the value is missing or
        cannot be parsed.
    """
    if _is_missing(value):
        return None
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        # strict ISO-8601 only: pd.Timestamp would also accept "now" and "today"
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            value = datetime.fromisoformat(text)
        except ValueError:
            return None
    elif not isinstance(value, (datetime, date)):
        return None

    try:
        ts = pd.Timestamp(value)
    except (ValueError, TypeError, OverflowError):
        return None
    if pd.isna(ts):
        return None

    try:
        if ts.tzinfo is None:
            return ts.tz_localize(tz, ambiguous=False, nonexistent="shift_forward")
        return ts.tz_convert(tz)
    except (ValueError, OverflowError):
        return None


def parse_amount(value: Any) -> tuple[float, bool]:
    """Coerce a raw monetary value.

    Returns:
        `(amount, valid)`. Missing or blank values are `(0.0, True)`;
        non-numeric or non-finite values are `(0.0, False)`.
    """
    if _is_missing(value):
        return 0.0, True
    if isinstance(value, bool):
        return 0.0, False
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return 0.0, True
    # bson.Decimal128 (MongoDB decimal fields)
    if hasattr(value, "to_decimal"):
        value = value.to_decimal()

    try:
        amount = float(value)
    except (TypeError, ValueError, OverflowError):
        return 0.0, False
    if not np.isfinite(amount):
        return 0.0, False
    return amount, True


def _label(value: Any, sentinel: str) -> str:
    if _is_missing(value):
        return sentinel
    text = value if isinstance(value, str) else str(value)
    return text if text.strip() else sentinel


def as_row(record: Any) -> dict[str, Any]:
    """Return a plain dict with normalized keys for a mapping or model."""
    if isinstance(record, BaseModel):
        return record.model_dump()
    if not isinstance(record, Mapping):
        raise TypeError(f"Unsupported record type: {type(record).__name__}")

    row: dict[str, Any] = {}
    for key, value in record.items():
        target = _ALIASES.get(key, key)
        # canonical keys win over their aliases
        if target == key or target not in row:
            row[target] = value
    return row


def records_to_frame(records: Iterable[Any], columns: list[str]) -> pd.DataFrame:
    """Build an object-dtype DataFrame with exactly `columns` from raw records.

    Keys absent from a record become NaN; extra keys are dropped.
    """
    rows = [as_row(r) for r in records]
    return pd.DataFrame(rows, columns=columns, dtype=object)


def _with_timestamps(df: pd.DataFrame, tz: str) -> pd.DataFrame:
    parsed = [parse_timestamp(v, tz) for v in df["created_at"]]
    df["created_at"] = pd.Series(parsed, index=df.index, dtype=object)
    df["month_label"] = pd.Series(
        [month_label(ts) if ts is not None else None for ts in parsed],
        index=df.index,
        dtype=object,
    )
    return df


def _with_amount(df: pd.DataFrame, column: str) -> pd.DataFrame:
    parsed = [parse_amount(v) for v in df[column]]
    df[column] = pd.Series([a for a, _ in parsed], index=df.index, dtype=float)
    df[f"{column}_valid"] = pd.Series([ok for _, ok in parsed], index=df.index, dtype=bool)
    return df


def normalize_signups(records: Iterable[Any], tz: str = "UTC") -> pd.DataFrame:
    """Normalize signup rows.

    Args:
        records: Mappings or `SignupRecord` models.
        tz: Report timezone used for month bucketing.

    Returns:
        DataFrame with columns `id`, `created_at`, `month_label`.
    """
    check_timezone(tz)
    df = records_to_frame(records, SIGNUP_COLUMNS)
    df = _with_timestamps(df, tz)
    log.debug("Normalized %d signup rows", len(df))
    return df


def normalize_memberships(records: Iterable[Any], tz: str = "UTC") -> pd.DataFrame:
    """Normalize membership rows.

    Args:
        records: Mappings or `MembershipRecord` models.
        tz: Report timezone used for month bucketing.

    Returns:
        DataFrame with the membership columns plus `month_label`,
        `price_valid` and `coaching_cost_valid`.
    """
    check_timezone(tz)
    df = records_to_frame(records, MEMBERSHIP_COLUMNS)

    df["package_name"] = pd.Series(
        [_label(v, UNASSIGNED_PACKAGE) for v in df["package_name"]],
        index=df.index,
        dtype=object,
    )
    df["status"] = pd.Series(
        [_label(v, UNKNOWN_STATUS) for v in df["status"]],
        index=df.index,
        dtype=object,
    )
    df = _with_amount(df, "price")
    df = _with_amount(df, "coaching_cost")
    df = _with_timestamps(df, tz)

    log.debug("Normalized %d membership rows", len(df))
    return df
