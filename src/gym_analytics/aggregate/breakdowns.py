"""Secondary report builders: revenue and staff breakdowns, month gap filling."""
from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from datetime import date, datetime
from typing import Any, TypeVar

import pandas as pd

from gym_analytics.clean.normalize import (
    MEMBERSHIP_COLUMNS,
    as_row,
    label_for,
    normalize_memberships,
    records_to_frame,
)
from gym_analytics.models import (
    AmountPoint,
    GrowthPoint,
    RevenuePoint,
    RoleCount,
    StaffBreakdown,
)

log = logging.getLogger(__name__)

UNASSIGNED_ROLE = "unassigned"

PACKAGE_REVENUE = "Package Revenue"
COACHING_REVENUE = "1-on-1 Coaching Revenue"
TOTAL_REVENUE = "Total Revenue"

P = TypeVar("P", GrowthPoint, RevenuePoint)


def compute_revenue_breakdown(
    memberships: Iterable[Any],
    package: str | None = None,
) -> list[AmountPoint]:
    """Compare package revenue with one-to-one coaching revenue.

    Args:
        memberships: Membership rows carrying `price` and `coaching_cost`.
        package: Restrict to one package name (normalized, so "Unassigned"
            selects rows without a package). None means all packages.

    Returns:
        Three points: package revenue, coaching revenue and their total.
        Non-numeric amounts are ignored.
    """
    mdf = normalize_memberships(memberships)
    if package is not None:
        mdf = mdf[mdf["package_name"] == package]

    package_total = float(mdf.loc[mdf["price_valid"], "price"].sum())
    coaching_total = float(mdf.loc[mdf["coaching_cost_valid"], "coaching_cost"].sum())

    return [
        AmountPoint(name=PACKAGE_REVENUE, value=package_total),
        AmountPoint(name=COACHING_REVENUE, value=coaching_total),
        AmountPoint(name=TOTAL_REVENUE, value=package_total + coaching_total),
    ]


def revenue_transactions(
    memberships: Iterable[Any],
    package: str | None = None,
) -> pd.DataFrame:
    """Return the membership cost rows behind the revenue breakdown.

    Values are kept as received so the drill-down table shows what is
    stored; only the package match uses the normalized name, like
    `compute_revenue_breakdown`.

    Args:
        memberships: Membership rows.
        package: Restrict to one package name. None means all packages.

    Returns:
        DataFrame with the membership columns, one row per record.
    """
    rows = [as_row(r) for r in memberships]
    frame = records_to_frame(rows, MEMBERSHIP_COLUMNS)
    if package is None:
        return frame
    names = normalize_memberships(rows)["package_name"]
    return frame[names == package].reset_index(drop=True)


def compute_staff_breakdown(
    staff: Iterable[Any],
    roles: Mapping[str, str] | None = None,
) -> StaffBreakdown:
    """Count staff per role and how many are active.

    Args:
        staff: Staff rows with `role_id` and `is_active`.
        roles: Mapping of role id to display name. Ids missing from the
            mapping are reported as-is; staff without a role as "unassigned".

    Returns:
        StaffBreakdown with roles in first-seen order.
    """
    roles = roles or {}
    counts: dict[str, int] = {}
    total = 0
    active = 0

    for record in staff:
        row = as_row(record)
        role_id = row.get("role_id")
        if role_id is None or role_id == "":
            key = UNASSIGNED_ROLE
        else:
            key = roles.get(str(role_id), str(role_id))
        counts[key] = counts.get(key, 0) + 1
        total += 1
        if row.get("is_active"):
            active += 1

    return StaffBreakdown(
        roles=[RoleCount(role=k, count=v) for k, v in counts.items()],
        total=total,
        active=active,
    )


def _local_month(value: date | datetime, tz: str | None) -> tuple[int, int]:
    if isinstance(value, datetime) and tz is not None:
        ts = pd.Timestamp(value)
        ts = ts.tz_localize(tz) if ts.tzinfo is None else ts.tz_convert(tz)
        return ts.year, ts.month
    return value.year, value.month


def month_labels_between(
    start: date | datetime,
    end: date | datetime,
    tz: str | None = None,
) -> list[str]:
    """Return one bucket label per calendar month from `start` to `end` inclusive.

    Args:
        start: First day of the window.
        end: Last day of the window.
        tz: When given, datetimes are converted to this timezone first.

    Returns:
        Chronological labels, empty when `start` is after `end`.
    """
    year, month = _local_month(start, tz)
    end_year, end_month = _local_month(end, tz)

    labels: list[str] = []
    while (year, month) <= (end_year, end_month):
        labels.append(label_for(year, month))
        month += 1
        if month > 12:
            year, month = year + 1, 1
    return labels


def _fill(points: Sequence[P], labels: list[str], zero: Any) -> list[P]:
    by_label = {p.month_label: p for p in points}
    filled = [by_label.get(label) or zero(label) for label in labels]
    in_window = set(labels)
    # points outside the window are kept so totals never shrink
    filled.extend(p for p in points if p.month_label not in in_window)
    return filled


def fill_growth_gaps(
    points: Sequence[GrowthPoint],
    start: date | datetime,
    end: date | datetime,
    tz: str | None = None,
) -> list[GrowthPoint]:
    """Return a continuous monthly growth series over `[start, end]`.

    Months without signups get `count=0`.
    """
    labels = month_labels_between(start, end, tz)
    return _fill(points, labels, lambda label: GrowthPoint(month_label=label, count=0))


def fill_revenue_gaps(
    points: Sequence[RevenuePoint],
    start: date | datetime,
    end: date | datetime,
    tz: str | None = None,
) -> list[RevenuePoint]:
    """Return a continuous monthly revenue series over `[start, end]`.

    Months without revenue get `revenue=0.0`.
    """
    labels = month_labels_between(start, end, tz)
    return _fill(points, labels, lambda label: RevenuePoint(month_label=label, revenue=0.0))
