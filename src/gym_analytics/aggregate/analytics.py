"""Analytics aggregation.

`compute_analytics` is a pure function of its two record sets. It recomputes
every series from scratch and keeps no state between calls.

Expectations:
- Input: signup and membership rows (mappings or pydantic input models) for
  one gym, already fetched in full.
- Output: an `AnalyticsResult` whose series hold at most one entry per label,
  in the order the label was first encountered, except `top_packages` which
  is ordered by value.

Malformed rows never abort the aggregation. A row without a usable
`created_at` is left out of the month-bucketed series (growth, revenue) but
still counted in the package and status distributions; a row with a
non-numeric price is left out of revenue only. Exclusions are counted in
`AnalyticsResult.data_quality` and logged.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from typing import Any

import pandas as pd

from gym_analytics.clean.normalize import normalize_memberships, normalize_signups
from gym_analytics.models import (
    AnalyticsResult,
    DataQualityReport,
    DistributionPoint,
    GrowthPoint,
    RevenuePoint,
)

log = logging.getLogger(__name__)

DEFAULT_TOP_N = 5


def _count_by(df: pd.DataFrame, column: str) -> list[tuple[str, int]]:
    """Count rows per value of `column` in first-seen order."""
    counts = df.groupby(column, sort=False).size()
    return [(str(k), int(v)) for k, v in counts.items()]


def growth_series(signups: pd.DataFrame) -> list[GrowthPoint]:
    """Signups per month bucket.

    Args:
        signups: Output of `normalize_signups`.
    """
    dated = signups[signups["month_label"].notna()]
    return [GrowthPoint(month_label=k, count=v) for k, v in _count_by(dated, "month_label")]


def package_distribution(memberships: pd.DataFrame) -> list[DistributionPoint]:
    """Memberships per package name."""
    return [DistributionPoint(name=k, value=v) for k, v in _count_by(memberships, "package_name")]


def status_distribution(memberships: pd.DataFrame) -> list[DistributionPoint]:
    """Memberships per status label."""
    return [DistributionPoint(name=k, value=v) for k, v in _count_by(memberships, "status")]


def _revenue_mask(memberships: pd.DataFrame) -> pd.Series:
    """Rows that can contribute to revenue: dated and with a numeric price."""
    return memberships["month_label"].notna() & memberships["price_valid"]


def revenue_series(memberships: pd.DataFrame) -> list[RevenuePoint]:
    """Summed package price per month bucket.

    Args:
        memberships: Output of `normalize_memberships`.
    """
    usable = memberships[_revenue_mask(memberships)]
    sums = usable.groupby("month_label", sort=False)["price"].sum()
    return [RevenuePoint(month_label=str(k), revenue=float(v)) for k, v in sums.items()]


def top_n_points(
    points: Sequence[DistributionPoint], n: int = DEFAULT_TOP_N
) -> list[DistributionPoint]:
    """Return the `n` largest points by value.

    Ties keep their original relative order (`sorted` is stable, also with
    `reverse=True`).

    Raises:
        ValueError: if `n` is negative.
    """
    if n < 0:
        raise ValueError(f"n must be >= 0 (got {n})")
    return sorted(points, key=lambda p: p.value, reverse=True)[:n]


def _data_quality(signups: pd.DataFrame, memberships: pd.DataFrame) -> DataQualityReport:
    return DataQualityReport(
        signups_total=len(signups),
        signups_bad_created_at=int(signups["month_label"].isna().sum()),
        memberships_total=len(memberships),
        memberships_bad_created_at=int(memberships["month_label"].isna().sum()),
        memberships_bad_price=int((~memberships["price_valid"]).sum()),
        memberships_excluded_from_revenue=int((~_revenue_mask(memberships)).sum()),
    )


def compute_analytics(
    signups: Iterable[Any],
    memberships: Iterable[Any],
    *,
    top_n: int = DEFAULT_TOP_N,
    tz: str = "UTC",
) -> AnalyticsResult:
    """Build every reporting series from one snapshot of signups and memberships.

    Args:
        signups: Signup rows; each should carry `created_at`.
        memberships: Membership rows with `package_name`, `status`, `price`
            and `created_at`.
        top_n: Length of the top-packages leaderboard.
        tz: Timezone in which month buckets are derived.

    Returns:
        AnalyticsResult with growth, package distribution, revenue, status
        distribution and top packages.

    Raises:
        ValueError: if `top_n` is negative or `tz` is unknown.
    """
    if top_n < 0:
        raise ValueError(f"top_n must be >= 0 (got {top_n})")

    sdf = normalize_signups(signups, tz)
    mdf = normalize_memberships(memberships, tz)

    packages = package_distribution(mdf)
    result = AnalyticsResult(
        growth=growth_series(sdf),
        package_distribution=packages,
        revenue=revenue_series(mdf),
        status_distribution=status_distribution(mdf),
        top_packages=top_n_points(packages, top_n),
        loaded=True,
        data_quality=_data_quality(sdf, mdf),
    )

    dq = result.data_quality
    if dq.signups_bad_created_at:
        log.warning(
            "Excluded %d of %d signups from growth: missing or unparseable created_at",
            dq.signups_bad_created_at,
            dq.signups_total,
        )
    if dq.memberships_excluded_from_revenue:
        log.warning(
            "Excluded %d of %d memberships from revenue "
            "(unparseable created_at: %d, non-numeric price: %d)",
            dq.memberships_excluded_from_revenue,
            dq.memberships_total,
            dq.memberships_bad_created_at,
            dq.memberships_bad_price,
        )

    log.info(
        "Analytics computed: signups=%d memberships=%d months=%d packages=%d",
        dq.signups_total,
        dq.memberships_total,
        len(result.growth),
        len(result.package_distribution),
    )
    return result
