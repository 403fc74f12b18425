from __future__ import annotations

import logging
import random
from datetime import datetime, timezone

import pandas as pd
import pytest

from gym_analytics.aggregate.analytics import compute_analytics, top_n_points
from gym_analytics.models import DistributionPoint, MembershipRecord, SignupRecord

MEMBERSHIPS = [
    {"packageName": "Gold", "status": "active", "price": 50, "createdAt": "2024-01-01"},
    {"packageName": "Gold", "status": "paused", "price": 50, "createdAt": "2024-01-15"},
    {"packageName": "Silver", "status": "active", "price": 30, "createdAt": "2024-02-01"},
]


def _pairs(points, label: str, value: str) -> list[tuple]:
    return [(getattr(p, label), getattr(p, value)) for p in points]


def test_growth_buckets_signups_by_month() -> None:
    signups = [
        {"createdAt": "2024-01-05"},
        {"createdAt": "2024-01-20"},
        {"createdAt": "2024-02-01"},
    ]
    result = compute_analytics(signups, [])
    assert _pairs(result.growth, "month_label", "count") == [("Jan 24", 2), ("Feb 24", 1)]


def test_membership_series() -> None:
    result = compute_analytics([], MEMBERSHIPS)
    assert _pairs(result.package_distribution, "name", "value") == [("Gold", 2), ("Silver", 1)]
    assert _pairs(result.revenue, "month_label", "revenue") == [("Jan 24", 100), ("Feb 24", 30)]
    assert _pairs(result.status_distribution, "name", "value") == [("active", 2), ("paused", 1)]
    assert _pairs(result.top_packages, "name", "value") == [("Gold", 2), ("Silver", 1)]
    assert result.loaded is True


def test_empty_input_gives_empty_series() -> None:
    result = compute_analytics([], [])
    assert result.growth == []
    assert result.package_distribution == []
    assert result.revenue == []
    assert result.status_distribution == []
    assert result.top_packages == []
    assert result.loaded is True
    assert not result.data_quality.has_issues


def test_first_seen_order_is_kept() -> None:
    signups = [
        {"created_at": "2024-03-02"},
        {"created_at": "2024-01-10"},
        {"created_at": "2024-03-20"},
        {"created_at": "2023-12-31"},
    ]
    result = compute_analytics(signups, [])
    assert [p.month_label for p in result.growth] == ["Mar 24", "Jan 24", "Dec 23"]


def test_missing_fields_use_sentinels() -> None:
    memberships = [
        {"package_name": None, "status": None, "price": None, "created_at": "2024-05-01"},
        {"package_name": "", "status": "  ", "created_at": "2024-05-02"},
        {"status": "active", "price": "25.5", "created_at": "2024-05-03"},
    ]
    result = compute_analytics([], memberships)
    assert _pairs(result.package_distribution, "name", "value") == [("Unassigned", 3)]
    assert _pairs(result.status_distribution, "name", "value") == [("unknown", 2), ("active", 1)]
    assert _pairs(result.revenue, "month_label", "revenue") == [("May 24", 25.5)]


def test_malformed_rows_only_leave_the_affected_series(caplog: pytest.LogCaptureFixture) -> None:
    signups = [{"created_at": "2024-01-05"}, {"created_at": "not-a-date"}, {"id": 3}]
    memberships = [
        {"package_name": "Gold", "status": "active", "price": 50, "created_at": "garbage"},
        {"package_name": "Gold", "status": "active", "price": "n/a", "created_at": "2024-01-10"},
        {"package_name": "Silver", "status": "active", "price": 30, "created_at": "2024-01-11"},
    ]
    with caplog.at_level(logging.WARNING, logger="gym_analytics.aggregate.analytics"):
        result = compute_analytics(signups, memberships)

    assert _pairs(result.growth, "month_label", "count") == [("Jan 24", 1)]
    # both bad rows still count towards the distributions
    assert _pairs(result.package_distribution, "name", "value") == [("Gold", 2), ("Silver", 1)]
    assert _pairs(result.revenue, "month_label", "revenue") == [("Jan 24", 30)]

    dq = result.data_quality
    assert dq.signups_total == 3
    assert dq.signups_bad_created_at == 2
    assert dq.memberships_total == 3
    assert dq.memberships_bad_created_at == 1
    assert dq.memberships_bad_price == 1
    assert dq.has_issues
    assert "non-numeric price" in caplog.text


def test_accepts_models_datetimes_and_generators() -> None:
    signups = (SignupRecord(createdAt=datetime(2024, 6, d, tzinfo=timezone.utc)) for d in (1, 2))
    memberships = [
        MembershipRecord(packageName="Gold", status="active", price=40, createdAt="2024-06-03"),
        MembershipRecord(package_name="Gold", status="active", price="10", created_at="2024-07-01T08:00:00Z"),
    ]
    result = compute_analytics(signups, memberships)
    assert _pairs(result.growth, "month_label", "count") == [("Jun 24", 2)]
    assert _pairs(result.revenue, "month_label", "revenue") == [("Jun 24", 40), ("Jul 24", 10)]


def test_month_buckets_follow_report_timezone() -> None:
    signups = [{"created_at": "2024-01-31T23:30:00-05:00"}]
    assert compute_analytics(signups, []).growth[0].month_label == "Feb 24"
    ny = compute_analytics(signups, [], tz="America/New_York")
    assert ny.growth[0].month_label == "Jan 24"


def test_naive_timestamps_are_local_to_report_timezone() -> None:
    signups = [{"created_at": "2024-02-01T00:30:00"}]
    result = compute_analytics(signups, [], tz="America/New_York")
    assert result.growth[0].month_label == "Feb 24"


def test_every_month_has_a_fixed_english_label() -> None:
    signups = [{"created_at": f"2025-{m:02d}-15"} for m in range(1, 13)]
    labels = [p.month_label for p in compute_analytics(signups, []).growth]
    assert labels == [
        "Jan 25", "Feb 25", "Mar 25", "Apr 25", "May 25", "Jun 25",
        "Jul 25", "Aug 25", "Sep 25", "Oct 25", "Nov 25", "Dec 25",
    ]


def test_top_packages_is_stable_and_truncated() -> None:
    counts = {"A": 1, "B": 2, "C": 2, "D": 1, "E": 3, "F": 1}
    memberships = [
        {"package_name": name, "status": "active", "created_at": "2024-01-01"}
        for name, n in counts.items()
        for _ in range(n)
    ]
    result = compute_analytics([], memberships)
    assert _pairs(result.top_packages, "name", "value") == [
        ("E", 3), ("B", 2), ("C", 2), ("A", 1), ("D", 1),
    ]

    top2 = compute_analytics([], memberships, top_n=2)
    assert [p.name for p in top2.top_packages] == ["E", "B"]


def test_top_n_points_rejects_negative() -> None:
    with pytest.raises(ValueError):
        top_n_points([DistributionPoint(name="A", value=1)], -1)
    with pytest.raises(ValueError):
        compute_analytics([], [], top_n=-1)


def test_unknown_timezone_is_rejected() -> None:
    with pytest.raises(ValueError):
        compute_analytics([], [], tz="Mars/Olympus_Mons")


def test_adding_a_new_package_adds_exactly_one_entry() -> None:
    before = compute_analytics([], MEMBERSHIPS)
    extra = {"package_name": "Platinum", "status": "active", "price": 90, "created_at": "2024-03-01"}
    after = compute_analytics([], MEMBERSHIPS + [extra])

    assert len(after.package_distribution) == len(before.package_distribution) + 1
    assert after.package_distribution[:-1] == before.package_distribution
    assert after.package_distribution[-1].name == "Platinum"
    assert after.package_distribution[-1].value == 1


# --------------------------------------------------
# Properties over random inputs
# --------------------------------------------------
PACKAGES = ["Gold", "Silver", "Bronze", "Day Pass", "Student", "Family", "VIP", None]
STATUSES = ["active", "paused", "expired", "frozen", None]
DATES = ["2023-11-03", "2023-12-24T18:00:00Z", "2024-01-05", "2024-02-29", "bad-date", None]
PRICES = [0, 15, 30.5, 50, "45", None, "free"]


def _random_input(seed: int) -> tuple[list[dict], list[dict]]:
    rng = random.Random(seed)
    signups = [{"id": i, "created_at": rng.choice(DATES)} for i in range(rng.randint(0, 40))]
    memberships = [
        {
            "id": i,
            "package_name": rng.choice(PACKAGES),
            "status": rng.choice(STATUSES),
            "price": rng.choice(PRICES),
            "created_at": rng.choice(DATES),
        }
        for i in range(rng.randint(0, 60))
    ]
    return signups, memberships


@pytest.mark.parametrize("seed", range(12))
def test_series_properties(seed: int) -> None:
    signups, memberships = _random_input(seed)
    result = compute_analytics(signups, memberships)

    for labels in (
        [p.month_label for p in result.growth],
        [p.month_label for p in result.revenue],
        [p.name for p in result.package_distribution],
        [p.name for p in result.status_distribution],
        [p.name for p in result.top_packages],
    ):
        assert len(labels) == len(set(labels))

    dated_signups = [s for s in signups if s["created_at"] not in (None, "bad-date")]
    assert sum(p.count for p in result.growth) == len(dated_signups)

    expected_revenue = sum(
        float(m["price"] or 0)
        for m in memberships
        if m["created_at"] not in (None, "bad-date") and m["price"] != "free"
    )
    assert sum(p.revenue for p in result.revenue) == pytest.approx(expected_revenue)

    assert sum(p.value for p in result.package_distribution) == len(memberships)
    assert sum(p.value for p in result.status_distribution) == len(memberships)

    top = result.top_packages
    assert len(top) <= 5
    assert all(p in result.package_distribution for p in top)
    assert [p.value for p in top] == sorted((p.value for p in top), reverse=True)
    order = [p.name for p in result.package_distribution]
    for a, b in zip(top, top[1:]):
        if a.value == b.value:
            assert order.index(a.name) < order.index(b.name)


@pytest.mark.parametrize("seed", range(4))
def test_repeated_calls_are_identical(seed: int) -> None:
    signups, memberships = _random_input(seed)
    first = compute_analytics(signups, memberships)
    second = compute_analytics(signups, memberships)
    assert first.model_dump() == second.model_dump()


def test_relative_date_words_are_not_timestamps() -> None:
    result = compute_analytics([{"created_at": "now"}, {"created_at": "today"}], [])
    assert result.growth == []
    assert result.data_quality.signups_bad_created_at == 2


def test_nullable_package_names_are_unassigned() -> None:
    memberships = [
        {"package_name": pd.NA, "status": pd.NA, "price": pd.NA, "created_at": "2024-01-01"},
        {"package_name": "Gold", "status": "active", "price": 20, "created_at": "2024-01-02"},
    ]
    result = compute_analytics([], memberships)
    assert _pairs(result.package_distribution, "name", "value") == [("Unassigned", 1), ("Gold", 1)]
    assert _pairs(result.status_distribution, "name", "value") == [("unknown", 1), ("active", 1)]
    assert _pairs(result.revenue, "month_label", "revenue") == [("Jan 24", 20)]


def test_revenue_exclusions_count_each_row_once(caplog: pytest.LogCaptureFixture) -> None:
    memberships = [
        {"package_name": "Gold", "price": "n/a", "created_at": "garbage"},
        {"package_name": "Gold", "price": "n/a", "created_at": "2024-01-01"},
        {"package_name": "Gold", "price": 10, "created_at": None},
        {"package_name": "Gold", "price": 10, "created_at": "2024-01-01"},
    ]
    with caplog.at_level(logging.WARNING, logger="gym_analytics.aggregate.analytics"):
        dq = compute_analytics([], memberships).data_quality

    assert dq.memberships_bad_created_at == 2
    assert dq.memberships_bad_price == 2
    assert dq.memberships_excluded_from_revenue == 3
    assert "Excluded 3 of 4 memberships from revenue" in caplog.text
