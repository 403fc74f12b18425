from __future__ import annotations

from pathlib import Path

import pandas as pd

from gym_analytics.aggregate.analytics import compute_analytics
from gym_analytics.export import export_analytics, export_series_csv, series_to_frame
from gym_analytics.models import GrowthPoint


def test_series_to_frame_keeps_order_and_columns() -> None:
    points = [GrowthPoint(month_label="Feb 24", count=1), GrowthPoint(month_label="Jan 24", count=3)]
    df = series_to_frame(points)
    assert list(df.columns) == ["month_label", "count"]
    assert df["month_label"].tolist() == ["Feb 24", "Jan 24"]
    assert list(series_to_frame([], GrowthPoint).columns) == ["month_label", "count"]


def test_export_series_csv_creates_parent_dirs(tmp_path: Path) -> None:
    path = export_series_csv([], tmp_path / "nested" / "growth.csv", GrowthPoint)
    assert path.read_text().strip() == "month_label,count"


def test_export_analytics_writes_every_series(tmp_path: Path) -> None:
    result = compute_analytics(
        [{"created_at": "2024-01-05"}],
        [{"package_name": "Gold", "status": "active", "price": 50, "created_at": "2024-01-01"}],
    )
    paths = export_analytics(result, tmp_path)
    assert [p.name for p in paths] == [
        "user-growth.csv",
        "package-distribution.csv",
        "revenue.csv",
        "member-status.csv",
        "top-packages.csv",
    ]
    revenue = pd.read_csv(tmp_path / "revenue.csv")
    assert revenue.to_dict("records") == [{"month_label": "Jan 24", "revenue": 50.0}]
