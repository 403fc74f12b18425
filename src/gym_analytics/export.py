"""CSV export of computed series.

Each series is written as its own CSV file with one column per point field,
so the files open directly in a spreadsheet.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Sequence

import pandas as pd
from pydantic import BaseModel

from gym_analytics.models import (
    AnalyticsResult,
    DistributionPoint,
    GrowthPoint,
    RevenuePoint,
)

log = logging.getLogger(__name__)

# attribute -> (file name, point model)
SERIES_FILES: dict[str, tuple[str, type[BaseModel]]] = {
    "growth": ("user-growth.csv", GrowthPoint),
    "package_distribution": ("package-distribution.csv", DistributionPoint),
    "revenue": ("revenue.csv", RevenuePoint),
    "status_distribution": ("member-status.csv", DistributionPoint),
    "top_packages": ("top-packages.csv", DistributionPoint),
}


def series_to_frame(
    points: Sequence[BaseModel],
    model: type[BaseModel] | None = None,
) -> pd.DataFrame:
    """Convert a series into a DataFrame, preserving point order.

    Args:
        points: Pydantic points of one series.
        model: Point model; used for column names when `points` is empty.

    Returns:
        pandas.DataFrame with one row per point.
    """
    if points:
        return pd.DataFrame([p.model_dump() for p in points])
    columns = list(model.model_fields) if model is not None else []
    return pd.DataFrame(columns=columns)


def export_series_csv(
    points: Sequence[BaseModel],
    path: Path,
    model: type[BaseModel] | None = None,
) -> Path:
    """Write one series to `path` (parent directories are created).

    Returns:
        The written path.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    series_to_frame(points, model).to_csv(path, index=False)
    log.info("Exported %d rows to %s", len(points), path)
    return path


def export_analytics(result: AnalyticsResult, out_dir: Path) -> list[Path]:
    """Write every series of `result` into `out_dir`.

    Returns:
        Paths of the written files, in series order.
    """
    return [
        export_series_csv(getattr(result, attr), out_dir / file_name, model)
        for attr, (file_name, model) in SERIES_FILES.items()
    ]
