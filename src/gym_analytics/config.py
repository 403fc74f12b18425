"""Configuration helpers and Settings container.

This module provides a small `Settings` dataclass and `get_settings` which
reads environment variables (including checks that `REPORT_TOP_N` and
`REPORT_TZ` are usable).
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
import os

from dotenv import load_dotenv

# Explicitly load .env from project root
PROJECT_ROOT = Path(__file__).resolve().parents[2]
load_dotenv(PROJECT_ROOT / ".env")

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    """Container for reporting configuration read from the environment.

    Attributes:
        mongo_uri: MongoDB connection URI.
        mongo_db: Target MongoDB database name.
        mongo_tls: Whether to connect with TLS (certifi CA bundle).
        gym_id: Default tenant id; may be overridden on the command line.
        report_tz: IANA timezone used to derive month buckets.
        top_n: Length of the top-packages leaderboard.
        export_dir: Directory where CSV exports are written.
    """
    mongo_uri: str
    mongo_db: str
    mongo_tls: bool
    gym_id: str | None
    report_tz: str
    top_n: int
    export_dir: Path


def get_settings() -> Settings:
    """Read environment variables and return a frozen `Settings` object.

    Raises:
        RuntimeError: if `REPORT_TOP_N` is not a non-negative integer or
            `REPORT_TZ` is not a known timezone.
    """
    mongo_uri = os.getenv("MONGO_URI", "mongodb://localhost:27017")
    mongo_db = os.getenv("MONGO_DB", "gym")
    mongo_tls = os.getenv("MONGO_TLS", "true").strip().lower() in _TRUTHY
    gym_id = os.getenv("GYM_ID", "").strip() or None
    report_tz = os.getenv("REPORT_TZ", "UTC").strip() or "UTC"
    export_dir = Path(os.getenv("EXPORT_DIR", "exports"))

    raw_top_n = os.getenv("REPORT_TOP_N", "5").strip()
    try:
        top_n = int(raw_top_n)
    except ValueError:
        top_n = -1
    if top_n < 0:
        raise RuntimeError(
            f"REPORT_TOP_N must be a non-negative integer (got {raw_top_n!r})."
        )

    try:
        ZoneInfo(report_tz)
    except (ZoneInfoNotFoundError, ValueError):
        raise RuntimeError(
            f"REPORT_TZ must be an IANA timezone name such as 'UTC' or "
            f"'Africa/Addis_Ababa' (got {report_tz!r})."
        ) from None

    return Settings(
        mongo_uri=mongo_uri,
        mongo_db=mongo_db,
        mongo_tls=mongo_tls,
        gym_id=gym_id,
        report_tz=report_tz,
        top_n=top_n,
        export_dir=export_dir,
    )
