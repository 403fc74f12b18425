"""Command-line interface for gym reports.

Provides subcommands: `report` and `staff`. Each command is implemented as a
`cmd_*` function that accepts an argparse namespace.
"""
from __future__ import annotations

import argparse
import logging
from pathlib import Path

from dotenv import load_dotenv

from gym_analytics.config import get_settings
from gym_analytics.logging_config import configure_logging
from gym_analytics.db import get_client, get_db

# SOURCE
from gym_analytics.source.fetch import DataSourceError, fetch_roles, fetch_staff, load_snapshot
from gym_analytics.source.time_range import DEFAULT_PRESET, PRESETS, resolve_window

# AGGREGATE
from gym_analytics.aggregate.analytics import compute_analytics
from gym_analytics.aggregate.breakdowns import compute_staff_breakdown
from gym_analytics.export import export_analytics

log = logging.getLogger(__name__)


# --------------------------------------------------
# Helpers
# --------------------------------------------------
def _gym_id(args: argparse.Namespace, default: str | None) -> str:
    """Return the gym id from the command line or settings, or exit with status 2."""
    gym_id = args.gym or default
    if not gym_id:
        log.error("No gym selected. Pass --gym or set GYM_ID in .env.")
        raise SystemExit(2)
    return gym_id


# --------------------------------------------------
# REPORT
# --------------------------------------------------
def cmd_report(args: argparse.Namespace) -> None:
    """Fetch one gym's records, compute analytics and optionally export CSVs.

    Args:
        args: argparse namespace with `gym`, `range`, `date_from`, `date_to`,
            `top_n`, `export`, `export_dir`, `allow_empty`.
    """
    s = get_settings()
    gym_id = _gym_id(args, s.gym_id)
    window = resolve_window(args.range, args.date_from, args.date_to, tz=s.report_tz)
    top_n = s.top_n if args.top_n is None else args.top_n

    client = get_client(s.mongo_uri, tls=s.mongo_tls)
    try:
        snapshot = load_snapshot(
            get_db(client, s.mongo_db), gym_id, window, allow_empty=args.allow_empty
        )
    except DataSourceError as e:
        log.error("Could not load records for gym=%s: %s", gym_id, e)
        raise SystemExit(1)
    finally:
        client.close()

    result = compute_analytics(
        snapshot.signups, snapshot.memberships, top_n=top_n, tz=s.report_tz
    )

    for p in result.growth:
        log.info("growth  %s: %d", p.month_label, p.count)
    for p in result.revenue:
        log.info("revenue %s: %.2f", p.month_label, p.revenue)
    for p in result.top_packages:
        log.info("top package %s: %d", p.name, p.value)
    for p in result.status_distribution:
        log.info("status %s: %d", p.name, p.value)

    if args.export or args.export_dir is not None:
        out_dir = args.export_dir or s.export_dir / gym_id
        paths = export_analytics(result, out_dir)
        log.info("Wrote %d CSV files to %s", len(paths), out_dir)

    log.info("Report complete for gym=%s", gym_id)


# --------------------------------------------------
# STAFF
# --------------------------------------------------
def cmd_staff(args: argparse.Namespace) -> None:
    """Log the staff breakdown (per role, total, active) for a gym."""
    s = get_settings()
    gym_id = _gym_id(args, s.gym_id)

    client = get_client(s.mongo_uri, tls=s.mongo_tls)
    try:
        db = get_db(client, s.mongo_db)
        breakdown = compute_staff_breakdown(fetch_staff(db, gym_id), fetch_roles(db))
    except DataSourceError as e:
        log.error("Could not load staff for gym=%s: %s", gym_id, e)
        raise SystemExit(1)
    finally:
        client.close()

    for r in breakdown.roles:
        log.info("role %s: %d", r.role, r.count)
    log.info("staff total=%d active=%d", breakdown.total, breakdown.active)


# --------------------------------------------------
# CLI
# --------------------------------------------------
def build_parser() -> argparse.ArgumentParser:
    """Build and return the top-level argument parser for the CLI.

    Returns:
        Configured argparse.ArgumentParser instance.
    """
    p = argparse.ArgumentParser(prog="gym-analytics")
    sub = p.add_subparsers(dest="cmd", required=True)

    p_report = sub.add_parser("report")
    p_report.add_argument("--gym", default=None)
    p_report.add_argument("--range", choices=PRESETS, default=DEFAULT_PRESET)
    p_report.add_argument("--from", dest="date_from", default=None, help="YYYY-MM-DD (custom range)")
    p_report.add_argument("--to", dest="date_to", default=None, help="YYYY-MM-DD (custom range)")
    p_report.add_argument("--top-n", type=int, default=None)
    p_report.add_argument("--export", action="store_true")
    p_report.add_argument("--export-dir", type=Path, default=None)
    p_report.add_argument("--allow-empty", action="store_true")

    p_staff = sub.add_parser("staff")
    p_staff.add_argument("--gym", default=None)

    return p


def main(argv: list[str] | None = None) -> None:
    """CLI entry point: parse args, configure logging and dispatch commands."""
    load_dotenv()
    configure_logging(Path("logs/reports.log"))

    args = build_parser().parse_args(argv)

    if args.cmd == "report":
        cmd_report(args)
    elif args.cmd == "staff":
        cmd_staff(args)
    else:
        raise SystemExit(2)


if __name__ == "__main__":
    main()
