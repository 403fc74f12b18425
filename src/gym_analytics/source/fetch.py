"""MongoDB readers for one gym's records.

Each reader scopes its query by `gym_id`, orders by `created_at` and strips
`_id`. Driver errors are re-raised as `DataSourceError` so callers handle a
single failure type at the source boundary.

`load_snapshot` issues the signup and membership reads concurrently and
returns only when both have completed, so aggregation always sees one
consistent pair of record sets.

Storage expectation: `created_at` must be stored as a BSON date. Window
filters compare it with `datetime` bounds, and MongoDB never matches a date
bound against a string, so string-typed `created_at` documents would be
silently missing from every windowed read (they are still returned, and
parsed, when no window is applied).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable
from typing import cast, Any as TypingAny

from dask import delayed, compute  # type: ignore[attr-defined]
from pymongo import ASCENDING
from pymongo.errors import PyMongoError

from gym_analytics.clean.normalize import UNASSIGNED_PACKAGE
from gym_analytics.source.time_range import DateWindow

log = logging.getLogger(__name__)

USERS = "users"
MEMBERSHIPS = "memberships"
STAFF = "staff"
ROLES = "roles"

SIGNUP_PROJECTION = {"_id": False, "id": True, "created_at": True}
MEMBERSHIP_PROJECTION = {
    "_id": False,
    "id": True,
    "user_id": True,
    "package_name": True,
    "status": True,
    "price": True,
    "coaching_cost": True,
    "created_at": True,
}
STAFF_PROJECTION = {"_id": False, "id": True, "full_name": True, "is_active": True, "role_id": True}


class DataSourceError(RuntimeError):
    """Raised when records cannot be read from the store."""


@dataclass(frozen=True)
class RecordSnapshot:
    """Signups and memberships read for the same request.

    Attributes:
        signups: Raw signup documents.
        memberships: Raw membership documents.
    """
    signups: list[dict[str, Any]] = field(default_factory=list)
    memberships: list[dict[str, Any]] = field(default_factory=list)


def _scoped_query(gym_id: str, window: DateWindow | None) -> dict[str, Any]:
    query: dict[str, Any] = {"gym_id": gym_id}
    if window is not None:
        query["created_at"] = {"$gte": window.start, "$lte": window.end}
    return query


def _find(
    db: Any,
    collection_name: str,
    query: dict[str, Any],
    projection: dict[str, Any],
    sort_field: str | None = "created_at",
    limit: int = 0,
) -> list[dict[str, Any]]:
    """Run a find() and materialize it, translating driver errors."""
    try:
        cursor = db[collection_name].find(query, projection)
        if sort_field is not None:
            cursor = cursor.sort(sort_field, ASCENDING)
        if limit:
            cursor = cursor.limit(limit)
        docs = list(cursor)
    except PyMongoError as e:
        raise DataSourceError(f"Failed to read {collection_name}: {e}") from e

    log.info("Fetched %d documents from %s", len(docs), collection_name)
    return docs


def fetch_signups(db: Any, gym_id: str, window: DateWindow | None = None) -> list[dict[str, Any]]:
    """Return signup rows (`id`, `created_at`) for a gym.

    Args:
        db: PyMongo Database.
        gym_id: Tenant id.
        window: Optional `created_at` bounds.

    Raises:
        DataSourceError: if the query fails.
    """
    return _find(db, USERS, _scoped_query(gym_id, window), SIGNUP_PROJECTION)


def fetch_memberships(
    db: Any, gym_id: str, window: DateWindow | None = None
) -> list[dict[str, Any]]:
    """Return membership rows joined with package price for a gym.

    Raises:
        DataSourceError: if the query fails.
    """
    return _find(db, MEMBERSHIPS, _scoped_query(gym_id, window), MEMBERSHIP_PROJECTION)


def fetch_staff(db: Any, gym_id: str) -> list[dict[str, Any]]:
    """Return staff rows for a gym.

    Raises:
        DataSourceError: if the query fails.
    """
    return _find(db, STAFF, {"gym_id": gym_id}, STAFF_PROJECTION)


def fetch_roles(db: Any) -> dict[str, str]:
    """Return a `{role_id: role_name}` mapping.

    Raises:
        DataSourceError: if the query fails.
    """
    docs = _find(db, ROLES, {}, {"_id": False, "id": True, "name": True}, sort_field=None)
    return {str(d["id"]): str(d.get("name") or d["id"]) for d in docs if d.get("id") is not None}


def fetch_package_members(
    db: Any,
    gym_id: str,
    package_name: str,
    limit: int = 1000,
) -> list[dict[str, Any]]:
    """Return membership rows of one package, for drill-down tables.

    The "Unassigned" label selects rows whose package is missing or blank.

    Raises:
        DataSourceError: if the query fails.
    """
    query: dict[str, Any] = {"gym_id": gym_id}
    if package_name == UNASSIGNED_PACKAGE:
        query["package_name"] = {"$in": [None, ""]}
    else:
        query["package_name"] = package_name
    return _find(db, MEMBERSHIPS, query, {"_id": False}, limit=limit)


def fetch_revenue_rows(db: Any, gym_id: str, limit: int = 5000) -> list[dict[str, Any]]:
    """Return every membership cost row of a gym, ignoring any time window.

    Revenue totals and the revenue drill-down cover all memberships, not only
    those created inside the selected range.

    Raises:
        DataSourceError: if the query fails.
    """
    return _find(db, MEMBERSHIPS, {"gym_id": gym_id}, MEMBERSHIP_PROJECTION, limit=limit)


def _fetch_or_empty(
    fetch: Callable[..., list[dict[str, Any]]],
    allow_empty: bool,
    *args: Any,
) -> list[dict[str, Any]]:
    try:
        return fetch(*args)
    except DataSourceError as e:
        if not allow_empty:
            raise
        log.warning("%s failed, continuing with no rows: %s", fetch.__name__, e)
        return []


def load_snapshot(
    db: Any,
    gym_id: str,
    window: DateWindow | None = None,
    allow_empty: bool = False,
) -> RecordSnapshot:
    """Fetch signups and memberships concurrently.

    Args:
        db: PyMongo Database.
        gym_id: Tenant id.
        window: Optional `created_at` bounds applied to both reads.
        allow_empty: Degrade a failed read to an empty list instead of
            raising.

    Returns:
        RecordSnapshot holding both record sets.

    Raises:
        DataSourceError: if a read fails and `allow_empty` is False.
    """
    tasks = [
        delayed(_fetch_or_empty)(fetch_signups, allow_empty, db, gym_id, window),
        delayed(_fetch_or_empty)(fetch_memberships, allow_empty, db, gym_id, window),
    ]
    # `compute` is untyped in our environment; cast to Any before calling
    signups, memberships = cast(TypingAny, compute)(*tasks, scheduler="threads")
    return RecordSnapshot(signups=signups, memberships=memberships)
