"""
Derived views over assignment history.

"Is this product out with someone?" is answered here and only here. A
product is assigned iff one of its assignments is ASSIGNED and has no
``returned_at``. Both ORM rows and plain mappings (API payloads, as seen
by the client) are accepted.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from typing import Any

from assetdesk.models.assignment import AssignmentStatus


def _field(assignment: Any, attr: str, key: str) -> Any:
    if isinstance(assignment, Mapping):
        return assignment.get(key, assignment.get(attr))
    return getattr(assignment, attr, None)


def ensure_utc(dt: datetime | None) -> datetime | None:
    """Normalise a potentially-naive timestamp to UTC-aware."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def is_open(assignment: Any) -> bool:
    status = _field(assignment, "status", "status")
    if isinstance(status, AssignmentStatus):
        status = status.value
    return status == AssignmentStatus.ASSIGNED.value and _field(
        assignment, "returned_at", "returnedAt"
    ) is None


def current_assignment(assignments: Iterable[Any]) -> Any | None:
    """Return the open assignment of a product, or ``None``."""
    return next((a for a in assignments if is_open(a)), None)


def is_assigned(assignments: Iterable[Any]) -> bool:
    return current_assignment(assignments) is not None


def assigned_percentage(assigned: int, total: int) -> int:
    if total <= 0:
        return 0
    return round(assigned / total * 100)


_UNITS = (
    ("year", 365 * 24 * 3600),
    ("month", 30 * 24 * 3600),
    ("day", 24 * 3600),
    ("hour", 3600),
    ("minute", 60),
)


def format_relative(ts: datetime | str, now: datetime | None = None) -> str:
    """Render ``ts`` as "3 hours ago" relative to ``now``."""
    if isinstance(ts, str):
        ts = datetime.fromisoformat(ts.replace("Z", "+00:00"))
    ts = ensure_utc(ts)
    now = ensure_utc(now) or datetime.now(timezone.utc)
    seconds = int((now - ts).total_seconds())
    if seconds < 0:
        return "just now"
    if seconds < 45:
        return "less than a minute ago"
    for unit, size in _UNITS:
        if seconds >= size:
            count = seconds // size
            return f"{count} {unit}{'s' if count != 1 else ''} ago"
    return "1 minute ago"
