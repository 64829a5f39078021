"""
List-endpoint plumbing: pagination, free-text search and assignment filters.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Any

from sqlalchemy import Select, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from assetdesk.core.exceptions import ValidationError
from assetdesk.models.assignment import AssignmentStatus, ProductAssignment


@dataclass(frozen=True)
class PageParams:
    page: int
    limit: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def escape_like(term: str) -> str:
    """Escape SQL LIKE metacharacters to prevent wildcard injection."""
    return term.replace("\\", "\\\\").replace("%", r"\%").replace("_", r"\_")


def apply_search(stmt: Select, search: str | None, *columns: Any) -> Select:
    if not search or not search.strip():
        return stmt
    pattern = f"%{escape_like(search.strip())}%"
    return stmt.where(or_(*(col.ilike(pattern, escape="\\") for col in columns)))


async def paginate(db: AsyncSession, stmt: Select, params: PageParams) -> dict[str, Any]:
    """Run ``stmt`` for one page and count the full result set.

    ``stmt`` must already be ordered deterministically; the count runs over
    the same filters so ``total`` stays stable between calls.
    """
    count_stmt = select(func.count()).select_from(stmt.order_by(None).subquery())
    total = (await db.execute(count_stmt)).scalar_one()
    result = await db.execute(stmt.offset(params.offset).limit(params.limit))
    return {
        "items": list(result.scalars().all()),
        "total": total,
        "page": params.page,
        "limit": params.limit,
    }


def filter_assignments(
    stmt: Select,
    *,
    product_id: int | None = None,
    employee_id: int | None = None,
    status: AssignmentStatus | None = None,
    from_date: date | None = None,
    to_date: date | None = None,
) -> Select:
    """Narrow an assignment query; the date range is inclusive on both ends."""
    if from_date and to_date and from_date > to_date:
        raise ValidationError("fromDate must not be after toDate")
    if product_id is not None:
        stmt = stmt.where(ProductAssignment.product_id == product_id)
    if employee_id is not None:
        stmt = stmt.where(ProductAssignment.employee_id == employee_id)
    if status is not None:
        stmt = stmt.where(ProductAssignment.status == status.value)
    if from_date is not None:
        start = datetime.combine(from_date, time.min, tzinfo=timezone.utc)
        stmt = stmt.where(ProductAssignment.assigned_at >= start)
    if to_date is not None:
        end = datetime.combine(to_date + timedelta(days=1), time.min, tzinfo=timezone.utc)
        stmt = stmt.where(ProductAssignment.assigned_at < end)
    return stmt


def open_assignment_clause():
    return (ProductAssignment.status == AssignmentStatus.ASSIGNED.value) & (
        ProductAssignment.returned_at.is_(None)
    )
