"""
Dashboard aggregation.

Every section is computed with a handful of grouped queries and shaped in
Python, the same way the reporting code avoids per-row lookups.
"""

from __future__ import annotations

from collections import Counter
from datetime import datetime, time, timedelta, timezone

from sqlalchemy import distinct, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from assetdesk.models.assignment import ProductAssignment
from assetdesk.models.catalog import Branch, Category
from assetdesk.models.employee import Employee
from assetdesk.models.product import Product
from assetdesk.services.projections import (assigned_percentage, ensure_utc,
                                            format_relative)
from assetdesk.services.queries import open_assignment_clause

RECENT_ACTIVITY_LIMIT = 5
TREND_DAYS = 7


async def _count(db: AsyncSession, stmt) -> int:
    return (await db.execute(stmt)).scalar_one() or 0


async def _summary(db: AsyncSession) -> dict:
    return {
        "products": await _count(db, select(func.count(Product.id))),
        "assigned": await _count(
            db,
            select(func.count(distinct(ProductAssignment.product_id))).where(
                open_assignment_clause()
            ),
        ),
        "categories": await _count(db, select(func.count(Category.id))),
        "branches": await _count(db, select(func.count(Branch.id))),
        "employees": await _count(
            db, select(func.count(Employee.id)).where(Employee.is_active.is_(True))
        ),
    }


async def _weekly_trend(db: AsyncSession, now: datetime) -> list[dict]:
    today = now.date()
    first_day = today - timedelta(days=TREND_DAYS - 1)
    start = datetime.combine(first_day, time.min, tzinfo=timezone.utc)

    result = await db.execute(
        select(ProductAssignment.assigned_at).where(ProductAssignment.assigned_at >= start)
    )
    per_day = Counter(ensure_utc(ts).date() for ts in result.scalars().all())

    trend = []
    for offset in range(TREND_DAYS):
        day = first_day + timedelta(days=offset)
        trend.append(
            {
                "day": day.strftime("%a"),
                "date": day.isoformat(),
                "assignments": per_day.get(day, 0),
            }
        )
    return trend


async def _recent_activities(db: AsyncSession, now: datetime) -> list[dict]:
    result = await db.execute(
        select(ProductAssignment)
        .order_by(ProductAssignment.assigned_at.desc(), ProductAssignment.id.desc())
        .limit(RECENT_ACTIVITY_LIMIT)
    )
    activities = []
    for a in result.scalars().all():
        assigned_at = ensure_utc(a.assigned_at)
        activities.append(
            {
                "id": a.id,
                "status": a.status,
                "product": {"name": a.product.name},
                "employee": {"name": a.employee.name},
                "assigned_at": assigned_at.isoformat(),
                "assigned_ago": format_relative(assigned_at, now),
            }
        )
    return activities


async def _category_distribution(db: AsyncSession) -> list[dict]:
    totals = await db.execute(
        select(Category.id, Category.name, func.count(Product.id))
        .select_from(Category)
        .outerjoin(Product, Product.category_id == Category.id)
        .group_by(Category.id, Category.name)
        .order_by(Category.name)
    )
    assigned_rows = await db.execute(
        select(Product.category_id, func.count(distinct(ProductAssignment.product_id)))
        .join(ProductAssignment, ProductAssignment.product_id == Product.id)
        .where(open_assignment_clause())
        .group_by(Product.category_id)
    )
    assigned_by_category = dict(assigned_rows.all())

    return [
        {
            "id": cat_id,
            "name": name,
            "_count": {"products": total},
            "assigned": assigned_by_category.get(cat_id, 0),
            "assigned_percentage": assigned_percentage(
                assigned_by_category.get(cat_id, 0), total
            ),
        }
        for cat_id, name, total in totals.all()
    ]


async def build_dashboard(db: AsyncSession, now: datetime | None = None) -> dict:
    now = ensure_utc(now) or datetime.now(timezone.utc)
    return {
        "summary": await _summary(db),
        "weekly_trend": await _weekly_trend(db, now),
        "recent_activities": await _recent_activities(db, now),
        "category_distribution": await _category_distribution(db),
    }
