"""Pydantic schemas for the dashboard payload."""

from __future__ import annotations

from pydantic import Field

from assetdesk.schemas.common import CamelModel


class DashboardSummary(CamelModel):
    products: int = 0
    assigned: int = 0
    categories: int = 0
    branches: int = 0
    employees: int = 0


class WeeklyTrendDay(CamelModel):
    day: str
    date: str
    assignments: int


class NameOnly(CamelModel):
    name: str


class RecentActivity(CamelModel):
    id: int
    status: str
    product: NameOnly
    employee: NameOnly
    assigned_at: str
    assigned_ago: str


class ProductCount(CamelModel):
    products: int


class CategorySlice(CamelModel):
    id: int
    name: str
    count: ProductCount = Field(alias="_count")
    assigned: int
    assigned_percentage: int


class DashboardData(CamelModel):
    summary: DashboardSummary
    weekly_trend: list[WeeklyTrendDay]
    recent_activities: list[RecentActivity]
    category_distribution: list[CategorySlice]
