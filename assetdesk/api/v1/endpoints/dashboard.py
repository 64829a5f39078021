"""
Dashboard endpoint: aggregated counts, weekly trend, recent activity and
category distribution in one payload.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from assetdesk.api.v1.deps import get_current_active_user, get_db
from assetdesk.models.user import User
from assetdesk.schemas.common import Envelope, ok
from assetdesk.schemas.dashboard import DashboardData
from assetdesk.services.dashboard import build_dashboard

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("", response_model=Envelope[DashboardData])
@router.get("/products", response_model=Envelope[DashboardData])
async def dashboard(
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(get_current_active_user),
) -> dict:
    return ok(await build_dashboard(db))
