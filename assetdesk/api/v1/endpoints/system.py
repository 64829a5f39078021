"""
System endpoints: public health check.
"""

from __future__ import annotations

import logging

import redis.asyncio as aioredis
from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from assetdesk.api.v1.deps import get_db
from assetdesk.core.config import settings
from assetdesk.schemas.common import CamelModel, Envelope, ok

router = APIRouter(tags=["system"])
logger = logging.getLogger(__name__)


class HealthRead(CamelModel):
    status: str
    version: str
    db: bool
    redis: bool


@router.get("/health", response_model=Envelope[HealthRead])
async def health(db: AsyncSession = Depends(get_db)) -> dict:
    """Public health check: DB and Redis connectivity."""
    db_ok = redis_ok = False

    try:
        await db.execute(select(1))
        db_ok = True
    except Exception as e:
        logger.error("Health check DB failure: %s", e)

    try:
        client = aioredis.from_url(settings.REDIS_URL)
        try:
            await client.ping()
            redis_ok = True
        finally:
            await client.aclose()
    except Exception as e:
        logger.error("Health check Redis failure: %s", e)

    return ok(
        HealthRead(
            status="ok" if db_ok else "degraded",
            version=settings.VERSION,
            db=db_ok,
            redis=redis_ok,
        )
    )
