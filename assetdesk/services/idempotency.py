"""
Idempotent replays for mutating requests.

A client may send ``Idempotency-Key`` with a POST. The first successful
response for a (key, user) pair is stored; a repeat of the same request gets
the stored status and body back instead of running the mutation a second time.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from assetdesk.core.config import settings
from assetdesk.core.exceptions import ConflictError
from assetdesk.models.idempotency import IdempotencyRecord
from assetdesk.services.projections import ensure_utc

logger = logging.getLogger(__name__)

HEADER = "Idempotency-Key"


@dataclass
class Idempotency:
    key: str | None
    user_id: int
    method: str
    path: str
    cached: IdempotencyRecord | None = None

    @property
    def replayed(self) -> bool:
        return self.cached is not None

    def replay(self) -> JSONResponse:
        if self.cached is None:
            raise RuntimeError(f"No stored response to replay for key {self.key!r}")
        logger.info("Replaying %s %s for key %s", self.method, self.path, self.key)
        return JSONResponse(
            status_code=self.cached.status_code,
            content=self.cached.response_body,
            headers={"Idempotent-Replayed": "true"},
        )

    async def load(self, db: AsyncSession) -> "Idempotency":
        if not self.key:
            return self
        result = await db.execute(
            select(IdempotencyRecord).where(
                IdempotencyRecord.key == self.key,
                IdempotencyRecord.user_id == self.user_id,
            )
        )
        record = result.scalar_one_or_none()
        if record is None:
            return self

        expiry = datetime.now(timezone.utc) - timedelta(hours=settings.IDEMPOTENCY_TTL_HOURS)
        if ensure_utc(record.created_at) < expiry:
            await db.execute(delete(IdempotencyRecord).where(IdempotencyRecord.id == record.id))
            await db.commit()
            return self
        if record.method != self.method or record.path != self.path:
            raise ConflictError("Idempotency-Key was already used for a different request")
        self.cached = record
        return self

    async def respond(
        self, db: AsyncSession, status_code: int, payload: BaseModel
    ) -> JSONResponse:
        """Serialise ``payload`` and return it.

        Only a 2xx response is remembered under the key, so a retry after a
        failure runs the mutation again.
        """
        body = payload.model_dump(mode="json", by_alias=True)
        if self.key and 200 <= status_code < 300:
            db.add(
                IdempotencyRecord(
                    key=self.key,
                    user_id=self.user_id,
                    method=self.method,
                    path=self.path,
                    status_code=status_code,
                    response_body=body,
                )
            )
            try:
                await db.commit()
            except IntegrityError:
                # a concurrent request with the same key stored first
                await db.rollback()
                logger.warning("Idempotency key %s stored concurrently", self.key)
        return JSONResponse(status_code=status_code, content=body)
