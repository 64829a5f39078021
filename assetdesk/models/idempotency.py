"""
IdempotencyRecord model: first response stored per (Idempotency-Key, user).
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (JSON, Column, DateTime, ForeignKey, Integer, String,
                        UniqueConstraint)

from assetdesk.db.base import Base


class IdempotencyRecord(Base):
    __tablename__ = "idempotency_records"
    __table_args__ = (UniqueConstraint("key", "user_id", name="uq_idempotency_key_user"),)

    id: int = Column(Integer, primary_key=True)  # type: ignore[assignment]
    key: str = Column(String(128), nullable=False)  # type: ignore[assignment]
    user_id: int = Column(Integer, ForeignKey("users.id"), nullable=False)  # type: ignore[assignment]
    method: str = Column(String(8), nullable=False)  # type: ignore[assignment]
    path: str = Column(String(255), nullable=False)  # type: ignore[assignment]
    status_code: int = Column(Integer, nullable=False)  # type: ignore[assignment]
    response_body: dict = Column(JSON, nullable=False)  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
