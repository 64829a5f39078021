"""
Product model: one physical, individually tracked asset.

There is no stock counter: whether a product is out with someone is read
from its assignment history (see ``assetdesk.services.projections``).
"""

from __future__ import annotations

from datetime import date, datetime, timezone

from sqlalchemy import (Boolean, Column, Date, DateTime, ForeignKey, Integer,
                        String, Text)
from sqlalchemy.orm import relationship

from assetdesk.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Product(Base):
    __tablename__ = "products"

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    name: str = Column(String(200), nullable=False, index=True)  # type: ignore[assignment]
    model: str = Column(String(200), nullable=False)  # type: ignore[assignment]
    category_id: int = Column(Integer, ForeignKey("categories.id"), nullable=False, index=True)  # type: ignore[assignment]
    branch_id: int = Column(Integer, ForeignKey("branches.id"), nullable=False, index=True)  # type: ignore[assignment]
    department_id: int | None = Column(Integer, ForeignKey("departments.id"), nullable=True)  # type: ignore[assignment]
    warranty_date: date | None = Column(Date, nullable=True)  # type: ignore[assignment]
    compliance_status: bool = Column(Boolean, nullable=False, default=False)  # type: ignore[assignment]
    notes: str | None = Column(Text, nullable=True)  # type: ignore[assignment]
    created_at: datetime = Column(DateTime(timezone=True), default=_utcnow)  # type: ignore[assignment]
    updated_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True), default=_utcnow, onupdate=_utcnow
    )

    category = relationship("Category", back_populates="products", lazy="joined")
    branch = relationship("Branch", back_populates="products", lazy="joined")
    department = relationship("Department", back_populates="products", lazy="joined")
    assignments = relationship(
        "ProductAssignment",
        back_populates="product",
        order_by="ProductAssignment.assigned_at.desc()",
        cascade="all, delete-orphan",
    )
