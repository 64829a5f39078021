"""
ProductAssignment model: the ledger linking one product to one employee.

Lifecycle: ASSIGNED -> RETURNED | LOST | DAMAGED. The right-hand states are
terminal; rows in them are history and are never edited again.
"""

from __future__ import annotations

import enum
from datetime import datetime, timezone

from sqlalchemy import (Column, DateTime, ForeignKey, Index, Integer, String,
                        Text, text)
from sqlalchemy.orm import relationship

from assetdesk.db.base import Base


class AssignmentStatus(str, enum.Enum):
    ASSIGNED = "ASSIGNED"
    RETURNED = "RETURNED"
    LOST = "LOST"
    DAMAGED = "DAMAGED"


class AssignmentCondition(str, enum.Enum):
    """Coarse four-point grade recorded at return time, best first."""

    EXCELLENT = "EXCELLENT"
    GOOD = "GOOD"
    FAIR = "FAIR"
    POOR = "POOR"


TERMINAL_STATUSES = frozenset(
    {AssignmentStatus.RETURNED, AssignmentStatus.LOST, AssignmentStatus.DAMAGED}
)


class ProductAssignment(Base):
    __tablename__ = "product_assignments"
    __table_args__ = (
        Index("ix_assignment_product_status", "product_id", "status"),
        Index("ix_assignment_assigned_at", "assigned_at"),
        # at most one open assignment per product
        Index(
            "uq_assignment_open_product",
            "product_id",
            unique=True,
            postgresql_where=text("status = 'ASSIGNED'"),
            sqlite_where=text("status = 'ASSIGNED'"),
        ),
    )

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    product_id: int = Column(Integer, ForeignKey("products.id"), nullable=False)  # type: ignore[assignment]
    employee_id: int = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)  # type: ignore[assignment]
    assigned_by_id: int = Column(Integer, ForeignKey("users.id"), nullable=False)  # type: ignore[assignment]
    assigned_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    returned_at: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    expected_return_at: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    status: str = Column(  # type: ignore[assignment]
        String(16),
        nullable=False,
        default=AssignmentStatus.ASSIGNED.value,
    )  # ASSIGNED | RETURNED | LOST | DAMAGED
    condition: str | None = Column(String(16), nullable=True)  # type: ignore[assignment]
    # EXCELLENT | GOOD | FAIR | POOR, only when RETURNED
    notes: str | None = Column(Text, nullable=True)  # type: ignore[assignment]

    product = relationship("Product", back_populates="assignments", lazy="joined")
    employee = relationship("Employee", back_populates="assignments", lazy="joined")
    assigned_by = relationship("User", lazy="joined")
