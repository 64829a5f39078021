"""Pydantic schemas for the product-assignment ledger."""

from __future__ import annotations

from datetime import datetime

from pydantic import Field, field_validator

from assetdesk.models.assignment import AssignmentCondition, AssignmentStatus
from assetdesk.schemas.common import CamelModel
from assetdesk.schemas.employee import EmployeeRef
from assetdesk.schemas.user import UserRef


def _upper(v: object) -> object:
    return v.strip().upper() if isinstance(v, str) else v


class ProductRef(CamelModel):
    id: int
    name: str
    model: str


# ── Requests ────────────────────────────────────────────────────────
class AssignRequest(CamelModel):
    product_id: int
    employee_id: int
    expected_return_at: datetime | None = None
    notes: str | None = Field(default=None, max_length=2000)


class BulkAssignRequest(CamelModel):
    employee_id: int
    product_ids: list[int] = Field(min_length=1, max_length=200)


class ReturnRequest(CamelModel):
    """Close an open assignment.

    ``status`` defaults to RETURNED, which needs a ``condition``; LOST and
    DAMAGED close the assignment without one. The pairing is enforced by
    ``assetdesk.services.assignments.close``.
    """

    status: AssignmentStatus = AssignmentStatus.RETURNED
    condition: AssignmentCondition | None = None
    notes: str | None = Field(default=None, max_length=2000)

    @field_validator("status", "condition", mode="before")
    @classmethod
    def _normalise_case(cls, v: object) -> object:
        return _upper(v)


class AssignmentUpdate(CamelModel):
    expected_return_at: datetime | None = None
    notes: str | None = Field(default=None, max_length=2000)


# ── Responses ───────────────────────────────────────────────────────
class AssignmentRead(CamelModel):
    id: int
    product_id: int
    employee_id: int
    assigned_by_id: int
    assigned_at: datetime
    returned_at: datetime | None = None
    expected_return_at: datetime | None = None
    status: AssignmentStatus
    condition: AssignmentCondition | None = None
    notes: str | None = None
    product: ProductRef | None = None
    employee: EmployeeRef | None = None
    assigned_by: UserRef | None = None


class BulkAssignFailure(CamelModel):
    product_id: int
    message: str


class BulkAssignResult(CamelModel):
    employee_id: int
    assigned: list[AssignmentRead]
    failed: list[BulkAssignFailure]
