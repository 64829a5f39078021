"""
Product-assignment endpoints: assign, bulk assign, return and history.

All state changes go through ``assetdesk.services.assignments``; this
module only parses requests, applies list filters and shapes envelopes.
"""

from __future__ import annotations

import logging
from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession

from assetdesk.api.v1.deps import (get_current_active_user, get_db,
                                   idempotency, page_params, require_admin)
from assetdesk.core.exceptions import NotFoundError, ValidationError
from assetdesk.models.assignment import AssignmentStatus, ProductAssignment
from assetdesk.models.product import Product
from assetdesk.models.user import User
from assetdesk.schemas.assignment import (AssignmentRead, AssignmentUpdate,
                                          AssignRequest, BulkAssignFailure,
                                          BulkAssignRequest, BulkAssignResult,
                                          ReturnRequest)
from assetdesk.schemas.common import Envelope, Page, ok
from assetdesk.services import assignments as lifecycle
from assetdesk.services.idempotency import Idempotency
from assetdesk.services.queries import (PageParams, filter_assignments,
                                        open_assignment_clause, paginate)

router = APIRouter(prefix="/product-assignments", tags=["product-assignments"])
logger = logging.getLogger(__name__)

# "active" is accepted as a status alias for "currently open"
ACTIVE = "ACTIVE"


def _parse_status(raw: str | None) -> tuple[bool, AssignmentStatus | None]:
    """Return ``(open_only, status)`` for the ``status`` query parameter."""
    if raw is None or not raw.strip():
        return False, None
    value = raw.strip().upper()
    if value == ACTIVE:
        return True, None
    try:
        return False, AssignmentStatus(value)
    except ValueError:
        allowed = ", ".join([ACTIVE] + [s.value for s in AssignmentStatus])
        raise ValidationError(f"status must be one of: {allowed}")


def _history_stmt() -> Select:
    return select(ProductAssignment).order_by(
        ProductAssignment.assigned_at.desc(), ProductAssignment.id.desc()
    )


async def _page_of_assignments(db: AsyncSession, stmt: Select, paging: PageParams) -> dict:
    page = await paginate(db, stmt, paging)
    page["items"] = [AssignmentRead.model_validate(a) for a in page["items"]]
    return page


# ── Mutations ───────────────────────────────────────────────────────
@router.post("/assign", response_model=Envelope[AssignmentRead], status_code=201)
async def assign_product(
    body: AssignRequest,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
    idem: Idempotency = Depends(idempotency),
):
    if idem.replayed:
        return idem.replay()
    assignment = await lifecycle.assign(
        db,
        admin,
        body.product_id,
        body.employee_id,
        expected_return_at=body.expected_return_at,
        notes=body.notes,
    )
    return await idem.respond(
        db,
        201,
        Envelope[AssignmentRead](
            data=AssignmentRead.model_validate(assignment),
            message="Product assigned successfully",
        ),
    )


@router.post("/assign/bulk", response_model=Envelope[BulkAssignResult], status_code=201)
async def bulk_assign_products(
    body: BulkAssignRequest,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
    idem: Idempotency = Depends(idempotency),
):
    """Assign several products to one employee.

    Each product succeeds or fails on its own. The response is 201 when at
    least one product was assigned and 409 when none were; ``failed``
    lists the reason for every product that was skipped.
    """
    if idem.replayed:
        return idem.replay()
    created, failed = await lifecycle.bulk_assign(db, admin, body.employee_id, body.product_ids)

    result = BulkAssignResult(
        employee_id=body.employee_id,
        assigned=[AssignmentRead.model_validate(a) for a in created],
        failed=[BulkAssignFailure(product_id=pid, message=msg) for pid, msg in failed],
    )
    status_code = 201 if created else 409
    message = f"{len(created)} products assigned successfully"
    if failed:
        message += f", {len(failed)} failed"
    return await idem.respond(
        db,
        status_code,
        Envelope[BulkAssignResult](success=bool(created), data=result, message=message),
    )


@router.post("/return/{assignment_id}", response_model=Envelope[AssignmentRead])
async def return_product(
    assignment_id: int,
    body: ReturnRequest,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
    idem: Idempotency = Depends(idempotency),
):
    """Close an open assignment as RETURNED, LOST or DAMAGED."""
    if idem.replayed:
        return idem.replay()
    assignment = await lifecycle.close(
        db,
        assignment_id,
        status=body.status,
        condition=body.condition,
        notes=body.notes,
    )
    label = "returned" if body.status == AssignmentStatus.RETURNED else body.status.value.lower()
    return await idem.respond(
        db,
        200,
        Envelope[AssignmentRead](
            data=AssignmentRead.model_validate(assignment),
            message=f"Product marked as {label}",
        ),
    )


@router.put("/{assignment_id}", response_model=Envelope[AssignmentRead])
async def update_assignment(
    assignment_id: int,
    body: AssignmentUpdate,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> dict:
    assignment = await lifecycle.update_open(
        db, assignment_id, body.model_dump(exclude_unset=True)
    )
    return ok(AssignmentRead.model_validate(assignment), "Assignment updated")


# ── Listing ─────────────────────────────────────────────────────────
@router.get("/active", response_model=Envelope[Page[AssignmentRead]])
async def list_active(
    product_id: int | None = Query(default=None, alias="productId"),
    employee_id: int | None = Query(default=None, alias="employeeId"),
    paging: PageParams = Depends(page_params),
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(get_current_active_user),
) -> dict:
    """Assignments that are still open."""
    stmt = filter_assignments(
        _history_stmt().where(open_assignment_clause()),
        product_id=product_id,
        employee_id=employee_id,
    )
    return ok(await _page_of_assignments(db, stmt, paging))


@router.get("/history", response_model=Envelope[Page[AssignmentRead]])
@router.get("/list", response_model=Envelope[Page[AssignmentRead]])
async def list_history(
    product_id: int | None = Query(default=None, alias="productId"),
    employee_id: int | None = Query(default=None, alias="employeeId"),
    status: str | None = None,
    from_date: date | None = Query(default=None, alias="fromDate"),
    to_date: date | None = Query(default=None, alias="toDate"),
    paging: PageParams = Depends(page_params),
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(get_current_active_user),
) -> dict:
    """Filtered assignment history, newest first."""
    open_only, parsed_status = _parse_status(status)
    stmt = _history_stmt()
    if open_only:
        stmt = stmt.where(open_assignment_clause())
    stmt = filter_assignments(
        stmt,
        product_id=product_id,
        employee_id=employee_id,
        status=parsed_status,
        from_date=from_date,
        to_date=to_date,
    )
    return ok(await _page_of_assignments(db, stmt, paging))


@router.get("/product/{product_id}", response_model=Envelope[list[AssignmentRead]])
async def list_for_product(
    product_id: int,
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(get_current_active_user),
) -> dict:
    """Every assignment of one product, newest first, unpaged."""
    if await db.get(Product, product_id) is None:
        raise NotFoundError("Product not found")
    stmt = filter_assignments(_history_stmt(), product_id=product_id)
    result = await db.execute(stmt)
    return ok([AssignmentRead.model_validate(a) for a in result.scalars().all()])
