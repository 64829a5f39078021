"""
Assignment lifecycle: the only place assignment rows change state.

    ASSIGNED ──► RETURNED   (condition required)
             ├─► LOST
             └─► DAMAGED

A product has at most one open (ASSIGNED) assignment; closed rows are
history and reject every further change.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import Select, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from assetdesk.core.exceptions import (ConflictError, DomainError,
                                       InvalidTransitionError, NotFoundError,
                                       ValidationError)
from assetdesk.models.assignment import (TERMINAL_STATUSES,
                                         AssignmentCondition,
                                         AssignmentStatus, ProductAssignment)
from assetdesk.models.employee import Employee
from assetdesk.models.product import Product
from assetdesk.models.user import User
from assetdesk.services.projections import ensure_utc
from assetdesk.services.queries import open_assignment_clause

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _append_note(existing: str | None, note: str | None) -> str | None:
    if not note or not note.strip():
        return existing
    if not existing:
        return note.strip()
    return f"{existing}\n{note.strip()}"


async def get_assignment(db: AsyncSession, assignment_id: int) -> ProductAssignment:
    result = await db.execute(
        select(ProductAssignment)
        .where(ProductAssignment.id == assignment_id)
        .execution_options(populate_existing=True)
    )
    assignment = result.scalar_one_or_none()
    if assignment is None:
        raise NotFoundError("Assignment not found")
    return assignment


def lock_assignment_stmt(assignment_id: int) -> Select:
    """Row lock on one assignment.

    Only the id is selected: the eager joins of a full row would put the
    lock on the nullable side of an outer join, which PostgreSQL refuses.
    """
    return (
        select(ProductAssignment.id)
        .where(ProductAssignment.id == assignment_id)
        .with_for_update()
    )


async def find_open_assignment(db: AsyncSession, product_id: int) -> ProductAssignment | None:
    result = await db.execute(
        select(ProductAssignment)
        .where(ProductAssignment.product_id == product_id, open_assignment_clause())
        .order_by(ProductAssignment.assigned_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def find_open_assignment_for_employee(
    db: AsyncSession, employee_id: int
) -> ProductAssignment | None:
    result = await db.execute(
        select(ProductAssignment)
        .where(ProductAssignment.employee_id == employee_id, open_assignment_clause())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def _create_open_assignment(
    db: AsyncSession,
    actor_id: int,
    product_id: int,
    employee_id: int,
    expected_return_at: datetime | None,
    notes: str | None,
) -> ProductAssignment:
    product = await db.get(Product, product_id)
    if product is None:
        raise NotFoundError(f"Product {product_id} not found")

    # Row lock on the open assignment (no-op on SQLite)
    existing = await db.execute(
        select(ProductAssignment.id)
        .where(ProductAssignment.product_id == product_id, open_assignment_clause())
        .with_for_update()
    )
    if existing.first() is not None:
        raise ConflictError(f"Product '{product.name}' is already assigned")

    assignment = ProductAssignment(
        product_id=product_id,
        employee_id=employee_id,
        assigned_by_id=actor_id,
        assigned_at=_now(),
        expected_return_at=expected_return_at,
        status=AssignmentStatus.ASSIGNED.value,
        notes=_append_note(None, notes),
    )
    db.add(assignment)
    return assignment


async def _get_active_employee(db: AsyncSession, employee_id: int) -> Employee:
    employee = await db.get(Employee, employee_id)
    if employee is None or not employee.is_active:
        raise NotFoundError("Employee not found")
    return employee


def _check_expected_return(expected_return_at: datetime | None) -> datetime | None:
    expected = ensure_utc(expected_return_at)
    if expected is not None and expected < _now():
        raise ValidationError("expectedReturnAt must be in the future")
    return expected


async def assign(
    db: AsyncSession,
    actor: User,
    product_id: int,
    employee_id: int,
    expected_return_at: datetime | None = None,
    notes: str | None = None,
) -> ProductAssignment:
    """Hand ``product_id`` to ``employee_id``; fails if it is already out."""
    expected = _check_expected_return(expected_return_at)
    await _get_active_employee(db, employee_id)
    assignment = await _create_open_assignment(
        db, actor.id, product_id, employee_id, expected, notes
    )
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Product is already assigned")
    logger.info(
        "Assigned product %d to employee %d (assignment %d, by user %d)",
        product_id, employee_id, assignment.id, actor.id,
    )
    return await get_assignment(db, assignment.id)


async def close(
    db: AsyncSession,
    assignment_id: int,
    status: AssignmentStatus = AssignmentStatus.RETURNED,
    condition: AssignmentCondition | None = None,
    notes: str | None = None,
) -> ProductAssignment:
    """Move an open assignment into a terminal state."""
    if status not in TERMINAL_STATUSES:
        raise ValidationError("An assignment can only be closed as RETURNED, LOST or DAMAGED")
    if status == AssignmentStatus.RETURNED and condition is None:
        raise ValidationError("condition is required when returning a product")
    if status != AssignmentStatus.RETURNED and condition is not None:
        raise ValidationError("condition is only recorded for RETURNED")

    locked = await db.execute(lock_assignment_stmt(assignment_id))
    if locked.first() is None:
        raise NotFoundError("Assignment not found")
    assignment = await get_assignment(db, assignment_id)
    if assignment.status != AssignmentStatus.ASSIGNED.value or assignment.returned_at is not None:
        raise InvalidTransitionError(
            f"Assignment {assignment_id} is already {assignment.status}"
        )

    assignment.status = status.value
    assignment.condition = condition.value if condition is not None else None
    assignment.returned_at = _now()
    assignment.notes = _append_note(assignment.notes, notes)
    await db.commit()
    logger.info(
        "Closed assignment %d as %s (condition=%s)",
        assignment_id, status.value, assignment.condition,
    )
    return await get_assignment(db, assignment_id)


async def bulk_assign(
    db: AsyncSession,
    actor: User,
    employee_id: int,
    product_ids: list[int],
) -> tuple[list[ProductAssignment], list[tuple[int, str]]]:
    """Assign each product independently; one failure does not undo the rest."""
    await _get_active_employee(db, employee_id)
    actor_id = actor.id

    # a rollback expires every loaded row, so only plain ids cross iterations
    created_ids: list[int] = []
    failed: list[tuple[int, str]] = []
    for product_id in dict.fromkeys(product_ids):
        try:
            assignment = await _create_open_assignment(
                db, actor_id, product_id, employee_id, None, None
            )
            await db.commit()
            created_ids.append(assignment.id)
        except DomainError as exc:
            await db.rollback()
            failed.append((product_id, exc.message))
        except IntegrityError:
            await db.rollback()
            failed.append((product_id, "Product is already assigned"))

    logger.info(
        "Bulk assignment to employee %d: %d assigned, %d failed",
        employee_id, len(created_ids), len(failed),
    )
    reloaded = [await get_assignment(db, a_id) for a_id in created_ids]
    return reloaded, failed


async def update_open(
    db: AsyncSession,
    assignment_id: int,
    fields: dict,
) -> ProductAssignment:
    """Edit ``expected_return_at`` / ``notes`` of an assignment still ASSIGNED."""
    assignment = await get_assignment(db, assignment_id)
    if assignment.status != AssignmentStatus.ASSIGNED.value:
        raise InvalidTransitionError("Closed assignments cannot be edited")

    if "expected_return_at" in fields:
        assignment.expected_return_at = _check_expected_return(fields["expected_return_at"])
    if "notes" in fields:
        assignment.notes = fields["notes"]
    await db.commit()
    logger.info("Updated open assignment %d", assignment_id)
    return await get_assignment(db, assignment_id)
