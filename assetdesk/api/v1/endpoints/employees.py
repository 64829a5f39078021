"""
Employee CRUD endpoints.

- GET operations require any authenticated user.
- POST / PUT / DELETE operations require admin role.
- DELETE is a soft delete; assignment history keeps pointing at the row.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from assetdesk.api.v1.deps import (get_current_active_user, get_db,
                                   idempotency, page_params, require_admin)
from assetdesk.core.exceptions import ConflictError, NotFoundError
from assetdesk.models.employee import Employee
from assetdesk.models.user import User
from assetdesk.schemas.common import DeleteResult, Envelope, Page, ok
from assetdesk.schemas.employee import (EmployeeCreate, EmployeeRead,
                                        EmployeeUpdate)
from assetdesk.services.assignments import find_open_assignment_for_employee
from assetdesk.services.idempotency import Idempotency
from assetdesk.services.queries import PageParams, apply_search, paginate

router = APIRouter(prefix="/employees", tags=["employees"])
logger = logging.getLogger(__name__)


async def _get_active(db: AsyncSession, employee_id: int) -> Employee:
    result = await db.execute(
        select(Employee).where(Employee.id == employee_id, Employee.is_active.is_(True))
    )
    emp = result.scalar_one_or_none()
    if emp is None:
        raise NotFoundError("Employee not found")
    return emp


@router.get("", response_model=Envelope[Page[EmployeeRead]])
async def list_employees(
    search: str | None = None,
    department: str | None = None,
    paging: PageParams = Depends(page_params),
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(get_current_active_user),
) -> dict:
    stmt = (
        select(Employee)
        .where(Employee.is_active.is_(True))
        .order_by(Employee.name, Employee.id)
    )
    if department:
        stmt = stmt.where(Employee.department == department)
    stmt = apply_search(stmt, search, Employee.name, Employee.emp_id)
    return ok(await paginate(db, stmt, paging))


@router.post("", response_model=Envelope[EmployeeRead], status_code=201)
async def create_employee(
    body: EmployeeCreate,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
    idem: Idempotency = Depends(idempotency),
):
    if idem.replayed:
        return idem.replay()
    existing = await db.execute(select(Employee).where(Employee.emp_id == body.emp_id))
    if existing.scalar_one_or_none():
        raise ConflictError("Employee ID already exists")

    employee = Employee(**body.model_dump())
    db.add(employee)
    await db.commit()
    await db.refresh(employee)
    logger.info("Created employee %s (%s)", employee.name, employee.emp_id)
    return await idem.respond(
        db,
        201,
        Envelope[EmployeeRead](data=EmployeeRead.model_validate(employee), message="Employee created"),
    )


@router.get("/{employee_id}", response_model=Envelope[EmployeeRead])
async def get_employee(
    employee_id: int,
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(get_current_active_user),
) -> dict:
    return ok(await _get_active(db, employee_id))


@router.put("/{employee_id}", response_model=Envelope[EmployeeRead])
async def update_employee(
    employee_id: int,
    body: EmployeeUpdate,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> dict:
    emp = await _get_active(db, employee_id)

    for field, value in body.model_dump(exclude_unset=True).items():
        if field == "name" and value is None:
            continue
        setattr(emp, field, value)

    await db.commit()
    await db.refresh(emp)
    logger.info("Updated employee %d", employee_id)
    return ok(emp, "Employee updated")


@router.delete("/{employee_id}", response_model=Envelope[DeleteResult])
async def delete_employee(
    employee_id: int,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> dict:
    """Soft-delete (deactivate) an employee who holds no products."""
    emp = await _get_active(db, employee_id)
    if await find_open_assignment_for_employee(db, employee_id) is not None:
        raise ConflictError(f"Employee '{emp.name}' still has products assigned")

    emp.is_active = False
    await db.commit()
    logger.info("Soft-deleted employee %d (%s)", employee_id, emp.name)
    return ok(DeleteResult(id=employee_id), f"Employee '{emp.name}' deactivated")
