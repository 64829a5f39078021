"""
Category / Branch / Department endpoints.

The three lookup tables share one shape (unique name, optional
description) so their routers are stamped out by ``_catalog_router``.

- GET operations require any authenticated user.
- POST / PUT operations require admin role.
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from assetdesk.api.v1.deps import (get_current_active_user, get_db,
                                   idempotency, page_params, require_admin)
from assetdesk.core.exceptions import ConflictError, NotFoundError
from assetdesk.models.catalog import Branch, Category, Department
from assetdesk.models.user import User
from assetdesk.schemas.catalog import (BranchCreate, BranchRead, BranchUpdate,
                                       CategoryCreate, CategoryRead,
                                       CategoryUpdate, DepartmentCreate,
                                       DepartmentRead, DepartmentUpdate)
from assetdesk.schemas.common import Envelope, Page, ok
from assetdesk.services.idempotency import Idempotency
from assetdesk.services.queries import PageParams, apply_search, paginate

logger = logging.getLogger(__name__)


def _catalog_router(
    model: Any,
    create_schema: type[BaseModel],
    update_schema: type[BaseModel],
    read_schema: type[BaseModel],
    prefix: str,
    label: str,
) -> APIRouter:
    router = APIRouter(prefix=prefix, tags=[prefix.strip("/")])

    async def _get_or_404(db: AsyncSession, item_id: int) -> Any:
        item = await db.get(model, item_id)
        if item is None:
            raise NotFoundError(f"{label} not found")
        return item

    async def _ensure_unique_name(db: AsyncSession, name: str, exclude_id: int | None = None) -> None:
        stmt = select(model.id).where(func.lower(model.name) == name.lower())
        if exclude_id is not None:
            stmt = stmt.where(model.id != exclude_id)
        if (await db.execute(stmt)).first() is not None:
            raise ConflictError(f"{label} name already exists")

    @router.get("", response_model=Envelope[Page[read_schema]])
    async def list_items(
        search: str | None = None,
        paging: PageParams = Depends(page_params),
        db: AsyncSession = Depends(get_db),
        _user: User = Depends(get_current_active_user),
    ) -> dict:
        stmt = apply_search(select(model).order_by(model.name, model.id), search, model.name)
        return ok(await paginate(db, stmt, paging))

    @router.post("", response_model=Envelope[read_schema], status_code=201)
    async def create_item(
        body: create_schema,
        db: AsyncSession = Depends(get_db),
        _admin: User = Depends(require_admin),
        idem: Idempotency = Depends(idempotency),
    ):
        if idem.replayed:
            return idem.replay()
        await _ensure_unique_name(db, body.name)
        item = model(**body.model_dump())
        db.add(item)
        await db.commit()
        await db.refresh(item)
        logger.info("Created %s %d (%s)", label.lower(), item.id, item.name)
        return await idem.respond(
            db,
            201,
            Envelope[read_schema](data=read_schema.model_validate(item), message=f"{label} created"),
        )

    @router.get("/{item_id}", response_model=Envelope[read_schema])
    async def get_item(
        item_id: int,
        db: AsyncSession = Depends(get_db),
        _user: User = Depends(get_current_active_user),
    ) -> dict:
        return ok(await _get_or_404(db, item_id))

    @router.put("/{item_id}", response_model=Envelope[read_schema])
    async def update_item(
        item_id: int,
        body: update_schema,
        db: AsyncSession = Depends(get_db),
        _admin: User = Depends(require_admin),
    ) -> dict:
        item = await _get_or_404(db, item_id)
        changes = body.model_dump(exclude_unset=True)
        if changes.get("name") is None:
            changes.pop("name", None)
        else:
            await _ensure_unique_name(db, changes["name"], exclude_id=item_id)

        for field, value in changes.items():
            setattr(item, field, value)
        await db.commit()
        await db.refresh(item)
        logger.info("Updated %s %d", label.lower(), item_id)
        return ok(item, f"{label} updated")

    return router


categories_router = _catalog_router(
    Category, CategoryCreate, CategoryUpdate, CategoryRead, "/categories", "Category"
)
branches_router = _catalog_router(
    Branch, BranchCreate, BranchUpdate, BranchRead, "/branches", "Branch"
)
departments_router = _catalog_router(
    Department, DepartmentCreate, DepartmentUpdate, DepartmentRead, "/departments", "Department"
)
