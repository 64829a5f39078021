"""
User account endpoints (admin only, except ``/users/me``).
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from assetdesk.api.v1.deps import (get_current_active_user, get_db,
                                   page_params, require_admin)
from assetdesk.core.exceptions import NotFoundError
from assetdesk.core.security import get_password_hash
from assetdesk.models.user import User, UserRole
from assetdesk.schemas.common import Envelope, Page, ok
from assetdesk.schemas.user import UserRead, UserUpdate
from assetdesk.services.queries import PageParams, apply_search, paginate

router = APIRouter(prefix="/users", tags=["users"])
logger = logging.getLogger(__name__)


@router.get("", response_model=Envelope[Page[UserRead]])
async def list_users(
    search: str | None = None,
    paging: PageParams = Depends(page_params),
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> dict:
    stmt = apply_search(select(User).order_by(User.username, User.id), search, User.username)
    return ok(await paginate(db, stmt, paging))


@router.get("/me", response_model=Envelope[UserRead])
async def read_current_user(
    current_user: User = Depends(get_current_active_user),
) -> dict:
    """Return profile of the currently authenticated user."""
    return ok(current_user)


@router.get("/{user_id}", response_model=Envelope[UserRead])
async def get_user(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> dict:
    user = await db.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return ok(user)


@router.put("/{user_id}", response_model=Envelope[UserRead])
async def update_user(
    user_id: int,
    body: UserUpdate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
) -> dict:
    user = await db.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")

    changes = body.model_dump(exclude_unset=True)
    touches_super = (
        user.role == UserRole.SUPER_ADMIN.value
        or changes.get("role") == UserRole.SUPER_ADMIN.value
    )
    if touches_super and admin.role != UserRole.SUPER_ADMIN.value:
        raise HTTPException(status_code=403, detail="Only a super admin can manage super admins")
    if user.id == admin.id and changes.get("is_active") is False:
        raise HTTPException(status_code=400, detail="You cannot deactivate your own account")

    password = changes.pop("password", None)
    if password:
        user.hashed_password = get_password_hash(password)
    for field, value in changes.items():
        if value is not None:
            setattr(user, field, value)

    await db.commit()
    await db.refresh(user)
    logger.info("Updated user %d (%s)", user_id, ", ".join(sorted(body.model_fields_set)))
    return ok(user, "User updated")
