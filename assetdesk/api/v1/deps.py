"""
FastAPI dependencies: auth guards, database session, paging and idempotency.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import Optional

from fastapi import Depends, Header, HTTPException, Query, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from assetdesk.core.config import settings
from assetdesk.core.security import decode_access_token
from assetdesk.db.session import async_session_factory
from assetdesk.models.user import User
from assetdesk.services.idempotency import Idempotency
from assetdesk.services.queries import PageParams

bearer_scheme = HTTPBearer(auto_error=False)


# ── Database session ────────────────────────────────────────────────
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


# ── Auth dependencies ───────────────────────────────────────────────
async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Decode the bearer JWT and look up its user."""
    credentials_exc = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Authentication required",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if credentials is None or not credentials.credentials:
        raise credentials_exc

    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise credentials_exc

    user_id: str | None = payload.get("sub")
    if user_id is None or not user_id.isdigit():
        raise credentials_exc

    result = await db.execute(select(User).where(User.id == int(user_id)))
    user = result.scalar_one_or_none()
    if user is None:
        raise credentials_exc
    return user


async def get_current_active_user(
    current_user: User = Depends(get_current_user),
) -> User:
    """Reject inactive accounts."""
    if not current_user.is_active:
        raise HTTPException(status_code=403, detail="User account is inactive")
    return current_user


async def require_admin(
    current_user: User = Depends(get_current_active_user),
) -> User:
    """Only allow admin and super_admin roles to proceed."""
    if not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin privileges required",
        )
    return current_user


# ── Paging ──────────────────────────────────────────────────────────
def page_params(
    page: int = Query(default=1, ge=1),
    limit: Optional[int] = Query(default=None, ge=1),
) -> PageParams:
    if limit is None:
        limit = settings.DEFAULT_PAGE_LIMIT
    return PageParams(page=page, limit=min(limit, settings.MAX_PAGE_LIMIT))


# ── Idempotency ─────────────────────────────────────────────────────
async def idempotency(
    request: Request,
    idempotency_key: Optional[str] = Header(default=None, alias="Idempotency-Key", max_length=128),
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db),
) -> Idempotency:
    ctx = Idempotency(
        key=idempotency_key.strip() if idempotency_key else None,
        user_id=current_user.id,
        method=request.method,
        path=request.url.path,
    )
    return await ctx.load(db)
