"""
Auth endpoints: login, account registration & logout.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from assetdesk.api.v1.deps import get_db, idempotency, require_admin
from assetdesk.core.config import settings
from assetdesk.core.exceptions import ConflictError
from assetdesk.core.security import (create_access_token, get_password_hash,
                                     verify_password)
from assetdesk.models.user import User, UserRole
from assetdesk.schemas.common import Envelope, ok
from assetdesk.schemas.user import LoginData, LoginRequest, UserCreate, UserRead
from assetdesk.services.idempotency import Idempotency

# Rate limiter keyed by client IP
limiter = Limiter(key_func=get_remote_address)

router = APIRouter(prefix="/auth", tags=["auth"])
logger = logging.getLogger(__name__)


@router.post("/login", response_model=Envelope[LoginData])
@limiter.limit(settings.LOGIN_RATE_LIMIT)
async def login(
    request: Request,
    body: LoginRequest,
    db: AsyncSession = Depends(get_db),
) -> dict:
    """Exchange username/password for a bearer token and the user profile."""
    result = await db.execute(select(User).where(User.username == body.username.strip()))
    user = result.scalar_one_or_none()

    if user is None or not verify_password(body.password, user.hashed_password):
        logger.info("Failed login for %r", body.username)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User account is inactive",
        )

    token = create_access_token(user.id, role=user.role)
    logger.info("User %s signed in", user.username)
    return ok(LoginData(token=token, user=UserRead.model_validate(user)), "Login successful")


@router.post("/register", response_model=Envelope[UserRead], status_code=201)
async def register_user(
    body: UserCreate,
    db: AsyncSession = Depends(get_db),
    admin: User = Depends(require_admin),
    idem: Idempotency = Depends(idempotency),
):
    """Create a new system account (admin only)."""
    if idem.replayed:
        return idem.replay()
    if body.role == UserRole.SUPER_ADMIN.value and admin.role != UserRole.SUPER_ADMIN.value:
        raise HTTPException(status_code=403, detail="Only a super admin can create super admins")

    existing = await db.execute(select(User).where(User.username == body.username))
    if existing.scalar_one_or_none():
        raise ConflictError("Username already exists")

    user = User(
        username=body.username,
        hashed_password=get_password_hash(body.password),
        role=body.role,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    logger.info("Created user %s (%s)", user.username, user.role)
    return await idem.respond(
        db, 201, Envelope[UserRead](data=UserRead.model_validate(user), message="User created")
    )


@router.post("/logout", response_model=Envelope[None])
async def logout() -> dict:
    """Acknowledge sign-out. Tokens are stateless; the client drops its copy."""
    return ok(message="Logged out")
