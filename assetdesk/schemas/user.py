"""Pydantic schemas for User CRUD and login."""

from __future__ import annotations

from datetime import datetime

from pydantic import field_validator

from assetdesk.models.user import UserRole
from assetdesk.schemas.common import CamelModel

_VALID_ROLES = {r.value for r in UserRole}


def _check_role(v: str) -> str:
    v = v.strip().lower().replace("-", "_")
    if v not in _VALID_ROLES:
        raise ValueError(f"Role must be one of: {sorted(_VALID_ROLES)}")
    return v


class UserCreate(CamelModel):
    username: str
    password: str
    role: str = UserRole.USER.value

    @field_validator("username")
    @classmethod
    def _username(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 3 or len(v) > 150:
            raise ValueError("Username must be 3-150 characters")
        return v

    @field_validator("password")
    @classmethod
    def _password(cls, v: str) -> str:
        if len(v) < 6:
            raise ValueError("Password must be at least 6 characters")
        return v

    @field_validator("role")
    @classmethod
    def _role(cls, v: str) -> str:
        return _check_role(v)


class UserUpdate(CamelModel):
    role: str | None = None
    is_active: bool | None = None
    password: str | None = None

    @field_validator("role")
    @classmethod
    def _role(cls, v: str | None) -> str | None:
        return None if v is None else _check_role(v)

    @field_validator("password")
    @classmethod
    def _password(cls, v: str | None) -> str | None:
        if v is not None and len(v) < 6:
            raise ValueError("Password must be at least 6 characters")
        return v


class UserRead(CamelModel):
    id: int
    username: str
    role: str
    is_active: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None


class UserRef(CamelModel):
    id: int
    username: str


# ── Auth ────────────────────────────────────────────────────────────
class LoginRequest(CamelModel):
    username: str
    password: str


class LoginData(CamelModel):
    token: str
    token_type: str = "bearer"
    user: UserRead
