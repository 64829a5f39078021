"""Pydantic schemas for Employee CRUD."""

from __future__ import annotations

import re
from datetime import datetime

from pydantic import field_validator

from assetdesk.schemas.common import CamelModel, strip_required

_EMP_ID_RE = re.compile(r"^[A-Za-z0-9._/-]{1,64}$")


def _check_email(v: str | None) -> str | None:
    if v is None:
        return None
    v = v.strip().lower()
    if not v:
        return None
    if "@" not in v:
        raise ValueError("Invalid email address")
    return v


class EmployeeCreate(CamelModel):
    emp_id: str
    name: str
    email: str | None = None
    department: str | None = None
    position: str | None = None

    @field_validator("emp_id")
    @classmethod
    def _emp_id(cls, v: str) -> str:
        v = v.strip()
        if not _EMP_ID_RE.match(v):
            raise ValueError("Employee ID must be 1-64 letters, digits or ._/-")
        return v

    @field_validator("name")
    @classmethod
    def _name(cls, v: str) -> str:
        return strip_required(v, "Name", 200)

    @field_validator("email")
    @classmethod
    def _email(cls, v: str | None) -> str | None:
        return _check_email(v)


class EmployeeUpdate(CamelModel):
    name: str | None = None
    email: str | None = None
    department: str | None = None
    position: str | None = None

    @field_validator("name")
    @classmethod
    def _name(cls, v: str | None) -> str | None:
        return None if v is None else strip_required(v, "Name", 200)

    @field_validator("email")
    @classmethod
    def _email(cls, v: str | None) -> str | None:
        return _check_email(v)


class EmployeeRead(CamelModel):
    id: int
    emp_id: str
    name: str
    email: str | None = None
    department: str | None = None
    position: str | None = None
    is_active: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None


class EmployeeRef(CamelModel):
    id: int
    emp_id: str
    name: str
