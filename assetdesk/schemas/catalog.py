"""Pydantic schemas for Category / Branch / Department."""

from __future__ import annotations

from datetime import datetime

from pydantic import field_validator

from assetdesk.schemas.common import CamelModel, strip_required


class _NamedCreate(CamelModel):
    name: str

    @field_validator("name")
    @classmethod
    def _name(cls, v: str) -> str:
        return strip_required(v, "Name", 120)


class _NamedUpdate(CamelModel):
    name: str | None = None

    @field_validator("name")
    @classmethod
    def _name(cls, v: str | None) -> str | None:
        return None if v is None else strip_required(v, "Name", 120)


# ── Category ────────────────────────────────────────────────────────
class CategoryCreate(_NamedCreate):
    description: str | None = None


class CategoryUpdate(_NamedUpdate):
    description: str | None = None


class CategoryRead(CamelModel):
    id: int
    name: str
    description: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


# ── Branch ──────────────────────────────────────────────────────────
class BranchCreate(_NamedCreate):
    pass


class BranchUpdate(_NamedUpdate):
    pass


class BranchRead(CamelModel):
    id: int
    name: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


# ── Department ──────────────────────────────────────────────────────
class DepartmentCreate(_NamedCreate):
    description: str | None = None


class DepartmentUpdate(_NamedUpdate):
    description: str | None = None


class DepartmentRead(CamelModel):
    id: int
    name: str
    description: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


# ── Compact references embedded in product payloads ────────────────
class NamedRef(CamelModel):
    id: int
    name: str
