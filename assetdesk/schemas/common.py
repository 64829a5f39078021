"""Envelope, pagination and base model shared by every schema module."""

from __future__ import annotations

from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class CamelModel(BaseModel):
    """camelCase on the wire, snake_case in Python, readable from ORM rows."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class Envelope(BaseModel, Generic[T]):
    success: bool = True
    data: T | None = None
    message: str | None = None


class Page(CamelModel, Generic[T]):
    items: list[T]
    total: int
    page: int
    limit: int


class DeleteResult(CamelModel):
    id: int
    deleted: bool = True


def ok(data: Any = None, message: str | None = None) -> dict[str, Any]:
    """Build a success envelope for an endpoint return value."""
    return {"success": True, "data": data, "message": message}


def strip_required(v: str, field: str, max_len: int) -> str:
    v = v.strip()
    if not v:
        raise ValueError(f"{field} must not be empty")
    if len(v) > max_len:
        raise ValueError(f"{field} must not exceed {max_len} characters")
    return v
