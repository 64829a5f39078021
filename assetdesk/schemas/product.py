"""Pydantic schemas for Product CRUD and product detail."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import field_validator

from assetdesk.schemas.assignment import AssignmentRead
from assetdesk.schemas.catalog import NamedRef
from assetdesk.schemas.common import CamelModel, strip_required


class ProductCreate(CamelModel):
    name: str
    model: str
    category_id: int
    branch_id: int
    department_id: int | None = None
    warranty_date: date | None = None
    compliance_status: bool = False
    notes: str | None = None

    @field_validator("name")
    @classmethod
    def _name(cls, v: str) -> str:
        return strip_required(v, "Name", 200)

    @field_validator("model")
    @classmethod
    def _model(cls, v: str) -> str:
        return strip_required(v, "Model", 200)


class ProductUpdate(CamelModel):
    name: str | None = None
    model: str | None = None
    category_id: int | None = None
    branch_id: int | None = None
    department_id: int | None = None
    warranty_date: date | None = None
    compliance_status: bool | None = None
    notes: str | None = None

    @field_validator("name")
    @classmethod
    def _name(cls, v: str | None) -> str | None:
        return None if v is None else strip_required(v, "Name", 200)

    @field_validator("model")
    @classmethod
    def _model(cls, v: str | None) -> str | None:
        return None if v is None else strip_required(v, "Model", 200)


class ProductRead(CamelModel):
    id: int
    name: str
    model: str
    category_id: int
    branch_id: int
    department_id: int | None = None
    warranty_date: date | None = None
    compliance_status: bool
    notes: str | None = None
    category: NamedRef | None = None
    branch: NamedRef | None = None
    department: NamedRef | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ProductListItem(ProductRead):
    is_assigned: bool = False
    current_assignment: AssignmentRead | None = None


class ProductDetail(ProductListItem):
    assignments: list[AssignmentRead] = []


class QrCodeRead(CamelModel):
    product_id: int
    qr_code: str
