"""
Product CRUD, assigned-product listing and QR code generation.

Assignment state in every payload (``isAssigned``, ``currentAssignment``)
comes from ``assetdesk.services.projections``.
"""

from __future__ import annotations

import base64
import io
import json
import logging
from collections import defaultdict

import qrcode
from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from assetdesk.api.v1.deps import (get_current_active_user, get_db,
                                   idempotency, page_params, require_admin)
from assetdesk.core.config import settings
from assetdesk.core.exceptions import ConflictError, NotFoundError
from assetdesk.models.assignment import ProductAssignment
from assetdesk.models.catalog import Branch, Category, Department
from assetdesk.models.product import Product
from assetdesk.models.user import User
from assetdesk.schemas.assignment import AssignmentRead
from assetdesk.schemas.common import DeleteResult, Envelope, Page, ok
from assetdesk.schemas.product import (ProductCreate, ProductDetail,
                                       ProductListItem, ProductRead,
                                       ProductUpdate, QrCodeRead)
from assetdesk.services.assignments import find_open_assignment
from assetdesk.services.idempotency import Idempotency
from assetdesk.services.projections import current_assignment
from assetdesk.services.queries import (PageParams, apply_search,
                                        open_assignment_clause, paginate)

router = APIRouter(prefix="/products", tags=["products"])
logger = logging.getLogger(__name__)


# ── Helpers ─────────────────────────────────────────────────────────
async def _get_product(db: AsyncSession, product_id: int) -> Product:
    result = await db.execute(
        select(Product)
        .where(Product.id == product_id)
        .execution_options(populate_existing=True)
    )
    product = result.scalar_one_or_none()
    if product is None:
        raise NotFoundError("Product not found")
    return product


async def _check_references(db: AsyncSession, fields: dict) -> None:
    """404 when a category / branch / department id does not exist."""
    for key, model, label in (
        ("category_id", Category, "Category"),
        ("branch_id", Branch, "Branch"),
        ("department_id", Department, "Department"),
    ):
        ref_id = fields.get(key)
        if ref_id is not None and await db.get(model, ref_id) is None:
            raise NotFoundError(f"{label} {ref_id} not found")


async def _list_items(db: AsyncSession, products: list[Product]) -> list[ProductListItem]:
    """Attach assignment state to a page of products with one extra query."""
    if not products:
        return []
    result = await db.execute(
        select(ProductAssignment).where(
            ProductAssignment.product_id.in_([p.id for p in products]),
            open_assignment_clause(),
        )
    )
    by_product: dict[int, list[ProductAssignment]] = defaultdict(list)
    for a in result.scalars().all():
        by_product[a.product_id].append(a)

    items = []
    for product in products:
        current = current_assignment(by_product.get(product.id, []))
        item = ProductListItem.model_validate(product)
        item.is_assigned = current is not None
        item.current_assignment = AssignmentRead.model_validate(current) if current else None
        items.append(item)
    return items


def _qr_data_uri(payload: str) -> str:
    qr = qrcode.QRCode(version=1, box_size=10, border=4)
    qr.add_data(payload)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")

    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buffer.getvalue()).decode()


# ── Listing ─────────────────────────────────────────────────────────
@router.get("", response_model=Envelope[Page[ProductListItem]])
async def list_products(
    search: str | None = None,
    category_id: int | None = Query(default=None, alias="categoryId"),
    branch_id: int | None = Query(default=None, alias="branchId"),
    department_id: int | None = Query(default=None, alias="departmentId"),
    assigned: bool | None = None,
    paging: PageParams = Depends(page_params),
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(get_current_active_user),
) -> dict:
    stmt = select(Product).order_by(Product.name, Product.id)
    if category_id is not None:
        stmt = stmt.where(Product.category_id == category_id)
    if branch_id is not None:
        stmt = stmt.where(Product.branch_id == branch_id)
    if department_id is not None:
        stmt = stmt.where(Product.department_id == department_id)
    if assigned is not None:
        open_ids = select(ProductAssignment.product_id).where(open_assignment_clause())
        stmt = stmt.where(Product.id.in_(open_ids) if assigned else Product.id.not_in(open_ids))
    stmt = apply_search(stmt, search, Product.name, Product.model)

    page = await paginate(db, stmt, paging)
    page["items"] = await _list_items(db, page["items"])
    return ok(page)


@router.get("/assigned", response_model=Envelope[Page[ProductListItem]])
async def list_assigned_products(
    search: str | None = None,
    paging: PageParams = Depends(page_params),
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(get_current_active_user),
) -> dict:
    """Products that are currently out with an employee."""
    open_ids = select(ProductAssignment.product_id).where(open_assignment_clause())
    stmt = apply_search(
        select(Product).where(Product.id.in_(open_ids)).order_by(Product.name, Product.id),
        search,
        Product.name,
        Product.model,
    )
    page = await paginate(db, stmt, paging)
    page["items"] = await _list_items(db, page["items"])
    return ok(page)


# ── CRUD ────────────────────────────────────────────────────────────
@router.post("", response_model=Envelope[ProductRead], status_code=201)
async def create_product(
    body: ProductCreate,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
    idem: Idempotency = Depends(idempotency),
):
    if idem.replayed:
        return idem.replay()
    fields = body.model_dump()
    await _check_references(db, fields)

    product = Product(**fields)
    db.add(product)
    await db.commit()
    product = await _get_product(db, product.id)
    logger.info("Created product %d (%s / %s)", product.id, product.name, product.model)
    return await idem.respond(
        db,
        201,
        Envelope[ProductRead](data=ProductRead.model_validate(product), message="Product created"),
    )


@router.get("/{product_id}", response_model=Envelope[ProductDetail])
async def get_product(
    product_id: int,
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(get_current_active_user),
) -> dict:
    """Product with its full assignment history, newest first."""
    product = await _get_product(db, product_id)
    result = await db.execute(
        select(ProductAssignment)
        .where(ProductAssignment.product_id == product_id)
        .order_by(ProductAssignment.assigned_at.desc(), ProductAssignment.id.desc())
    )
    history = [AssignmentRead.model_validate(a) for a in result.scalars().all()]
    current = current_assignment(history)

    detail = ProductDetail(
        **ProductRead.model_validate(product).model_dump(),
        is_assigned=current is not None,
        current_assignment=current,
        assignments=history,
    )
    return ok(detail)


@router.put("/{product_id}", response_model=Envelope[ProductRead])
async def update_product(
    product_id: int,
    body: ProductUpdate,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> dict:
    product = await _get_product(db, product_id)
    changes = body.model_dump(exclude_unset=True)
    for required in ("name", "model", "category_id", "branch_id", "compliance_status"):
        if required in changes and changes[required] is None:
            changes.pop(required)
    await _check_references(db, changes)

    for field, value in changes.items():
        setattr(product, field, value)
    await db.commit()
    product = await _get_product(db, product_id)
    logger.info("Updated product %d", product_id)
    return ok(ProductRead.model_validate(product), "Product updated")


@router.delete("/{product_id}", response_model=Envelope[DeleteResult])
async def delete_product(
    product_id: int,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> dict:
    """Delete a product and its closed history; refused while it is assigned."""
    product = await _get_product(db, product_id)
    if await find_open_assignment(db, product_id) is not None:
        raise ConflictError(f"Product '{product.name}' is currently assigned")

    await db.delete(product)
    await db.commit()
    logger.info("Deleted product %d (%s)", product_id, product.name)
    return ok(DeleteResult(id=product_id), "Product deleted")


# ── QR code ─────────────────────────────────────────────────────────
@router.post("/{product_id}/generate-qr", response_model=Envelope[QrCodeRead])
async def generate_qr(
    product_id: int,
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(get_current_active_user),
) -> dict:
    """Render a PNG QR code identifying the product, as a data URI."""
    product = await _get_product(db, product_id)
    payload = json.dumps(
        {
            "system": settings.PROJECT_NAME,
            "productId": product.id,
            "name": product.name,
            "model": product.model,
        },
        separators=(",", ":"),
    )
    return ok(QrCodeRead(product_id=product.id, qr_code=_qr_data_uri(payload)))
