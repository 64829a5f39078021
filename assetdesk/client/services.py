"""
Service facades: one per REST resource.

Reads go through the shared ``QueryCache``; every successful mutation
invalidates the queries whose results it may have changed. Creates
succeed only on 201 and updates only on 200.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from typing import Any

import httpx
from pydantic import BaseModel

from assetdesk.client.auth import AuthFlow
from assetdesk.client.cache import QueryCache
from assetdesk.client.config import ClientConfig
from assetdesk.client.debounce import Debouncer
from assetdesk.client.http import ApiClient
from assetdesk.client.results import (INVALID_RESPONSE, Failed, FailureKind,
                                      Ok, Result)
from assetdesk.client.session import SessionContext
from assetdesk.services.projections import format_relative

# Query ids
BRANCHES = "branches"
CATEGORIES = "categories"
DEPARTMENTS = "departments"
EMPLOYEES = "employees"
USERS = "users"
PRODUCTS = "products"
ASSIGNMENTS = "assignments"
DASHBOARD = "dashboard"


class _Service:
    query_id = ""
    invalidates: tuple[str, ...] = ()

    def __init__(self, api: ApiClient, cache: QueryCache | None = None) -> None:
        self.api = api
        self.cache = cache if cache is not None else QueryCache()

    async def _read(self, path: str, action: str, params: dict[str, Any] | None = None) -> Result:
        return await self.cache.fetch(
            self.query_id,
            {"path": path, **(params or {})},
            lambda: self.api.get(path, action=action, params=params),
        )

    def _after_mutation(self, result: Result) -> Result:
        if result.ok:
            self.cache.invalidate(self.query_id, *self.invalidates)
        return result


class _CrudService(_Service):
    path = ""
    label = ""
    conflict: str | None = None

    def __init__(self, api: ApiClient, cache: QueryCache | None = None) -> None:
        super().__init__(api, cache)
        # search-as-you-type: only the last term within the window is sent
        self.search = Debouncer(self._search, delay=api.config.search_debounce_seconds)

    async def list(
        self,
        page: int | None = None,
        limit: int | None = None,
        search: str | None = None,
        **filters: Any,
    ) -> Result:
        params = {"page": page, "limit": limit, "search": search, **filters}
        return await self._read(self.path, f"fetch {self.label}s", params)

    async def _search(self, term: str, **filters: Any) -> Result:
        return await self.list(search=term, **filters)

    async def get(self, item_id: int) -> Result:
        return await self._read(f"{self.path}/{item_id}", f"fetch {self.label}")

    async def create(
        self, body: BaseModel | dict, idempotency_key: str | None = None
    ) -> Result:
        result = await self.api.post(
            self.path,
            action=f"create {self.label}",
            json=body,
            expect=(201,),
            conflict=self.conflict,
            idempotency_key=idempotency_key,
        )
        return self._after_mutation(result)

    async def update(self, item_id: int, body: BaseModel | dict) -> Result:
        result = await self.api.put(
            f"{self.path}/{item_id}",
            action=f"update {self.label}",
            json=body,
            expect=(200,),
            conflict=self.conflict,
        )
        return self._after_mutation(result)


class BranchService(_CrudService):
    query_id = BRANCHES
    invalidates = (PRODUCTS, DASHBOARD)
    path = "/branches"
    label = "branch"
    conflict = "Branch name already exists"


class CategoryService(_CrudService):
    query_id = CATEGORIES
    invalidates = (PRODUCTS, DASHBOARD)
    path = "/categories"
    label = "category"
    conflict = "Category name already exists"


class DepartmentService(_CrudService):
    query_id = DEPARTMENTS
    invalidates = (PRODUCTS,)
    path = "/departments"
    label = "department"
    conflict = "Department name already exists"


class EmployeeService(_CrudService):
    query_id = EMPLOYEES
    invalidates = (ASSIGNMENTS, DASHBOARD)
    path = "/employees"
    label = "employee"
    conflict = "Employee ID already exists"

    async def delete(self, employee_id: int) -> Result:
        result = await self.api.delete(
            f"{self.path}/{employee_id}",
            action="delete employee",
            conflict="Employee still has products assigned",
        )
        return self._after_mutation(result)


class UserService(_CrudService):
    query_id = USERS
    path = "/users"
    label = "user"
    conflict = "Username already exists"

    async def create(
        self, body: BaseModel | dict, idempotency_key: str | None = None
    ) -> Result:
        result = await self.api.post(
            "/auth/register",
            action="create user",
            json=body,
            expect=(201,),
            conflict=self.conflict,
            idempotency_key=idempotency_key,
        )
        return self._after_mutation(result)

    async def me(self) -> Result:
        return await self.api.get("/users/me", action="fetch profile")


class ProductService(_CrudService):
    query_id = PRODUCTS
    invalidates = (ASSIGNMENTS, DASHBOARD)
    path = "/products"
    label = "product"
    conflict = "Product conflicts with an existing record"
    delete_conflict = "Product is currently assigned"

    async def assigned(
        self, page: int | None = None, limit: int | None = None, search: str | None = None
    ) -> Result:
        params = {"page": page, "limit": limit, "search": search}
        return await self._read(f"{self.path}/assigned", "fetch assigned products", params)

    async def delete(self, product_id: int) -> Result:
        result = await self.api.delete(
            f"{self.path}/{product_id}", action="delete product", conflict=self.delete_conflict
        )
        return self._after_mutation(result)

    async def generate_qr(self, product_id: int) -> Result:
        """QR code as a PNG data URI; a payload without ``qrCode`` is malformed."""
        result = await self.api.post(
            f"{self.path}/{product_id}/generate-qr", action="generate QR code"
        )
        if isinstance(result, Ok):
            data = result.data if isinstance(result.data, dict) else {}
            if not data.get("qrCode"):
                return Failed(INVALID_RESPONSE, result.status_code, FailureKind.MALFORMED)
        return result

    async def assignments(self, product_id: int) -> Result:
        """Full assignment history of one product, newest first."""
        path = f"/product-assignments/product/{product_id}"
        return await self.cache.fetch(
            ASSIGNMENTS,
            {"path": path},
            lambda: self.api.get(path, action="fetch product assignments"),
        )


class AssignmentService(_Service):
    query_id = ASSIGNMENTS
    invalidates = (PRODUCTS, EMPLOYEES, DASHBOARD)
    base = "/product-assignments"

    async def assign(
        self,
        product_id: int,
        employee_id: int,
        expected_return_at: datetime | None = None,
        notes: str | None = None,
        idempotency_key: str | None = None,
    ) -> Result:
        body: dict[str, Any] = {"productId": product_id, "employeeId": employee_id}
        if expected_return_at is not None:
            body["expectedReturnAt"] = expected_return_at.isoformat()
        if notes is not None:
            body["notes"] = notes
        result = await self.api.post(
            f"{self.base}/assign",
            action="assign product",
            json=body,
            expect=(201,),
            conflict="Product is already assigned",
            idempotency_key=idempotency_key,
        )
        return self._after_mutation(result)

    async def bulk_assign(
        self, employee_id: int, product_ids: list[int], idempotency_key: str | None = None
    ) -> Result:
        result = await self.api.post(
            f"{self.base}/assign/bulk",
            action="assign products",
            json={"employeeId": employee_id, "productIds": list(product_ids)},
            expect=(201,),
            conflict="No products were assigned",
            idempotency_key=idempotency_key,
        )
        return self._after_mutation(result)

    async def return_product(
        self,
        assignment_id: int,
        condition: str | None = None,
        status: str = "RETURNED",
        notes: str | None = None,
        idempotency_key: str | None = None,
    ) -> Result:
        body: dict[str, Any] = {"status": status}
        if condition is not None:
            body["condition"] = condition
        if notes is not None:
            body["notes"] = notes
        result = await self.api.post(
            f"{self.base}/return/{assignment_id}",
            action="return product",
            json=body,
            expect=(200,),
            conflict="Assignment is already closed",
            idempotency_key=idempotency_key,
        )
        return self._after_mutation(result)

    async def update(self, assignment_id: int, body: BaseModel | dict) -> Result:
        result = await self.api.put(
            f"{self.base}/{assignment_id}",
            action="update assignment",
            json=body,
            expect=(200,),
            conflict="Closed assignments cannot be edited",
        )
        return self._after_mutation(result)

    async def active(self, **params: Any) -> Result:
        return await self._read(f"{self.base}/active", "fetch active assignments", params)

    async def history(self, **params: Any) -> Result:
        return await self._read(f"{self.base}/history", "fetch assignment history", params)


_EMPTY_SUMMARY = {"products": 0, "assigned": 0, "categories": 0, "branches": 0, "employees": 0}


class DashboardService(_Service):
    query_id = DASHBOARD

    async def load(self, now: datetime | None = None) -> Result:
        """Dashboard payload with empty sections defaulted and ``assignedAgo`` filled in."""
        result = await self._read("/dashboard", "fetch dashboard data")
        if isinstance(result, Failed):
            return result
        data = result.data
        if not isinstance(data, dict):
            return Failed("Invalid dashboard data format", result.status_code, FailureKind.MALFORMED)

        activities = []
        for activity in data.get("recentActivities") or []:
            activity = dict(activity)
            if activity.get("assignedAt"):
                activity["assignedAgo"] = format_relative(activity["assignedAt"], now)
            activities.append(activity)

        return Ok(
            {
                "summary": {**_EMPTY_SUMMARY, **(data.get("summary") or {})},
                "weeklyTrend": data.get("weeklyTrend") or [],
                "recentActivities": activities,
                "categoryDistribution": data.get("categoryDistribution") or [],
            },
            result.status_code,
            result.message,
        )


class AssetDeskClient:
    """One session, one cache, and every service facade wired to them."""

    def __init__(
        self,
        config: ClientConfig | None = None,
        navigate: Callable[[str], Any] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.cache = QueryCache()
        self.session = SessionContext(on_change=self.cache.clear)
        self.api = ApiClient(config, self.session, transport=transport)
        self.auth = AuthFlow(self.api, navigate or (lambda _path: None))

        self.branches = BranchService(self.api, self.cache)
        self.categories = CategoryService(self.api, self.cache)
        self.departments = DepartmentService(self.api, self.cache)
        self.employees = EmployeeService(self.api, self.cache)
        self.users = UserService(self.api, self.cache)
        self.products = ProductService(self.api, self.cache)
        self.assignments = AssignmentService(self.api, self.cache)
        self.dashboard = DashboardService(self.api, self.cache)

    async def __aenter__(self) -> "AssetDeskClient":
        return self

    async def __aexit__(self, *_exc: object) -> None:
        await self.api.aclose()
