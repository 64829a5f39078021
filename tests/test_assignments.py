"""Tests for the product-assignment lifecycle and history queries."""

from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.dialects import postgresql

from assetdesk.models.assignment import ProductAssignment
from assetdesk.services.assignments import lock_assignment_stmt


@pytest.fixture
async def laptop(seed) -> dict:
    return await seed.product("Laptop")


@pytest.fixture
async def employee(seed) -> dict:
    return await seed.employee(name="Hamza", emp_id="EMP-HZ")


async def _return(client: AsyncClient, assignment_id: int, **body):
    return await client.post(f"/product-assignments/return/{assignment_id}", json=body)


# ── Assign ──────────────────────────────────────────────────────────
async def test_assign_creates_open_assignment(admin_client: AsyncClient, admin, laptop, employee):
    resp = await admin_client.post(
        "/product-assignments/assign",
        json={"productId": laptop["id"], "employeeId": employee["id"], "notes": "For travel"},
    )
    assert resp.status_code == 201
    body = resp.json()
    assert body["message"] == "Product assigned successfully"
    data = body["data"]
    assert data["status"] == "ASSIGNED"
    assert data["returnedAt"] is None
    assert data["condition"] is None
    assert data["notes"] == "For travel"
    assert data["assignedById"] == admin.id
    assert data["product"]["name"] == "Laptop"
    assert data["employee"]["empId"] == "EMP-HZ"
    assert data["assignedBy"]["username"] == "admin"


async def test_assign_already_assigned_conflicts(admin_client: AsyncClient, seed, laptop, employee):
    await seed.assignment(laptop["id"], employee["id"])
    other = await seed.employee()
    resp = await admin_client.post(
        "/product-assignments/assign",
        json={"productId": laptop["id"], "employeeId": other["id"]},
    )
    assert resp.status_code == 409
    assert resp.json()["message"] == "Product 'Laptop' is already assigned"


async def test_assign_unknown_product_or_employee(admin_client: AsyncClient, laptop, employee):
    resp = await admin_client.post(
        "/product-assignments/assign", json={"productId": 999, "employeeId": employee["id"]}
    )
    assert resp.status_code == 404

    resp = await admin_client.post(
        "/product-assignments/assign", json={"productId": laptop["id"], "employeeId": 999}
    )
    assert resp.status_code == 404


async def test_assign_to_deactivated_employee_refused(admin_client: AsyncClient, laptop, employee):
    await admin_client.delete(f"/employees/{employee['id']}")
    resp = await admin_client.post(
        "/product-assignments/assign",
        json={"productId": laptop["id"], "employeeId": employee["id"]},
    )
    assert resp.status_code == 404
    assert resp.json()["message"] == "Employee not found"


async def test_expected_return_in_past_rejected(admin_client: AsyncClient, laptop, employee):
    past = (datetime.now(timezone.utc) - timedelta(days=1)).isoformat()
    resp = await admin_client.post(
        "/product-assignments/assign",
        json={"productId": laptop["id"], "employeeId": employee["id"], "expectedReturnAt": past},
    )
    assert resp.status_code == 400


async def test_plain_user_cannot_assign(user_client: AsyncClient, laptop, employee):
    resp = await user_client.post(
        "/product-assignments/assign",
        json={"productId": laptop["id"], "employeeId": employee["id"]},
    )
    assert resp.status_code == 403


# ── Return / close ──────────────────────────────────────────────────
async def test_return_sets_condition_and_timestamp(admin_client: AsyncClient, seed, laptop, employee):
    assignment = await seed.assignment(laptop["id"], employee["id"], notes="Out")
    resp = await _return(admin_client, assignment["id"], condition="good", notes="Back in box")
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["status"] == "RETURNED"
    assert data["condition"] == "GOOD"
    assert data["returnedAt"] is not None
    assert data["notes"] == "Out\nBack in box"

    detail = (await admin_client.get(f"/products/{laptop['id']}")).json()["data"]
    assert detail["isAssigned"] is False


async def test_double_return_rejected(admin_client: AsyncClient, seed, laptop, employee):
    assignment = await seed.assignment(laptop["id"], employee["id"])
    first = await _return(admin_client, assignment["id"], condition="EXCELLENT")
    assert first.status_code == 200

    second = await _return(admin_client, assignment["id"], condition="POOR")
    assert second.status_code == 409
    assert second.json()["success"] is False

    # the first close is preserved
    history = (await admin_client.get(f"/product-assignments/product/{laptop['id']}")).json()
    assert history["data"][0]["condition"] == "EXCELLENT"


async def test_return_requires_condition(admin_client: AsyncClient, seed, laptop, employee):
    assignment = await seed.assignment(laptop["id"], employee["id"])
    resp = await _return(admin_client, assignment["id"])
    assert resp.status_code == 400
    assert "condition is required" in resp.json()["message"]


@pytest.mark.parametrize("status", ["LOST", "damaged"])
async def test_lost_and_damaged_close_without_condition(
    admin_client: AsyncClient, seed, laptop, employee, status
):
    assignment = await seed.assignment(laptop["id"], employee["id"])
    resp = await _return(admin_client, assignment["id"], status=status)
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["status"] == status.upper()
    assert data["condition"] is None
    assert data["returnedAt"] is not None


async def test_condition_with_lost_rejected(admin_client: AsyncClient, seed, laptop, employee):
    assignment = await seed.assignment(laptop["id"], employee["id"])
    resp = await _return(admin_client, assignment["id"], status="LOST", condition="GOOD")
    assert resp.status_code == 400
    assert resp.json()["message"] == "condition is only recorded for RETURNED"

    detail = (await admin_client.get(f"/products/{laptop['id']}")).json()["data"]
    assert detail["isAssigned"] is True


async def test_return_into_assigned_rejected(admin_client: AsyncClient, seed, laptop, employee):
    assignment = await seed.assignment(laptop["id"], employee["id"])
    resp = await _return(admin_client, assignment["id"], status="ASSIGNED")
    assert resp.status_code == 400


def test_close_lock_is_valid_on_postgresql():
    sql = str(lock_assignment_stmt(7).compile(dialect=postgresql.dialect()))
    assert "JOIN" not in sql
    assert sql.rstrip().endswith("FOR UPDATE")


async def test_return_unknown_assignment(admin_client: AsyncClient):
    resp = await _return(admin_client, 4040, condition="GOOD")
    assert resp.status_code == 404


async def test_product_can_be_reassigned_after_return(admin_client: AsyncClient, seed, laptop, employee):
    first = await seed.assignment(laptop["id"], employee["id"])
    await _return(admin_client, first["id"], condition="FAIR")
    second = await seed.assignment(laptop["id"], employee["id"])
    assert second["id"] != first["id"]

    detail = (await admin_client.get(f"/products/{laptop['id']}")).json()["data"]
    assert detail["currentAssignment"]["id"] == second["id"]
    assert len(detail["assignments"]) == 2


async def test_status_invariants_hold_in_storage(admin_client: AsyncClient, db_session, seed, employee):
    """returnedAt is set iff status != ASSIGNED; condition iff RETURNED."""
    products = [await seed.product() for _ in range(4)]
    rows = [await seed.assignment(p["id"], employee["id"]) for p in products]
    await _return(admin_client, rows[0]["id"], condition="GOOD")
    await _return(admin_client, rows[1]["id"], status="LOST")
    await _return(admin_client, rows[2]["id"], status="DAMAGED")

    result = await db_session.execute(select(ProductAssignment))
    for a in result.scalars().all():
        assert (a.returned_at is not None) == (a.status != "ASSIGNED")
        assert (a.condition is not None) == (a.status == "RETURNED")


# ── Update open assignment ──────────────────────────────────────────
async def test_update_open_assignment(admin_client: AsyncClient, seed, laptop, employee):
    assignment = await seed.assignment(laptop["id"], employee["id"])
    due = (datetime.now(timezone.utc) + timedelta(days=14)).replace(microsecond=0)
    resp = await admin_client.put(
        f"/product-assignments/{assignment['id']}",
        json={"expectedReturnAt": due.isoformat(), "notes": "Extended"},
    )
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["notes"] == "Extended"
    assert data["expectedReturnAt"] is not None


async def test_closed_assignment_is_immutable(admin_client: AsyncClient, seed, laptop, employee):
    assignment = await seed.assignment(laptop["id"], employee["id"])
    await _return(admin_client, assignment["id"], condition="GOOD")
    resp = await admin_client.put(
        f"/product-assignments/{assignment['id']}", json={"notes": "rewrite history"}
    )
    assert resp.status_code == 409


# ── Bulk assign ─────────────────────────────────────────────────────
async def test_bulk_assign_partial_success(admin_client: AsyncClient, seed, employee):
    free_a = await seed.product("Free A")
    free_b = await seed.product("Free B")
    taken = await seed.product("Taken")
    other = await seed.employee()
    await seed.assignment(taken["id"], other["id"])

    resp = await admin_client.post(
        "/product-assignments/assign/bulk",
        json={
            "employeeId": employee["id"],
            "productIds": [free_a["id"], taken["id"], free_b["id"], 9999, free_a["id"]],
        },
    )
    assert resp.status_code == 201
    body = resp.json()
    assert body["success"] is True
    data = body["data"]
    assert sorted(a["productId"] for a in data["assigned"]) == sorted([free_a["id"], free_b["id"]])
    failed = {f["productId"]: f["message"] for f in data["failed"]}
    assert failed == {
        taken["id"]: "Product 'Taken' is already assigned",
        9999: "Product 9999 not found",
    }
    assert body["message"] == "2 products assigned successfully, 2 failed"


async def test_bulk_assign_nothing_assigned(admin_client: AsyncClient, seed, employee):
    resp = await admin_client.post(
        "/product-assignments/assign/bulk",
        json={"employeeId": employee["id"], "productIds": [123, 456]},
    )
    assert resp.status_code == 409
    body = resp.json()
    assert body["success"] is False
    assert len(body["data"]["failed"]) == 2


async def test_bulk_assign_requires_products(admin_client: AsyncClient, employee):
    resp = await admin_client.post(
        "/product-assignments/assign/bulk", json={"employeeId": employee["id"], "productIds": []}
    )
    assert resp.status_code == 422


# ── Listing ─────────────────────────────────────────────────────────
async def test_active_lists_only_open(admin_client: AsyncClient, seed, employee):
    p1, p2 = await seed.product(), await seed.product()
    a1 = await seed.assignment(p1["id"], employee["id"])
    a2 = await seed.assignment(p2["id"], employee["id"])
    await _return(admin_client, a1["id"], condition="GOOD")

    page = (await admin_client.get("/product-assignments/active")).json()["data"]
    assert [a["id"] for a in page["items"]] == [a2["id"]]


async def test_history_filters(admin_client: AsyncClient, seed, employee):
    p1, p2 = await seed.product(), await seed.product()
    a1 = await seed.assignment(p1["id"], employee["id"])
    await seed.assignment(p2["id"], employee["id"])
    await _return(admin_client, a1["id"], status="LOST")

    lost = (await admin_client.get("/product-assignments/history", params={"status": "lost"})).json()
    assert [a["id"] for a in lost["data"]["items"]] == [a1["id"]]

    active = (await admin_client.get("/product-assignments/list", params={"status": "active"})).json()
    assert [a["productId"] for a in active["data"]["items"]] == [p2["id"]]

    by_product = (
        await admin_client.get("/product-assignments/list", params={"productId": p1["id"]})
    ).json()
    assert by_product["data"]["total"] == 1


async def test_history_date_range_is_inclusive(admin_client: AsyncClient, seed, employee):
    product = await seed.product()
    await seed.assignment(product["id"], employee["id"])
    today = datetime.now(timezone.utc).date().isoformat()

    resp = await admin_client.get(
        "/product-assignments/history", params={"fromDate": today, "toDate": today}
    )
    assert resp.json()["data"]["total"] == 1


async def test_history_inverted_range_rejected(admin_client: AsyncClient):
    resp = await admin_client.get(
        "/product-assignments/history", params={"fromDate": "2025-02-01", "toDate": "2025-01-01"}
    )
    assert resp.status_code == 400
    assert resp.json()["message"] == "fromDate must not be after toDate"


async def test_history_unknown_status_rejected(admin_client: AsyncClient):
    resp = await admin_client.get("/product-assignments/history", params={"status": "borrowed"})
    assert resp.status_code == 400


async def test_history_pagination_is_stable(admin_client: AsyncClient, seed, employee):
    for _ in range(7):
        product = await seed.product()
        await seed.assignment(product["id"], employee["id"])

    seen = []
    for page_no in (1, 2, 3):
        page = (
            await admin_client.get(
                "/product-assignments/history", params={"page": page_no, "limit": 3}
            )
        ).json()["data"]
        assert page["total"] == 7
        assert len(page["items"]) <= 3
        seen.extend(a["id"] for a in page["items"])
    assert len(seen) == len(set(seen)) == 7


async def test_product_history_unknown_product(admin_client: AsyncClient):
    resp = await admin_client.get("/product-assignments/product/321")
    assert resp.status_code == 404


async def test_product_history_is_not_truncated(admin_client: AsyncClient, seed, laptop, employee):
    for _ in range(12):
        assignment = await seed.assignment(laptop["id"], employee["id"])
        await _return(admin_client, assignment["id"], condition="GOOD")

    resp = await admin_client.get(f"/product-assignments/product/{laptop['id']}")
    assert resp.status_code == 200
    history = resp.json()["data"]
    assert len(history) == 12
    assert history[0]["id"] > history[-1]["id"]
