"""Tests for Idempotency-Key replay on mutating requests."""

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select

from assetdesk.models.assignment import ProductAssignment
from assetdesk.models.catalog import Branch
from assetdesk.services.idempotency import Idempotency


async def test_replayed_create_returns_stored_response(admin_client: AsyncClient, db_session):
    headers = {"Idempotency-Key": "branch-create-1"}
    first = await admin_client.post("/branches", json={"name": "Gwadar"}, headers=headers)
    second = await admin_client.post("/branches", json={"name": "Gwadar"}, headers=headers)

    assert first.status_code == second.status_code == 201
    assert second.json() == first.json()
    assert second.headers["Idempotent-Replayed"] == "true"
    assert "Idempotent-Replayed" not in first.headers

    count = (await db_session.execute(select(func.count(Branch.id)))).scalar_one()
    assert count == 1


async def test_without_key_second_create_conflicts(admin_client: AsyncClient):
    await admin_client.post("/branches", json={"name": "Sukkur"})
    resp = await admin_client.post("/branches", json={"name": "Sukkur"})
    assert resp.status_code == 409


async def test_replayed_assign_does_not_double_assign(admin_client: AsyncClient, seed, db_session):
    product = await seed.product()
    emp = await seed.employee()
    body = {"productId": product["id"], "employeeId": emp["id"]}
    headers = {"Idempotency-Key": "assign-42"}

    first = await admin_client.post("/product-assignments/assign", json=body, headers=headers)
    retry = await admin_client.post("/product-assignments/assign", json=body, headers=headers)
    assert first.status_code == retry.status_code == 201
    assert retry.json()["data"]["id"] == first.json()["data"]["id"]

    rows = (await db_session.execute(select(func.count(ProductAssignment.id)))).scalar_one()
    assert rows == 1


async def test_replayed_return_is_not_a_second_transition(admin_client: AsyncClient, seed):
    product = await seed.product()
    emp = await seed.employee()
    assignment = await seed.assignment(product["id"], emp["id"])
    path = f"/product-assignments/return/{assignment['id']}"
    headers = {"Idempotency-Key": "return-7"}

    first = await admin_client.post(path, json={"condition": "GOOD"}, headers=headers)
    retry = await admin_client.post(path, json={"condition": "GOOD"}, headers=headers)
    assert first.status_code == retry.status_code == 200
    assert retry.json() == first.json()

    # a fresh key is a genuinely new request and hits the state machine
    fresh = await admin_client.post(path, json={"condition": "GOOD"}, headers={"Idempotency-Key": "return-8"})
    assert fresh.status_code == 409


async def test_key_reused_for_different_request(admin_client: AsyncClient):
    headers = {"Idempotency-Key": "shared"}
    await admin_client.post("/branches", json={"name": "Hyderabad"}, headers=headers)
    resp = await admin_client.post("/categories", json={"name": "Monitors"}, headers=headers)
    assert resp.status_code == 409
    assert "different request" in resp.json()["message"]


async def test_keys_are_scoped_per_user(admin_client: AsyncClient, super_client: AsyncClient):
    headers = {"Idempotency-Key": "same-key"}
    a = await admin_client.post("/branches", json={"name": "Mardan"}, headers=headers)
    b = await super_client.post("/branches", json={"name": "Swat"}, headers=headers)
    assert a.status_code == b.status_code == 201
    assert a.json()["data"]["id"] != b.json()["data"]["id"]


async def test_failed_bulk_assign_is_not_replayed(admin_client: AsyncClient, seed):
    product = await seed.product()
    holder = await seed.employee()
    taker = await seed.employee()
    held = await seed.assignment(product["id"], holder["id"])

    body = {"employeeId": taker["id"], "productIds": [product["id"]]}
    headers = {"Idempotency-Key": "bulk-retry"}
    refused = await admin_client.post("/product-assignments/assign/bulk", json=body, headers=headers)
    assert refused.status_code == 409

    await admin_client.post(
        f"/product-assignments/return/{held['id']}", json={"condition": "GOOD"}
    )
    retry = await admin_client.post("/product-assignments/assign/bulk", json=body, headers=headers)
    assert retry.status_code == 201
    assert "Idempotent-Replayed" not in retry.headers
    assert retry.json()["data"]["assigned"][0]["employeeId"] == taker["id"]


def test_replay_without_stored_response_raises():
    idem = Idempotency(key="k", user_id=1, method="POST", path="/branches")
    with pytest.raises(RuntimeError):
        idem.replay()
