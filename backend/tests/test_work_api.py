"""
Integration tests for work transaction endpoints and analytics.
"""

import pytest


@pytest.fixture
async def client_id(client):
    response = await client.post("/v1/clients", json={
        "name": "Sunita Das",
        "phone": "9123456780",
        "address": "4 Station Road, Howrah 711101",
    })
    assert response.status_code == 201
    return response.json()["id"]


def _work(client_id, **overrides):
    payload = {
        "client_id": client_id,
        "total_price": 2500,
        "paid_amount": 0,
        "work_types": ["life-insurance", "life-insurance"],
        "description": "  LIC premium payment  ",
        "transaction_date": "2025-05-20",
    }
    payload.update(overrides)
    return payload


@pytest.mark.asyncio
async def test_create_work(client, client_id):
    response = await client.post("/v1/works", json=_work(client_id))

    assert response.status_code == 201
    data = response.json()
    assert data["payment_status"] == "unpaid"
    assert data["balance_contribution"] == 2500
    assert data["work_types"] == ["life-insurance"]
    assert data["description"] == "LIC premium payment"


@pytest.mark.asyncio
async def test_create_work_validation(client, client_id):
    response = await client.post("/v1/works", json=_work(
        client_id,
        total_price=-1,
        work_types=[],
        description="abc",
        transaction_date="31/02/2025",
    ))

    assert response.status_code == 422
    fields = {e["field"] for e in response.json()["details"]["errors"]}
    assert {"total_price", "work_types", "description", "transaction_date"} <= fields


@pytest.mark.asyncio
async def test_create_work_amount_cap(client, client_id):
    response = await client.post("/v1/works", json=_work(client_id, total_price=10_000_000_001))
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_create_work_unknown_client(client):
    response = await client.post("/v1/works", json=_work(999))
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_update_work_recomputes_status(client, client_id):
    created = await client.post("/v1/works", json=_work(client_id))
    work_id = created.json()["id"]

    response = await client.patch(f"/v1/works/{work_id}", json={"paid_amount": 1000})

    assert response.status_code == 200
    assert response.json()["payment_status"] == "partial"

    balance = await client.get(f"/v1/clients/{client_id}/balance")
    assert balance.json()["balance"] == 1500


@pytest.mark.asyncio
async def test_update_work_empty_body(client, client_id):
    created = await client.post("/v1/works", json=_work(client_id))

    response = await client.patch(f"/v1/works/{created.json()['id']}", json={})

    assert response.status_code == 422
    assert response.json()["error_code"] == "ERR_VALIDATION"


@pytest.mark.asyncio
async def test_delete_unknown_work(client):
    response = await client.delete("/v1/works/12345")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_list_works_by_status(client, client_id):
    await client.post("/v1/works", json=_work(client_id))
    await client.post("/v1/works", json=_work(client_id, paid_amount=2500))

    response = await client.get("/v1/works", params={"client_id": client_id, "payment_status": "paid"})

    assert response.status_code == 200
    assert response.json()["total"] == 1
    assert response.json()["works"][0]["paid_amount"] == 2500


@pytest.mark.asyncio
async def test_work_stats(client, client_id):
    await client.post("/v1/works", json=_work(client_id))
    await client.post("/v1/works", json=_work(client_id, paid_amount=1000))
    await client.post("/v1/works", json=_work(client_id, paid_amount=3000))

    response = await client.get("/v1/analytics/works")

    assert response.status_code == 200
    assert response.json() == {
        "total_works": 3,
        "total_income": 4000,
        "total_due": 3500,
        "total_value": 7500,
        "paid_works": 1,
        "partial_works": 1,
        "unpaid_works": 1,
    }


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert "X-Correlation-ID" in response.headers


@pytest.mark.asyncio
async def test_analytics_endpoints(client, client_id):
    await client.post("/v1/works", json=_work(client_id, paid_amount=1000))
    await client.post("/v1/works", json=_work(client_id, transaction_date="2025-04-02"))

    overview = await client.get("/v1/analytics/overview", params={"date_from": "2025-05-01"})
    assert overview.status_code == 200
    body = overview.json()
    assert body["total_works"] == 1
    assert body["total_due"] == 1500
    assert body["date_from"] == "2025-05-01"
    assert body["client_balance_breakdown"] == {"positive": 1, "negative": 0, "zero": 0}

    clients = await client.get("/v1/analytics/clients", params={"limit": 1})
    assert clients.status_code == 200
    assert clients.json()["top_clients"][0]["current_balance"] == 4000

    payments = await client.get("/v1/analytics/payments")
    assert payments.status_code == 200
    assert payments.json()["collection_efficiency"] == 20.0
    assert [m["month"] for m in payments.json()["monthly_collection"]] == ["2025-04", "2025-05"]


@pytest.mark.asyncio
async def test_analytics_rejects_bad_limit(client):
    response = await client.get("/v1/analytics/clients", params={"limit": 0})

    assert response.status_code == 422
