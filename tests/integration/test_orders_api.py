import json

import pytest

from app.crud.variant import VariantStockCRUD
from app.db.enums import OrderStatus


@pytest.fixture
def order_payload(wilaya, catalog):
    return {
        "customer": {
            "first_name": "Yacine",
            "last_name": "Haddad",
            "phone": "0661987654",
            "wilaya_id": str(wilaya),
            "municipality_name": "Hydra",
            "delivery_type": "desk",
        },
        "lines": [
            {"variant_id": str(catalog["v1"]), "quantity": 2},
            {"variant_id": str(catalog["v2"]), "quantity": 1},
        ],
    }


async def _stock(db_session, variant_id) -> int:
    return await VariantStockCRUD(db_session).read(variant_id)


@pytest.mark.asyncio
async def test_order_lifecycle_over_http(client, db_session, catalog, order_payload, mock_redis):
    # PLACE
    resp = await client.post("/api/v1/orders", json=order_payload)
    assert resp.status_code == 201
    order = resp.json()
    order_id = order["id"]
    assert order["status"] == OrderStatus.PENDING.value
    assert order["delivery_price"] == "400.00"
    assert order["summary"] == "Linen Dress (M) [Black] x2 + Linen Dress (L) [White] x1"
    assert await _stock(db_session, catalog["v1"]) == 8
    assert await _stock(db_session, catalog["v2"]) == 2

    # CONFIRM
    resp = await client.post(f"/api/v1/orders/{order_id}/status", json={"status": "confirmed"})
    assert resp.status_code == 200
    assert resp.json()["confirmed_at"] is not None

    # SAME TARGET AGAIN
    resp = await client.post(f"/api/v1/orders/{order_id}/status", json={"status": "confirmed"})
    assert resp.status_code == 400

    # CANCEL RESTORES STOCK
    resp = await client.post(f"/api/v1/orders/{order_id}/status", json={"status": "cancelled"})
    assert resp.status_code == 200
    assert await _stock(db_session, catalog["v1"]) == 10
    assert await _stock(db_session, catalog["v2"]) == 3

    events = mock_redis.streams["order_events"]
    assert [e["type"] for e in events] == [
        "order_created",
        "order_transitioned",
        "order_transitioned",
    ]
    assert json.loads(events[-1]["payload"])["to_status"] == "cancelled"


@pytest.mark.asyncio
async def test_unreachable_target_is_rejected(client, order_payload):
    order_id = (await client.post("/api/v1/orders", json=order_payload)).json()["id"]

    resp = await client.post(f"/api/v1/orders/{order_id}/status", json={"status": "delivered"})

    assert resp.status_code == 400
    assert "pending" in resp.json()["detail"]


@pytest.mark.asyncio
async def test_unknown_order_returns_404(client):
    missing = "00000000-0000-0000-0000-000000000000"

    assert (await client.get(f"/api/v1/orders/{missing}")).status_code == 404
    resp = await client.post(f"/api/v1/orders/{missing}/status", json={"status": "confirmed"})
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_order_exceeding_stock_is_rejected(client, db_session, catalog, order_payload):
    order_payload["lines"] = [{"variant_id": str(catalog["v2"]), "quantity": 4}]

    resp = await client.post("/api/v1/orders", json=order_payload)

    assert resp.status_code == 400
    assert await _stock(db_session, catalog["v2"]) == 3


@pytest.mark.asyncio
async def test_malformed_order_is_rejected(client, order_payload):
    order_payload["lines"][0]["quantity"] = 0

    resp = await client.post("/api/v1/orders", json=order_payload)

    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_undo_confirmation(client, order_payload):
    order_id = (await client.post("/api/v1/orders", json=order_payload)).json()["id"]

    # Not confirmed yet
    resp = await client.post(f"/api/v1/orders/{order_id}/undo-confirmation")
    assert resp.status_code == 400

    await client.post(f"/api/v1/orders/{order_id}/status", json={"status": "confirmed"})
    resp = await client.post(f"/api/v1/orders/{order_id}/undo-confirmation")

    assert resp.status_code == 200
    assert resp.json()["status"] == OrderStatus.PENDING.value


@pytest.mark.asyncio
async def test_list_and_search(client, order_payload):
    await client.post("/api/v1/orders", json=order_payload)

    resp = await client.get("/api/v1/orders", params={"search": "0661"})
    assert resp.status_code == 200
    assert len(resp.json()) == 1

    resp = await client.get("/api/v1/orders", params={"status": "confirmed"})
    assert resp.json() == []


@pytest.mark.asyncio
async def test_delete_keeps_stock_consumed(client, db_session, catalog, order_payload):
    order_id = (await client.post("/api/v1/orders", json=order_payload)).json()["id"]

    resp = await client.delete(f"/api/v1/orders/{order_id}")

    assert resp.status_code == 204
    assert (await client.get(f"/api/v1/orders/{order_id}")).status_code == 404
    assert await _stock(db_session, catalog["v1"]) == 8


@pytest.mark.asyncio
async def test_unread_inbox(client, order_payload):
    first = (await client.post("/api/v1/orders", json=order_payload)).json()["id"]
    await client.post("/api/v1/orders", json=order_payload)

    inbox = (await client.get("/api/v1/orders/unread")).json()
    assert inbox["count"] == 2

    assert (await client.post(f"/api/v1/orders/{first}/read")).status_code == 204
    assert (await client.get("/api/v1/orders/unread")).json()["count"] == 1

    resp = await client.post("/api/v1/orders/read-all")
    assert resp.json() == {"marked": 1}
    assert (await client.get("/api/v1/orders/unread")).json()["count"] == 0


@pytest.mark.asyncio
async def test_repair_with_nothing_pending(client):
    resp = await client.post("/api/v1/orders/reconciliation/repair")

    assert resp.status_code == 200
    assert resp.json() == {"repaired": 0}
