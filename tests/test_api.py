"""HTTP contract of the order endpoints via TestClient."""
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import func, select

from partsorders.db import SessionLocal
from partsorders.main import app, get_creation_workflow
from partsorders.models import Order, OrderItem

SCENARIO_ORDER = {
    "customer_id": 8,
    "order_date": "2025-05-19",
    "orderitems": [
        {"part_id": 165, "quantity": 1, "price": 280.25, "totalprice": 280.25},
        {"part_id": 123, "quantity": 3, "price": 500, "totalprice": 1500},
    ],
}


def order_body(**overrides):
    body = dict(SCENARIO_ORDER)
    body.update(overrides)
    return body


def count(model):
    with SessionLocal() as s:
        return s.scalar(select(func.count()).select_from(model))


def _create(client, **overrides):
    response = client.post("/orders", json=order_body(**overrides))
    assert response.status_code == 201, response.text
    return response.json()


def test_create_order_returns_201_with_total(client):
    data = _create(client)

    assert data["order_id"] == 1
    assert data["customer_id"] == 8
    assert data["order_date"] == "2025-05-19"
    assert data["total_amount"] == 1780.25
    assert [(i["part_id"], i["quantity"], i["totalprice"]) for i in data["orderitems"]] == [
        (165, 1, 280.25),
        (123, 3, 1500.0),
    ]
    assert all(i["order_id"] == 1 for i in data["orderitems"])
    assert count(OrderItem) == 2


def test_unknown_customer_is_400_and_writes_nothing(client):
    response = client.post(
        "/orders",
        json={
            "customer_id": 999,
            "order_date": "2025-07-11",
            "orderitems": [{"part_id": 165, "quantity": 1, "price": 540, "totalprice": 540}],
        },
    )
    assert response.status_code == 400
    assert response.headers["content-type"].startswith("application/problem+json")
    problem = response.json()
    assert problem["status"] == 400
    assert problem["title"] == "Validation Error"
    assert problem["detail"] == "customer 999 not found"
    assert count(Order) == 0


def test_unknown_part_is_400(client):
    body = order_body(orderitems=[{"part_id": 99999, "quantity": 1, "price": 10, "totalprice": 10}])
    response = client.post("/orders", json=body)
    assert response.status_code == 400
    assert response.json()["detail"] == "part 99999 not found"
    assert count(Order) == 0


def test_slash_date_is_400(client):
    response = client.post("/orders", json=order_body(order_date="2025/07/11"))
    assert response.status_code == 400
    assert response.json()["detail"] == "invalid date format"


def test_empty_items_is_400(client):
    response = client.post("/orders", json=order_body(orderitems=[]))
    assert response.status_code == 400
    assert "at least one order item is required" in response.json()["detail"]


def test_missing_items_is_400(client):
    body = order_body()
    del body["orderitems"]
    response = client.post("/orders", json=body)
    assert response.status_code == 400


def test_zero_quantity_is_400(client):
    body = order_body(orderitems=[{"part_id": 165, "quantity": 0, "price": 10, "totalprice": 0}])
    response = client.post("/orders", json=body)
    assert response.status_code == 400
    assert response.json()["errors"] == ["orderitems[0].quantity: quantity must be a positive number"]


def test_malformed_body_is_400_not_422(client):
    response = client.post("/orders", json={"order_date": "2025-05-19", "orderitems": "nope"})
    assert response.status_code == 400
    errors = response.json()["errors"]
    assert any(e.startswith("customer_id") for e in errors)


def test_negative_price_is_400(client):
    body = order_body(orderitems=[{"part_id": 165, "quantity": 1, "price": -1, "totalprice": 1}])
    assert client.post("/orders", json=body).status_code == 400


def test_insufficient_stock_is_409(client):
    body = order_body(orderitems=[{"part_id": 77, "quantity": 3, "price": 90, "totalprice": 270}])
    response = client.post("/orders", json=body)
    assert response.status_code == 409
    assert response.json()["detail"] == "insufficient stock for part 77: available 2, requested 3"
    assert count(Order) == 0


def test_duplicate_client_id_is_409(client):
    _create(client, order_id=5)
    response = client.post("/orders", json=order_body(order_id=5))
    assert response.status_code == 409
    assert count(Order) == 1


def test_unexpected_failure_is_500_problem():
    class Exploding:
        def create(self, draft):
            raise RuntimeError("disk on fire")

    app.dependency_overrides[get_creation_workflow] = lambda: Exploding()
    try:
        response = TestClient(app, raise_server_exceptions=False).post("/orders", json=order_body())
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 500
    assert "disk on fire" not in response.text
    assert response.json()["title"] == "Internal Server Error"


def test_list_orders_newest_first(client):
    _create(client, order_date="2025-01-02")
    _create(client, order_date="2025-07-11")
    _create(client, order_date="2024-12-31")

    response = client.get("/orders")

    assert response.status_code == 200
    data = response.json()
    assert [o["order_date"] for o in data] == ["2025-07-11", "2025-01-02", "2024-12-31"]
    assert all(len(o["orderitems"]) == 2 for o in data)


def test_list_orders_empty(client):
    response = client.get("/orders")
    assert response.status_code == 200
    assert response.json() == []


def test_get_order_by_id(client):
    created = _create(client)
    response = client.get(f"/orders/{created['order_id']}")
    assert response.status_code == 200
    assert response.json() == created


def test_get_unknown_order_is_404(client):
    response = client.get("/orders/777")
    assert response.status_code == 404
    assert response.json()["title"] == "Order Not Found"


@pytest.mark.parametrize("bad_id", ["0", "-4", "abc"])
def test_get_order_with_bad_id_is_400(client, bad_id):
    assert client.get(f"/orders/{bad_id}").status_code == 400


def test_update_order_replaces_items(client):
    created = _create(client)
    body = order_body(orderitems=[{"part_id": 77, "quantity": 1, "price": 90, "totalprice": 90}])

    response = client.put(f"/orders/{created['order_id']}", json=body)

    assert response.status_code == 200
    data = response.json()
    assert data["total_amount"] == 90.0
    assert [i["part_id"] for i in data["orderitems"]] == [77]
    assert client.get(f"/orders/{created['order_id']}").json() == data


def test_update_unknown_order_is_404(client):
    assert client.put("/orders/88", json=order_body()).status_code == 404


def test_delete_order(client):
    first = _create(client)
    second = _create(client)

    response = client.delete(f"/orders/{first['order_id']}")

    assert response.status_code == 204
    assert client.get(f"/orders/{first['order_id']}").status_code == 404
    assert client.get(f"/orders/{second['order_id']}").status_code == 200
    assert count(OrderItem) == 2


def test_delete_unknown_order_is_404(client):
    assert client.delete("/orders/5").status_code == 404


def test_health_and_metrics(client):
    assert client.get("/health").text == "ok"
    _create(client)
    metrics = client.get("/metrics")
    assert metrics.status_code == 200
    assert "orders_created_total" in metrics.text


def test_sub_cent_money_is_400(client):
    items = [{"part_id": 165, "quantity": 1, "price": 0.005, "totalprice": 0.005}] * 2
    response = client.post("/orders", json=order_body(orderitems=items))
    assert response.status_code == 400
    assert count(Order) == 0


def test_largest_money_value_round_trips(client):
    items = [{"part_id": 165, "quantity": 1, "price": "9999999999999.99", "totalprice": "9999999999999.99"}]
    created = _create(client, orderitems=items)

    fetched = client.get(f"/orders/{created['order_id']}").json()

    assert fetched["total_amount"] == 9999999999999.99
    assert fetched["orderitems"][0]["totalprice"] == 9999999999999.99
    assert '"total_amount":9999999999999.99' in client.get(f"/orders/{created['order_id']}").text


def test_money_beyond_fifteen_digits_is_400(client):
    items = [{"part_id": 165, "quantity": 1, "price": "1234567890123456.78", "totalprice": "1234567890123456.78"}]
    response = client.post("/orders", json=order_body(orderitems=items))
    assert response.status_code == 400
    assert count(Order) == 0


@pytest.mark.parametrize(
    "overrides",
    [
        {"customer_id": 2_147_483_648},
        {"order_id": 2_147_483_648},
        {"orderitems": [{"part_id": 2_147_483_648, "quantity": 1, "price": 1, "totalprice": 1}]},
    ],
)
def test_ids_beyond_integer_range_are_400(client, overrides):
    response = client.post("/orders", json=order_body(**overrides))
    assert response.status_code == 400
    assert count(Order) == 0


def test_path_id_beyond_integer_range_is_400(client):
    assert client.get("/orders/2147483648").status_code == 400
    assert client.delete("/orders/2147483648").status_code == 400
