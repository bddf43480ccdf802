"""API tests for the create-order and totals-preview endpoints.

These tests exercise the orders HTTP API end to end with Django's test
client: successful creation, payload validation errors, hook failures
surfacing after commit, and the checkout totals preview.
"""

from decimal import Decimal

import pytest

from orders import providers
from orders.events import ORDER_CREATED

CREATE_URL = "/api/orders/"
TOTALS_URL = "/api/orders/totals/"


@pytest.mark.django_db
def test_create_order_returns_201_with_totals(client, order_payload):
    """Valid checkout input creates a pending order with computed totals."""
    r = client.post(CREATE_URL, data=order_payload, content_type="application/json")
    assert r.status_code == 201
    body = r.json()
    assert body["email"] == "ada@example.com"
    assert body["currency"] == "USD"
    assert body["status"] == "pending"
    assert body["payment_status"] == "pending"
    assert body["fulfillment_status"] == "unfulfilled"
    assert body["subtotal"] == "350.00"
    assert body["tax"] == "30.00"
    assert body["total"] == "345.00"
    assert [i["product_name"] for i in body["items"]] == ["Widget", "Gadget"]
    assert [e["type"] for e in body["events"]] == ["order_created"]
    assert body["order_number"].startswith("ORD-")


@pytest.mark.django_db
def test_create_order_emits_on_app_bus(client, order_payload):
    received = []
    bus = providers.get_event_bus()
    handler = bus.subscribe(ORDER_CREATED, received.append)
    try:
        r = client.post(CREATE_URL, data=order_payload, content_type="application/json")
    finally:
        bus.unsubscribe(ORDER_CREATED, handler)
    assert r.status_code == 201
    assert [p.order_id for p in received] == [r.json()["id"]]


@pytest.mark.django_db
def test_create_order_uses_configured_prefix(client, settings, order_payload):
    settings.ORDERS = {**settings.ORDERS, "ORDER_NUMBER_PREFIX": "SHOP", "ORDER_NUMBER_LENGTH": 6}
    r = client.post(CREATE_URL, data=order_payload, content_type="application/json")
    assert r.status_code == 201
    prefix, random_part = r.json()["order_number"].split("-")
    assert prefix == "SHOP"
    assert len(random_part) == 6


@pytest.mark.django_db
def test_create_order_without_event_tracking(client, settings, order_payload):
    settings.ORDERS = {**settings.ORDERS, "TRACK_EVENTS": False}
    r = client.post(CREATE_URL, data=order_payload, content_type="application/json")
    assert r.status_code == 201
    assert r.json()["events"] == []


@pytest.mark.django_db
@pytest.mark.parametrize(
    "patch",
    [
        {"items": []},
        {"email": "not-an-email"},
        {"currency": "EU"},
        {"tax_rate": "1.5"},
        {"items": [{"product_name": "Widget", "quantity": 0, "price": "1.00"}]},
        {"items": [{"product_name": "Widget", "quantity": 1000001, "price": "1.00"}]},
        {"items": [{"product_name": "Widget", "quantity": 1, "price": "12345678901.00"}]},
        {"discount": "1.005"},
        {"shipping_cost": "10000000000"},
    ],
)
def test_create_order_validation_error(client, order_payload, patch):
    """Returns 400 when the payload fails DTO validation."""
    r = client.post(CREATE_URL, data={**order_payload, **patch}, content_type="application/json")
    assert r.status_code == 400
    assert "detail" in r.json()


@pytest.mark.django_db
def test_create_order_with_unstorable_total_is_rejected(client, order_payload):
    """Line totals beyond the money columns are a 400 and nothing is written."""
    from orders.models import OrderItemModel, OrderModel

    items = [{"product_name": "Yacht", "quantity": 1000, "price": "9999999999.99"}]
    r = client.post(CREATE_URL, data={**order_payload, "items": items}, content_type="application/json")

    assert r.status_code == 400
    assert r.json()["detail"] == "AMOUNT_OUT_OF_RANGE"
    assert OrderModel.objects.count() == 0
    assert OrderItemModel.objects.count() == 0
    r = client.get(CREATE_URL)
    assert r.status_code == 200
    assert r.json()["count"] == 0


@pytest.mark.django_db
def test_after_create_hook_error_surfaces_after_commit(client, settings, order_payload):
    """A raising hook fails the request but the order is already stored."""
    from orders.models import OrderModel

    settings.ORDERS = {**settings.ORDERS, "HOOKS": {"after_create": "test_api_create_order.failing_hook"}}
    client.raise_request_exception = False

    r = client.post(CREATE_URL, data=order_payload, content_type="application/json")

    assert r.status_code == 500
    assert OrderModel.objects.filter(email="ada@example.com").count() == 1


def failing_hook(order):
    raise RuntimeError("notification service down")


def test_totals_preview(client):
    payload = {
        "items": [{"quantity": 2, "price": "100"}, {"quantity": 3, "price": "50"}],
        "discount": "50",
        "tax_rate": "0.1",
        "shipping_cost": "15",
    }
    r = client.post(TOTALS_URL, data=payload, content_type="application/json")
    assert r.status_code == 200
    assert r.json() == {
        "subtotal": "350",
        "discount": "50",
        "tax": "30.00",
        "shipping": "15",
        "total": "345.00",
    }


def test_totals_preview_of_empty_cart(client):
    r = client.post(TOTALS_URL, data={}, content_type="application/json")
    assert r.status_code == 200
    assert Decimal(r.json()["total"]) == 0
