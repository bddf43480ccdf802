"""Integration tests for persisted state changes through the HTTP API.

These tests drive the lifecycle endpoints (confirm, cancel, update, audit
events) with Django's test client and then assert on the stored rows, so
they also cover ``DjangoOrderRepository``'s conditional writes.
"""

from decimal import Decimal
from uuid import UUID

import pytest

from orders.domain import (
    AddOrderEventInput,
    CreateOrderInput,
    CreateOrderItemInput,
    OrderQueryParams,
    OrderStatus,
    UpdateOrderInput,
)
from orders.errors import BadRequest, OrderConflict
from orders.models import OrderEventModel, OrderItemModel, OrderModel
from orders.repository import DjangoOrderRepository

CREATE_URL = "/api/orders/"


@pytest.fixture
def created(db, client, order_payload):
    r = client.post(CREATE_URL, data=order_payload, content_type="application/json")
    assert r.status_code == 201
    return r.json()


def _url(order, action=""):
    return f"/api/orders/{order['id']}/{action}"


@pytest.mark.django_db
def test_create_persists_order_row_with_uuid_pk(created):
    """The response id is a UUID and the row stores the computed money columns."""
    row = OrderModel.objects.values("status", "total", "tax", "currency").get(pk=UUID(created["id"]))
    assert row == {
        "status": "pending",
        "total": Decimal("345.00"),
        "tax": Decimal("30.00"),
        "currency": "USD",
    }
    assert OrderEventModel.objects.filter(order_id=created["id"], type="order_created").count() == 1


@pytest.mark.django_db
def test_confirm_then_confirm_again(client, created):
    r = client.post(_url(created, "confirm/"), content_type="application/json")
    assert r.status_code == 200
    assert r.json()["status"] == "confirmed"

    r = client.post(_url(created, "confirm/"), content_type="application/json")
    assert r.status_code == 400
    assert r.json()["detail"] == "INVALID_TRANSITION"


@pytest.mark.django_db
def test_cancel_stores_reason_and_timestamp(client, created):
    r = client.post(_url(created, "cancel/"), data={"reason": "duplicate"}, content_type="application/json")
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "cancelled"
    assert body["cancelled_at"] is not None
    assert [e["type"] for e in body["events"]] == ["order_cancelled", "status_changed", "order_created"]
    assert body["events"][0]["data"] == {"reason": "duplicate"}

    row = OrderModel.objects.get(pk=UUID(created["id"]))
    assert row.status == "cancelled"
    assert row.cancelled_at is not None


@pytest.mark.django_db
def test_cancel_shipped_order_is_rejected(client, created):
    r = client.patch(_url(created), data={"status": "shipped"}, content_type="application/json")
    assert r.status_code == 200

    r = client.post(_url(created, "cancel/"), content_type="application/json")
    assert r.status_code == 400
    assert r.json()["detail"] == "INVALID_TRANSITION"
    assert OrderModel.objects.get(pk=UUID(created["id"])).status == "shipped"


@pytest.mark.django_db
def test_cancel_disabled_by_settings(client, settings, created):
    settings.ORDERS = {**settings.ORDERS, "ALLOW_CANCEL": False}
    r = client.post(_url(created, "cancel/"), content_type="application/json")
    assert r.status_code == 400
    assert r.json()["detail"] == "CANCELLATION_DISABLED"


@pytest.mark.django_db
def test_update_payment_auto_confirms(client, settings, created):
    settings.ORDERS = {**settings.ORDERS, "CONFIRM_ON_PAYMENT": True}
    r = client.put(_url(created), data={"payment_status": "paid"}, content_type="application/json")
    assert r.status_code == 200
    body = r.json()
    assert body["payment_status"] == "paid"
    assert body["status"] == "confirmed"


@pytest.mark.django_db
def test_update_rejects_edits_when_disabled(client, settings, created):
    settings.ORDERS = {**settings.ORDERS, "ALLOW_EDIT": False}
    r = client.put(_url(created), data={"notes": "gift"}, content_type="application/json")
    assert r.status_code == 400
    assert r.json()["detail"] == "EDITING_DISABLED"


@pytest.mark.django_db
def test_update_rejects_fulfillment_status(client, created):
    r = client.put(_url(created), data={"fulfillment_status": "fulfilled"}, content_type="application/json")
    assert r.status_code == 400


@pytest.mark.django_db
def test_lifecycle_on_unknown_order_is_404(client):
    r = client.post("/api/orders/00000000-0000-0000-0000-000000000000/confirm/", content_type="application/json")
    assert r.status_code == 404
    assert r.json()["detail"] == "ORDER_NOT_FOUND"


@pytest.mark.django_db
def test_events_endpoint_adds_and_lists_newest_first(client, created):
    r = client.post(
        _url(created, "events/"),
        data={"type": "note", "note": "called customer", "created_by": "support"},
        content_type="application/json",
    )
    assert r.status_code == 201
    assert r.json()["order_id"] == created["id"]

    first = client.get(_url(created, "events/")).json()
    second = client.get(_url(created, "events/")).json()
    assert [e["type"] for e in first] == ["note", "order_created"]
    assert first == second


@pytest.mark.django_db
def test_conditional_update_detects_stale_status(created):
    repo = DjangoOrderRepository()
    repo.update(created["id"], {"status": OrderStatus.CONFIRMED})

    with pytest.raises(OrderConflict):
        repo.update(created["id"], {"status": OrderStatus.CANCELLED}, expected_status=OrderStatus.PENDING)
    assert OrderModel.objects.get(pk=UUID(created["id"])).status == "confirmed"


@pytest.mark.django_db
def test_record_fulfillment_against_database(created):
    from orders.providers import get_order_service

    service = get_order_service()
    order = service.find_by_id(created["id"])
    widget, gadget = order.items

    partial = service.record_fulfillment(order.id, {widget.id: 1})
    assert partial.fulfillment_status.value == "partial"

    done = service.record_fulfillment(order.id, {widget.id: 1, gadget.id: 3})
    assert done.fulfillment_status.value == "fulfilled"
    assert [i.fulfilled_qty for i in done.items] == [2, 3]


@pytest.mark.django_db
def test_direct_status_update_writes_status_changed_event(created):
    from orders.providers import get_order_service

    order = get_order_service().update(created["id"], UpdateOrderInput(status=OrderStatus.PROCESSING))
    assert order.events[0].type == "status_changed"
    assert order.events[0].data == {"from": "pending", "to": "processing"}


@pytest.mark.django_db
def test_repository_list_embeds_only_recent_events(created):
    repo = DjangoOrderRepository()
    for n in range(6):
        repo.append_event(created["id"], AddOrderEventInput(type="note", note=f"note {n}"))

    page = repo.find_many(OrderQueryParams())

    assert page.total == 1
    events = page.data[0].events
    assert len(events) == 5
    assert [e.note for e in events] == ["note 5", "note 4", "note 3", "note 2", "note 1"]
    assert len(repo.find_by_id(created["id"]).events) == 7


@pytest.mark.django_db
def test_fulfilled_quantity_never_passes_ordered_quantity(created):
    repo = DjangoOrderRepository()
    widget, gadget = repo.find_by_id(created["id"]).items
    repo.add_fulfilled_quantities(created["id"], {widget.id: 1})

    # a second writer working from the stale read still tries to add 2
    with pytest.raises(BadRequest) as e:
        repo.add_fulfilled_quantities(created["id"], {gadget.id: 1, widget.id: 2})

    assert str(e.value) == "FULFILLMENT_EXCEEDS_ORDERED"
    assert list(OrderItemModel.objects.filter(order_id=created["id"]).values_list("fulfilled_qty", flat=True)) == [1, 0]


@pytest.mark.django_db
def test_create_retries_when_the_order_number_was_taken_meanwhile(created):
    from orders.providers import get_order_service

    service = get_order_service()
    numbers = iter([created["order_number"], "ORD-FRESH001"])
    # skips the existence check, as if another request inserted the number in between
    service._generate_order_number = lambda: next(numbers)

    order = service.create(
        CreateOrderInput(
            email="grace@example.com",
            items=[CreateOrderItemInput(product_name="Widget", quantity=1, price=Decimal("10"))],
            shipping_address={"first_name": "Grace", "city": "Arlington"},
        )
    )

    assert order.order_number == "ORD-FRESH001"
    assert OrderModel.objects.count() == 2
    assert OrderEventModel.objects.filter(order_id=order.id, type="order_created").count() == 1
