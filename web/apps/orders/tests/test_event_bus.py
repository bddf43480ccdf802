"""Unit tests for the in-process EventBus."""

from orders.events import ORDER_CREATED, ORDER_UPDATED, OrderUpdated


def test_listeners_receive_payload_in_subscription_order(event_bus):
    seen = []
    event_bus.subscribe(ORDER_UPDATED, lambda p: seen.append(("first", p.status)))
    event_bus.subscribe(ORDER_UPDATED, lambda p: seen.append(("second", p.status)))

    delivered = event_bus.emit(ORDER_UPDATED, OrderUpdated(order_id="o-1", status="confirmed"))

    assert delivered is True
    assert seen == [("first", "confirmed"), ("second", "confirmed")]


def test_emit_without_listeners_returns_false(event_bus):
    assert event_bus.emit(ORDER_CREATED, object()) is False


def test_subscribe_once_delivers_a_single_time(event_bus):
    seen = []
    event_bus.subscribe_once(ORDER_UPDATED, seen.append)

    event_bus.emit(ORDER_UPDATED, 1)
    event_bus.emit(ORDER_UPDATED, 2)

    assert seen == [1]
    assert event_bus.listener_count(ORDER_UPDATED) == 0


def test_unsubscribe(event_bus):
    seen = []

    def handler(payload):
        seen.append(payload)

    assert event_bus.subscribe(ORDER_UPDATED, handler) is handler
    assert event_bus.unsubscribe(ORDER_UPDATED, handler) is True
    assert event_bus.unsubscribe(ORDER_UPDATED, handler) is False
    event_bus.emit(ORDER_UPDATED, 1)
    assert seen == []


def test_failing_listener_is_logged_and_others_still_run(event_bus, caplog):
    seen = []

    def broken(_):
        raise RuntimeError("boom")

    event_bus.subscribe(ORDER_UPDATED, broken)
    event_bus.subscribe(ORDER_UPDATED, seen.append)

    assert event_bus.emit(ORDER_UPDATED, "payload") is True
    assert seen == ["payload"]
    assert "event listener failed" in caplog.text


def test_clear(event_bus):
    event_bus.subscribe(ORDER_CREATED, print)
    event_bus.subscribe(ORDER_UPDATED, print)

    event_bus.clear(ORDER_CREATED)
    assert event_bus.listener_count(ORDER_CREATED) == 0
    assert event_bus.listener_count(ORDER_UPDATED) == 1

    event_bus.clear()
    assert event_bus.listener_count(ORDER_UPDATED) == 0
