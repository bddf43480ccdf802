"""Unit tests for lifecycle hook dispatch."""

import json

import pytest

from orders.hooks import HookDispatcher, OrderHooks


def test_empty_slot_returns_none():
    dispatcher = HookDispatcher()
    assert dispatcher.has("after_create") is False
    assert dispatcher.run("after_create", object()) is None


def test_sync_hook_result_is_returned():
    dispatcher = HookDispatcher(OrderHooks(before_create=lambda data: {"replaced": data}))
    assert dispatcher.has("before_create") is True
    assert dispatcher.run("before_create", 1) == {"replaced": 1}


def test_async_hook_is_awaited():
    calls = []

    async def after_create(order):
        calls.append(order)
        return "done"

    dispatcher = HookDispatcher(OrderHooks(after_create=after_create))
    assert dispatcher.run("after_create", "order-1") == "done"
    assert calls == ["order-1"]


def test_hook_errors_propagate_by_default():
    def broken(order):
        raise RuntimeError("mail server down")

    dispatcher = HookDispatcher(OrderHooks(after_create=broken))
    with pytest.raises(RuntimeError):
        dispatcher.run("after_create", "order-1")


def test_best_effort_logs_and_swallows(caplog):
    def broken(order):
        raise RuntimeError("mail server down")

    dispatcher = HookDispatcher(OrderHooks(after_create=broken), best_effort=True)
    assert dispatcher.run("after_create", "order-1") is None
    assert "order hook failed" in caplog.text


def test_from_paths_imports_callables():
    hooks = OrderHooks.from_paths({"after_create": "json.dumps"})
    assert hooks.after_create is json.dumps
    assert hooks.before_create is None


def test_from_paths_rejects_unknown_slot():
    with pytest.raises(ValueError):
        OrderHooks.from_paths({"on_order_refunded": "json.dumps"})


def test_slot_names():
    names = OrderHooks.slot_names()
    assert names[0] == "before_create"
    assert "on_order_cancelled" in names
    assert len(names) == 10
