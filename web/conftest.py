# Shared fixtures for the orders tests.
# pytest.ini_options puts web/ and web/apps/ on sys.path, so `orders`,
# `gateway` and `config` import as top-level packages.
from decimal import Decimal

import pytest

from orders.adapters import InMemoryOrderRepository
from orders.config import OrderModuleConfig
from orders.domain import CreateOrderInput, CreateOrderItemInput
from orders.events import EventBus
from orders.service import OrderService

SHIPPING_ADDRESS = {
    "first_name": "Ada",
    "last_name": "Lovelace",
    "address1": "12 Analytical St",
    "city": "London",
    "postal_code": "N1 9GU",
    "country": "GB",
}


@pytest.fixture
def event_bus():
    return EventBus()


@pytest.fixture
def repo():
    return InMemoryOrderRepository()


@pytest.fixture
def make_service(repo, event_bus):
    """Build an OrderService over the in-memory repository."""

    def _make(config: OrderModuleConfig | None = None, repository=None) -> OrderService:
        return OrderService(repository or repo, event_bus, config or OrderModuleConfig())

    return _make


@pytest.fixture
def order_input():
    """Factory for checkout input: 2 x 100 + 3 x 50 by default."""

    def _make(**overrides) -> CreateOrderInput:
        data = {
            "email": "ada@example.com",
            "user_id": "user-1",
            "items": [
                CreateOrderItemInput(product_name="Widget", sku="W-1", quantity=2, price=Decimal("100")),
                CreateOrderItemInput(product_name="Gadget", sku="G-1", quantity=3, price=Decimal("50")),
            ],
            "shipping_address": dict(SHIPPING_ADDRESS),
        }
        data.update(overrides)
        return CreateOrderInput(**data)

    return _make


@pytest.fixture
def order_payload():
    """JSON body accepted by POST /api/orders/."""
    return {
        "email": "Ada@Example.com",
        "items": [
            {"product_name": "Widget", "sku": "W-1", "quantity": 2, "price": "100.00"},
            {"product_name": "Gadget", "sku": "G-1", "quantity": 3, "price": "50.00"},
        ],
        "shipping_address": dict(SHIPPING_ADDRESS),
        "discount": "50",
        "tax_rate": "0.1",
        "shipping_cost": "15",
        "currency": "usd",
    }
