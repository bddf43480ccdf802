"""Service provider helpers for wiring OrderService with its collaborators.

This module exposes a small factory function `get_order_service` that
returns an `OrderService` built from the project settings: the Django ORM
repository, the event bus owned by the orders app config, and an
`OrderModuleConfig` read from ``settings.ORDERS``. Views call the factory
per request, so tests can override settings (or monkeypatch the factory)
without touching view code.
"""

from django.apps import apps

from .config import OrderModuleConfig
from .events import EventBus
from .repository import DjangoOrderRepository
from .service import OrderService


def get_event_bus() -> EventBus:
    """Return the bus created by ``OrdersConfig.ready()``.

    Other apps subscribe to order notifications through this bus, typically
    from their own ``AppConfig.ready()``.
    """
    return apps.get_app_config("orders").event_bus


def get_order_service() -> OrderService:
    """Return an OrderService wired for the running Django project.

    Returns:
        OrderService: A service using the Django repository, the app-level
        event bus and the configuration from ``settings.ORDERS``.
    """
    return OrderService(
        repository=DjangoOrderRepository(),
        event_bus=get_event_bus(),
        config=OrderModuleConfig.from_settings(),
    )
