"""In-process publish/subscribe for order notifications.

The ``EventBus`` is constructed explicitly and injected into the order
service; there is no process-wide accessor. The Django app keeps one
instance on its ``AppConfig`` (see ``apps.OrdersConfig``), tests build
their own.

Delivery is synchronous, in subscription order and at most once per
listener. Nothing is persisted or retried. A failing listener is logged
and skipped so it cannot turn an already committed change into an error.
"""

import logging
import threading
from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

ORDER_CREATED = "order.created"
ORDER_UPDATED = "order.updated"
ORDER_CANCELLED = "order.cancelled"


# ---- Payloads ----
@dataclass(frozen=True)
class OrderCreated:
    order_id: str
    user_id: str
    total: Decimal


@dataclass(frozen=True)
class OrderUpdated:
    order_id: str
    status: str


@dataclass(frozen=True)
class OrderCancelled:
    order_id: str
    reason: Optional[str] = None


Handler = Callable[[Any], Any]


class EventBus:
    """Named-event publish/subscribe with per-listener error isolation."""

    def __init__(self):
        self._lock = threading.RLock()
        self._listeners: dict[str, list[tuple[Handler, bool]]] = defaultdict(list)

    def subscribe(self, name: str, handler: Handler) -> Handler:
        """Register ``handler`` for ``name`` and return it, for later ``unsubscribe``."""
        with self._lock:
            self._listeners[name].append((handler, False))
        return handler

    def subscribe_once(self, name: str, handler: Handler) -> Handler:
        with self._lock:
            self._listeners[name].append((handler, True))
        return handler

    def unsubscribe(self, name: str, handler: Handler) -> bool:
        """Remove the first registration of ``handler``. Returns False if it was not subscribed."""
        with self._lock:
            listeners = self._listeners.get(name, [])
            for i, (registered, _) in enumerate(listeners):
                if registered is handler:
                    del listeners[i]
                    return True
        return False

    def emit(self, name: str, payload: Any) -> bool:
        """Deliver ``payload`` to every listener of ``name``.

        Returns:
            bool: True if at least one listener was registered.
        """
        with self._lock:
            listeners = list(self._listeners.get(name, []))
            # once-listeners are dropped before delivery: at most once
            self._listeners[name] = [entry for entry in listeners if not entry[1]]

        for handler, _ in listeners:
            try:
                handler(payload)
            except Exception:
                logger.exception("event listener failed", extra={"event_name": name})
        return bool(listeners)

    def listener_count(self, name: str) -> int:
        with self._lock:
            return len(self._listeners.get(name, []))

    def clear(self, name: str | None = None) -> None:
        with self._lock:
            if name is None:
                self._listeners.clear()
            else:
                self._listeners.pop(name, None)
