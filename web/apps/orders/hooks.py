"""Lifecycle hooks supplied by the embedding project.

Hooks are named, optional callback slots configured once when the service
is built. Unlike events they have a single subscriber per slot, they run
one after the other in a fixed order, and by default their exceptions
propagate to whoever called the mutating operation. The state change has
already been committed at that point: a raised hook error does not mean
the order was left untouched.
"""

import inspect
import logging
from dataclasses import dataclass, fields
from typing import Any, Awaitable, Callable, Mapping, Optional, Union

from asgiref.sync import async_to_sync
from django.utils.module_loading import import_string

logger = logging.getLogger(__name__)

HookResult = Union[Any, Awaitable[Any]]


@dataclass
class OrderHooks:
    """Optional callbacks, one per extension point.

    Signatures:
        before_create(data: CreateOrderInput) -> CreateOrderInput | None
        after_create(order: Order)
        before_update(order_id: str, data: UpdateOrderInput) -> UpdateOrderInput | None
        after_update(order: Order)
        on_status_change(order_id: str, old: OrderStatus, new: OrderStatus)
        on_payment_status_change(order_id: str, old: PaymentStatus, new: PaymentStatus)
        on_order_confirmed(order: Order)
        on_order_shipped(order: Order)
        on_order_delivered(order: Order)
        on_order_cancelled(order: Order, reason: str | None)

    Each slot may be a plain function or an ``async def`` coroutine
    function; coroutine functions are awaited before the next hook runs.
    ``before_*`` hooks may return a replacement input; returning ``None``
    keeps the original.
    """

    before_create: Optional[Callable[..., HookResult]] = None
    after_create: Optional[Callable[..., HookResult]] = None
    before_update: Optional[Callable[..., HookResult]] = None
    after_update: Optional[Callable[..., HookResult]] = None
    on_status_change: Optional[Callable[..., HookResult]] = None
    on_payment_status_change: Optional[Callable[..., HookResult]] = None
    on_order_confirmed: Optional[Callable[..., HookResult]] = None
    on_order_shipped: Optional[Callable[..., HookResult]] = None
    on_order_delivered: Optional[Callable[..., HookResult]] = None
    on_order_cancelled: Optional[Callable[..., HookResult]] = None

    @classmethod
    def slot_names(cls) -> tuple[str, ...]:
        return tuple(f.name for f in fields(cls))

    @classmethod
    def from_paths(cls, paths: Mapping[str, str]) -> "OrderHooks":
        """Build hooks from a ``slot -> "dotted.path.to.callable"`` mapping.

        Raises:
            ValueError: If a key is not a known hook slot.
            ImportError: If a dotted path cannot be imported.
        """
        known = set(cls.slot_names())
        resolved = {}
        for slot, path in paths.items():
            if slot not in known:
                raise ValueError(f"Unknown order hook: {slot}")
            resolved[slot] = import_string(path)
        return cls(**resolved)


class HookDispatcher:
    """Invoke hook slots sequentially.

    Args:
        hooks: The configured callbacks.
        best_effort: When True, a failing hook is logged and the call
            continues; when False (the default) the exception propagates.
    """

    def __init__(self, hooks: OrderHooks | None = None, best_effort: bool = False):
        self.hooks = hooks or OrderHooks()
        self.best_effort = best_effort

    def has(self, slot: str) -> bool:
        return getattr(self.hooks, slot) is not None

    def run(self, slot: str, *args: Any) -> Any:
        """Call the hook in ``slot`` with ``args`` and return its result.

        Returns ``None`` when the slot is empty, or when the hook failed in
        best-effort mode.
        """
        hook = getattr(self.hooks, slot)
        if hook is None:
            return None

        try:
            if inspect.iscoroutinefunction(hook):
                return async_to_sync(hook)(*args)
            return hook(*args)
        except Exception:
            if not self.best_effort:
                raise
            logger.exception("order hook failed", extra={"hook": slot})
            return None
