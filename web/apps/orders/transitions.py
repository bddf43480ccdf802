"""Order status state machine.

Three status axes evolve together but are validated separately:

* order status: only ``confirm`` and ``cancel`` check preconditions. Any
  other status written through the generic update path is accepted as is;
  that path is the lower-level escape hatch confirm and cancel are built on.
* payment status: no adjacency is enforced. Moving to ``paid`` may trigger
  an automatic confirm (see :func:`should_auto_confirm`).
* fulfillment status: derived from the items, never written by clients.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Iterable, Optional

from .domain import FulfillmentStatus, Order, OrderItem, OrderStatus, PaymentStatus, UpdateOrderInput
from .errors import CancellationDisabled, InvalidTransition


class Transition(str, Enum):
    """Order status transitions that carry preconditions."""

    CONFIRM = "confirm"
    CANCEL = "cancel"


# Statuses from which an order can no longer be cancelled
NON_CANCELLABLE_STATUSES = frozenset(
    {
        OrderStatus.SHIPPED,
        OrderStatus.DELIVERED,
        OrderStatus.CANCELLED,
    }
)

TRANSITION_TARGETS = {
    Transition.CONFIRM: OrderStatus.CONFIRMED,
    Transition.CANCEL: OrderStatus.CANCELLED,
}

# Status -> hook slot fired after the generic status-change hook
STATUS_HOOKS = {
    OrderStatus.CONFIRMED: "on_order_confirmed",
    OrderStatus.SHIPPED: "on_order_shipped",
    OrderStatus.DELIVERED: "on_order_delivered",
}


def check_transition(transition: Transition, order: Order, features: Any) -> OrderStatus:
    """Validate a confirm or cancel against the order's current status.

    Args:
        transition: The transition being attempted.
        order: Current snapshot of the order.
        features: Object exposing ``allow_cancel``.

    Returns:
        The target status of the transition.

    Raises:
        InvalidTransition: If the current status forbids the transition.
        CancellationDisabled: If cancelling while cancellation is turned off.
    """
    current = OrderStatus(order.status)

    if transition is Transition.CONFIRM:
        if current is not OrderStatus.PENDING:
            raise InvalidTransition(
                transition,
                current,
                "Order can only be confirmed from pending status",
            )
    elif transition is Transition.CANCEL:
        # the feature flag wins over the current status
        if not features.allow_cancel:
            raise CancellationDisabled(transition, current, "Order cancellation is disabled")
        if current in NON_CANCELLABLE_STATUSES:
            raise InvalidTransition(
                transition,
                current,
                f"Cannot cancel order with status: {current.value}",
            )

    return TRANSITION_TARGETS[transition]


def apply_fields(order: Order, update: UpdateOrderInput, now: datetime) -> dict[str, Any]:
    """Build the column patch for a direct update.

    No adjacency validation happens here. Only the fields present in
    ``update`` are returned; ``cancelled_at`` is stamped whenever the status
    moves to cancelled.
    """
    fields: dict[str, Any] = {}
    if update.status is not None:
        new_status = OrderStatus(update.status)
        fields["status"] = new_status
        if new_status is OrderStatus.CANCELLED and order.status != OrderStatus.CANCELLED:
            fields["cancelled_at"] = now
    if update.payment_status is not None:
        fields["payment_status"] = PaymentStatus(update.payment_status)
    if update.notes is not None:
        fields["notes"] = update.notes
    if update.metadata is not None:
        fields["metadata"] = update.metadata
    return fields


def should_auto_confirm(
    confirm_on_payment: bool,
    new_payment_status: Optional[PaymentStatus],
    current_status: OrderStatus,
) -> bool:
    """Return True when a payment update must confirm the order as a side effect."""
    return (
        confirm_on_payment
        and new_payment_status == PaymentStatus.PAID
        and current_status == OrderStatus.PENDING
    )


def derive_fulfillment_status(items: Iterable[OrderItem]) -> FulfillmentStatus:
    """Derive the fulfillment status from ordered vs fulfilled quantities."""
    ordered = 0
    fulfilled = 0
    for item in items:
        ordered += item.quantity
        fulfilled += item.fulfilled_qty

    if fulfilled == 0:
        return FulfillmentStatus.UNFULFILLED
    if fulfilled >= ordered:
        return FulfillmentStatus.FULFILLED
    return FulfillmentStatus.PARTIAL


def status_hook_for(status: OrderStatus) -> Optional[str]:
    return STATUS_HOOKS.get(OrderStatus(status))
