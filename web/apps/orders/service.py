"""Order service: creation, status changes and the audit log.

``OrderService`` is the only entry point that mutates orders. Every
mutating call follows the same fixed sequence:

1. load the current snapshot and check preconditions,
2. persist (conditional on the status that was read),
3. append audit events,
4. emit bus events,
5. run hooks, one at a time.

Steps 2-3 are committed before any event or hook runs, so a hook that
raises makes the call fail *after* the change is stored.
"""

import logging
import secrets
import string
from dataclasses import dataclass, replace
from typing import Any, Iterable, List, Mapping, Optional

from django.utils import timezone

from .config import OrderModuleConfig
from .domain import (
    ORDER_CANCELLED_EVENT,
    ORDER_CREATED_EVENT,
    STATUS_CHANGED_EVENT,
    AddOrderEventInput,
    CreateOrderInput,
    Order,
    OrderDraft,
    OrderEvent,
    OrderPage,
    OrderQueryParams,
    OrderRepositoryPort,
    OrderStatus,
    OrderTotals,
    PaymentStatus,
    UpdateOrderInput,
)
from .errors import (
    BadRequest,
    DuplicateOrderNumber,
    EditingDisabled,
    InvalidTransition,
    OrderConflict,
    OrderNotFound,
    OrderNumberUnavailable,
)
from .events import ORDER_CANCELLED, ORDER_CREATED, ORDER_UPDATED, EventBus, OrderCancelled, OrderCreated, OrderUpdated
from .hooks import HookDispatcher
from .totals import MAX_AMOUNT, calculate_totals, to_decimal
from .transitions import (
    Transition,
    apply_fields,
    check_transition,
    derive_fulfillment_status,
    should_auto_confirm,
    status_hook_for,
)

logger = logging.getLogger(__name__)

ORDER_NUMBER_ALPHABET = string.ascii_uppercase + string.digits


@dataclass(frozen=True)
class StatusChange:
    """Before/after values of the two client-settable status axes."""

    old_status: OrderStatus
    new_status: OrderStatus
    old_payment_status: PaymentStatus
    new_payment_status: PaymentStatus

    @property
    def status_changed(self) -> bool:
        return self.old_status != self.new_status

    @property
    def payment_status_changed(self) -> bool:
        return self.old_payment_status != self.new_payment_status


class OrderService:
    """Domain service for the order lifecycle.

    Args:
        repository: Storage implementing ``OrderRepositoryPort``.
        event_bus: Bus receiving ``order.*`` notifications after commits.
        config: Feature flags, order-number format, auto transitions and
            hooks. Defaults to ``OrderModuleConfig()``.
    """

    def __init__(
        self,
        repository: OrderRepositoryPort,
        event_bus: EventBus,
        config: OrderModuleConfig | None = None,
    ):
        self.repository = repository
        self.event_bus = event_bus
        self.config = config or OrderModuleConfig()
        self.hooks = HookDispatcher(self.config.hooks, best_effort=self.config.hooks_best_effort)

    @property
    def features(self):
        return self.config.features

    # ---- reads ----
    def find_by_id(self, order_id: str) -> Order:
        """Return the order with its relations.

        Raises:
            OrderNotFound: If no order has this id.
        """
        order = self.repository.find_by_id(order_id)
        if order is None:
            raise OrderNotFound(message="Order not found")
        return order

    def find_by_order_number(self, order_number: str) -> Order:
        order = self.repository.find_by_order_number(order_number)
        if order is None:
            raise OrderNotFound(message="Order not found")
        return order

    def find_many(self, params: OrderQueryParams) -> OrderPage:
        return self.repository.find_many(params)

    # ---- calculations ----
    def calculate_totals(
        self,
        items: Iterable[Any],
        discount: Any = 0,
        tax_rate: Any = 0,
        shipping_cost: Any = 0,
    ) -> OrderTotals:
        """Checkout preview; same arithmetic as :meth:`create` uses."""
        return calculate_totals(items, discount, tax_rate, shipping_cost)

    # ---- creation ----
    def create(self, data: CreateOrderInput) -> Order:
        """Create an order from checkout input.

        The order number is generated first, then the ``before_create`` hook
        may replace the input, and totals are computed from the final item
        list so the stored subtotal always matches the stored items. The
        order, its items and the ``order_created`` audit event are written in
        one unit of work before ``order.created`` is emitted and
        ``after_create`` runs.

        Args:
            data: Checkout input; discount, tax rate and shipping cost are
                already resolved by the caller.

        Returns:
            The persisted order (status pending / pending / unfulfilled).

        Raises:
            BadRequest: With code ``EMPTY_ORDER``, ``INVALID_ITEM`` or
                ``AMOUNT_OUT_OF_RANGE``.
            OrderNumberUnavailable: If no free order number was found, or
                every insert lost the race for its number.
        """
        order_number = self._generate_order_number()

        replaced = self.hooks.run("before_create", data)
        if replaced is not None:
            data = replaced
        data = replace(data, items=[replace(i, price=to_decimal(i.price)) for i in data.items])
        self._validate_items(data)

        totals = calculate_totals(data.items, data.discount, data.tax_rate, data.shipping_cost)
        self._validate_amounts(data, totals)
        initial_event = None
        if self.features.track_events:
            initial_event = AddOrderEventInput(type=ORDER_CREATED_EVENT, data={"email": data.email})

        order = self._insert(
            OrderDraft(
                order_number=order_number,
                input=data,
                totals=totals,
                initial_event=initial_event,
            )
        )
        logger.info(
            "order created",
            extra={"order_id": order.id, "order_number": order.order_number, "total": str(order.total)},
        )

        self.event_bus.emit(
            ORDER_CREATED,
            OrderCreated(order_id=order.id, user_id=order.user_id or "", total=order.total),
        )
        self.hooks.run("after_create", order)
        return order

    # ---- updates ----
    def update(self, order_id: str, data: UpdateOrderInput) -> Order:
        """Apply a direct update to status, payment status, notes or metadata.

        Order status values are written without adjacency checks; use
        :meth:`confirm` and :meth:`cancel` for guarded transitions. When the
        payment status becomes ``paid`` and ``confirm_on_payment`` is on, a
        still pending order is confirmed and the confirmed snapshot returned.

        Raises:
            OrderNotFound: If the order does not exist.
            EditingDisabled: If field edits are sent while ``allow_edit`` is off.
            OrderConflict: If the order status changed since it was read.
        """
        existing = self.find_by_id(order_id)
        if not self.features.allow_edit and data.has_field_edits():
            raise EditingDisabled(message="Order editing is disabled")

        order, change = self._persist_update(existing, data)
        self._emit_update(order, change)
        return self._run_update_hooks(order, change)

    def confirm(self, order_id: str) -> Order:
        """Move a pending order to confirmed.

        Raises:
            OrderNotFound: If the order does not exist.
            InvalidTransition: If the order is not pending.
        """
        existing = self.find_by_id(order_id)
        target = self._check(Transition.CONFIRM, existing)

        order, change = self._persist_update(existing, UpdateOrderInput(status=target))
        logger.info("order confirmed", extra={"order_id": order.id})
        self._emit_update(order, change)
        return self._run_update_hooks(order, change)

    def cancel(self, order_id: str, reason: Optional[str] = None) -> Order:
        """Cancel an order that has not shipped yet.

        Besides the generic status-change notifications this writes an
        ``order_cancelled`` audit event, emits ``order.cancelled`` and runs
        ``on_order_cancelled``.

        Raises:
            OrderNotFound: If the order does not exist.
            CancellationDisabled: If ``allow_cancel`` is off.
            InvalidTransition: If the order is shipped, delivered or cancelled.
        """
        existing = self.find_by_id(order_id)
        target = self._check(Transition.CANCEL, existing)

        order, change = self._persist_update(existing, UpdateOrderInput(status=target))
        if self.features.track_events:
            self.repository.append_event(
                order.id, AddOrderEventInput(type=ORDER_CANCELLED_EVENT, data={"reason": reason})
            )
            order = self.find_by_id(order.id)
        logger.info("order cancelled", extra={"order_id": order.id, "reason": reason})

        self._emit_update(order, change)
        self.event_bus.emit(ORDER_CANCELLED, OrderCancelled(order_id=order.id, reason=reason))

        order = self._run_update_hooks(order, change)
        self.hooks.run("on_order_cancelled", order, reason)
        return order

    # ---- fulfillment ----
    def record_fulfillment(self, order_id: str, quantities: Mapping[str, int]) -> Order:
        """Add fulfilled quantities to items and write back the derived status.

        Args:
            order_id: The order whose items were shipped.
            quantities: Mapping of order item id to newly fulfilled quantity.

        Raises:
            OrderNotFound: If the order does not exist.
            BadRequest: If an item is unknown or would exceed its ordered quantity.
        """
        order = self.find_by_id(order_id)
        items = {item.id: item for item in order.items}
        for item_id, qty in quantities.items():
            item = items.get(item_id)
            if item is None:
                raise BadRequest("UNKNOWN_ORDER_ITEM", f"Order item {item_id} not found")
            if qty < 1 or qty > item.quantity - item.fulfilled_qty:
                raise BadRequest(
                    "FULFILLMENT_EXCEEDS_ORDERED",
                    f"Cannot fulfill more than ordered quantity for item {item_id}",
                )

        order = self.repository.add_fulfilled_quantities(order.id, dict(quantities))
        derived = derive_fulfillment_status(order.items)
        if derived != order.fulfillment_status:
            order = self.repository.update(order.id, {"fulfillment_status": derived})
        return order

    # ---- audit log ----
    def add_event(self, order_id: str, event: AddOrderEventInput) -> OrderEvent:
        """Append a free-form event (typically a human note) to the order's log."""
        order = self.find_by_id(order_id)
        return self.repository.append_event(order.id, event)

    def get_events(self, order_id: str) -> List[OrderEvent]:
        """Return the order's audit log, newest first."""
        order = self.find_by_id(order_id)
        return self.repository.list_events(order.id)

    # ---- helpers ----
    def _check(self, transition: Transition, order: Order) -> OrderStatus:
        try:
            return check_transition(transition, order, self.features)
        except InvalidTransition as e:
            logger.warning(
                "order transition rejected",
                extra={"order_id": order.id, "transition": transition.value, "code": e.code},
            )
            raise

    def _persist_update(self, existing: Order, data: UpdateOrderInput) -> tuple[Order, StatusChange]:
        replaced = self.hooks.run("before_update", existing.id, data)
        if replaced is not None:
            data = replaced

        fields = apply_fields(existing, data, timezone.now())
        try:
            order = self.repository.update(existing.id, fields, expected_status=existing.status)
        except OrderConflict:
            logger.warning(
                "order update conflict",
                extra={"order_id": existing.id, "expected_status": existing.status.value},
            )
            raise
        change = StatusChange(
            old_status=existing.status,
            new_status=order.status,
            old_payment_status=existing.payment_status,
            new_payment_status=order.payment_status,
        )

        if change.status_changed:
            logger.info(
                "order status changed",
                extra={
                    "order_id": order.id,
                    "from_status": change.old_status.value,
                    "to_status": change.new_status.value,
                },
            )
            if self.features.track_events:
                self.repository.append_event(
                    order.id,
                    AddOrderEventInput(
                        type=STATUS_CHANGED_EVENT,
                        data={"from": change.old_status.value, "to": change.new_status.value},
                    ),
                )
                order = self.find_by_id(order.id)
        return order, change

    def _emit_update(self, order: Order, change: StatusChange) -> None:
        if change.status_changed:
            self.event_bus.emit(ORDER_UPDATED, OrderUpdated(order_id=order.id, status=order.status.value))

    def _run_update_hooks(self, order: Order, change: StatusChange) -> Order:
        self.hooks.run("after_update", order)

        if change.status_changed:
            self.hooks.run("on_status_change", order.id, change.old_status, change.new_status)
            slot = status_hook_for(change.new_status)
            if slot:
                self.hooks.run(slot, order)

        if change.payment_status_changed:
            self.hooks.run(
                "on_payment_status_change",
                order.id,
                change.old_payment_status,
                change.new_payment_status,
            )
            if should_auto_confirm(
                self.config.auto_transitions.confirm_on_payment,
                change.new_payment_status,
                order.status,
            ):
                order = self.confirm(order.id)
        return order

    def _validate_items(self, data: CreateOrderInput) -> None:
        if not data.items:
            raise BadRequest("EMPTY_ORDER", "An order needs at least one item")
        for item in data.items:
            if item.quantity < 1 or item.price < 0:
                raise BadRequest("INVALID_ITEM", f"Invalid quantity or price for {item.product_name}")

    def _validate_amounts(self, data: CreateOrderInput, totals: OrderTotals) -> None:
        amounts = [totals.subtotal, totals.discount, totals.tax, totals.shipping, totals.total]
        amounts.extend(item.quantity * item.price for item in data.items)
        if any(abs(amount) > MAX_AMOUNT for amount in amounts):
            raise BadRequest("AMOUNT_OUT_OF_RANGE", f"Order amounts must not exceed {MAX_AMOUNT}")

    def _insert(self, draft: OrderDraft) -> Order:
        attempts = self.config.order_number_attempts
        for attempt in range(1, attempts + 1):
            try:
                return self.repository.create(draft)
            except DuplicateOrderNumber:
                logger.warning(
                    "order number taken on insert",
                    extra={"order_number": draft.order_number, "attempt": attempt},
                )
                if attempt == attempts:
                    break
                draft = replace(draft, order_number=self._generate_order_number())
        raise OrderNumberUnavailable(message="Could not generate a unique order number")

    def _generate_order_number(self) -> str:
        prefix = self.config.order_number_prefix
        length = self.config.order_number_length
        for _ in range(self.config.order_number_attempts):
            random_part = "".join(secrets.choice(ORDER_NUMBER_ALPHABET) for _ in range(length))
            candidate = f"{prefix}-{random_part}"
            if not self.repository.order_number_exists(candidate):
                return candidate
        raise OrderNumberUnavailable(message="Could not generate a unique order number")
