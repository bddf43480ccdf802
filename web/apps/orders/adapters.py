"""In-process repository adapter for the orders domain port.

``InMemoryOrderRepository`` implements ``OrderRepositoryPort`` with plain
dictionaries. It is intended for unit tests and local development where
no database is available; it follows the same contract as the Django
repository (snapshots are copies, events newest first, conditional
updates raise ``OrderConflict``).
"""

import copy
import itertools
import threading
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, List, Optional

from .domain import (
    AddOrderEventInput,
    MAX_PAGE_SIZE,
    RECENT_EVENTS,
    SORTABLE_FIELDS,
    FulfillmentStatus,
    Order,
    OrderDraft,
    OrderEvent,
    OrderItem,
    OrderPage,
    OrderQueryParams,
    OrderStatus,
    PaymentStatus,
)
from .errors import BadRequest, DuplicateOrderNumber, OrderConflict, OrderNotFound


def _now() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryOrderRepository:
    """Dictionary-backed implementation of ``OrderRepositoryPort``.

    Attributes:
        writes: Number of successful ``update`` calls, handy in tests that
            assert on persistence side effects.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._orders: dict[str, Order] = {}
        self._events: dict[str, list[tuple[int, OrderEvent]]] = {}
        self._seq = itertools.count(1)
        self.writes = 0

    # ---- reads ----
    def _snapshot(self, order_id: str, recent_events_only: bool = False) -> Order:
        order = copy.deepcopy(self._orders[order_id])
        events = self.list_events(order_id)
        order.events = events[:RECENT_EVENTS] if recent_events_only else events
        return order

    def find_by_id(self, order_id: str) -> Optional[Order]:
        with self._lock:
            if order_id not in self._orders:
                return None
            return self._snapshot(order_id)

    def find_by_order_number(self, order_number: str) -> Optional[Order]:
        with self._lock:
            for oid, order in self._orders.items():
                if order.order_number == order_number:
                    return self._snapshot(oid)
        return None

    def find_many(self, params: OrderQueryParams) -> OrderPage:
        if params.sort_by not in SORTABLE_FIELDS:
            raise BadRequest("INVALID_SORT_FIELD", f"Cannot sort by: {params.sort_by}")
        with self._lock:
            rows = list(self._orders.values())

        def keep(o: Order) -> bool:
            if params.user_id and o.user_id != params.user_id:
                return False
            if params.status and o.status != params.status:
                return False
            if params.payment_status and o.payment_status != params.payment_status:
                return False
            if params.fulfillment_status and o.fulfillment_status != params.fulfillment_status:
                return False
            if params.search:
                needle = params.search.lower()
                if needle not in o.order_number.lower() and needle not in o.email.lower():
                    return False
            if params.date_from and o.created_at < params.date_from:
                return False
            if params.date_to and o.created_at > params.date_to:
                return False
            return True

        rows = [o for o in rows if keep(o)]
        rows.sort(key=lambda o: getattr(o, params.sort_by), reverse=params.sort_order != "asc")
        limit = max(1, min(params.limit, MAX_PAGE_SIZE))
        page = max(1, params.page)
        window = rows[(page - 1) * limit : page * limit]
        with self._lock:
            data = [self._snapshot(o.id, recent_events_only=True) for o in window]
        return OrderPage(data=data, total=len(rows))

    def order_number_exists(self, order_number: str) -> bool:
        with self._lock:
            return any(o.order_number == order_number for o in self._orders.values())

    # ---- writes ----
    def create(self, draft: OrderDraft) -> Order:
        data = draft.input
        totals = draft.totals
        now = _now()
        oid = str(uuid.uuid4())
        items = [
            OrderItem(
                id=str(uuid.uuid4()),
                order_id=oid,
                variant_id=i.variant_id,
                product_name=i.product_name,
                variant_name=i.variant_name,
                sku=i.sku,
                quantity=i.quantity,
                price=i.price,
                total=i.quantity * i.price,
                metadata=i.metadata,
                created_at=now,
            )
            for i in data.items
        ]
        order = Order(
            id=oid,
            order_number=draft.order_number,
            user_id=data.user_id,
            email=data.email,
            status=OrderStatus.PENDING,
            payment_status=PaymentStatus.PENDING,
            fulfillment_status=FulfillmentStatus.UNFULFILLED,
            subtotal=totals.subtotal,
            discount=totals.discount,
            tax=totals.tax,
            shipping=totals.shipping,
            total=totals.total,
            currency=data.currency,
            shipping_address=copy.deepcopy(data.shipping_address),
            billing_address=copy.deepcopy(data.billing_address),
            discount_code=data.discount_code,
            notes=data.notes,
            metadata=copy.deepcopy(data.metadata),
            created_at=now,
            updated_at=now,
            items=items,
        )
        with self._lock:
            if any(o.order_number == draft.order_number for o in self._orders.values()):
                raise DuplicateOrderNumber(message=f"Order number {draft.order_number} is taken")
            self._orders[oid] = order
            self._events[oid] = []
            if draft.initial_event is not None:
                self._insert_event(oid, draft.initial_event)
            return self._snapshot(oid)

    def update(
        self,
        order_id: str,
        fields: dict[str, Any],
        expected_status: Optional[OrderStatus] = None,
    ) -> Order:
        with self._lock:
            order = self._orders.get(order_id)
            if order is None:
                raise OrderNotFound(message="Order not found")
            if expected_status is not None and order.status != expected_status:
                raise OrderConflict(
                    message=f"Order status changed concurrently, expected: {expected_status.value}"
                )
            self._orders[order_id] = replace(order, **copy.deepcopy(fields), updated_at=_now())
            self.writes += 1
            return self._snapshot(order_id)

    def _insert_event(self, order_id: str, event: AddOrderEventInput) -> OrderEvent:
        seq = next(self._seq)
        created = OrderEvent(
            id=str(seq),
            order_id=order_id,
            type=event.type,
            data=copy.deepcopy(event.data),
            note=event.note,
            created_by=event.created_by,
            created_at=_now(),
        )
        self._events[order_id].append((seq, created))
        return created

    def append_event(self, order_id: str, event: AddOrderEventInput) -> OrderEvent:
        with self._lock:
            if order_id not in self._orders:
                raise OrderNotFound(message="Order not found")
            return self._insert_event(order_id, event)

    def list_events(self, order_id: str) -> List[OrderEvent]:
        with self._lock:
            rows = sorted(
                self._events.get(order_id, []),
                key=lambda pair: (pair[1].created_at, pair[0]),
                reverse=True,
            )
            return [event for _, event in rows]

    def add_fulfilled_quantities(self, order_id: str, quantities: dict[str, int]) -> Order:
        with self._lock:
            order = self._orders.get(order_id)
            if order is None:
                raise OrderNotFound(message="Order not found")
            by_id = {item.id: item for item in order.items}
            for item_id, qty in quantities.items():
                item = by_id.get(item_id)
                if item is None or item.fulfilled_qty + qty > item.quantity:
                    raise BadRequest(
                        "FULFILLMENT_EXCEEDS_ORDERED",
                        f"Cannot fulfill more than ordered quantity for item {item_id}",
                    )
            order.items = [
                replace(item, fulfilled_qty=item.fulfilled_qty + quantities.get(item.id, 0))
                for item in order.items
            ]
            return self._snapshot(order_id)
