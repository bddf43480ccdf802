"""Repository layer for persisting orders.

``DjangoOrderRepository`` implements :class:`~orders.domain.OrderRepositoryPort`
on top of the Django ORM. It maps ORM rows to the domain snapshots so the
service never sees model instances, and it owns the transactional
boundaries: an order, its items and its initial audit event are written in
one ``transaction.atomic()`` block.
"""

import uuid
from enum import Enum
from typing import Any, List, Optional

from django.db import IntegrityError, transaction
from django.db.models import F, Prefetch, Q
from django.utils import timezone

from .domain import (
    AddOrderEventInput,
    MAX_PAGE_SIZE,
    RECENT_EVENTS,
    SORTABLE_FIELDS,
    Fulfillment,
    FulfillmentStatus,
    Order,
    OrderDraft,
    OrderEvent,
    OrderItem,
    OrderPage,
    OrderQueryParams,
    OrderStatus,
    Payment,
    PaymentStatus,
)
from .errors import BadRequest, DuplicateOrderNumber, OrderConflict, OrderNotFound
from .models import OrderEventModel, OrderItemModel, OrderModel


def _parse_id(value: Any) -> Optional[uuid.UUID]:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


def _db_value(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


def event_to_domain(obj: OrderEventModel) -> OrderEvent:
    return OrderEvent(
        id=str(obj.pk),
        order_id=str(obj.order_id),
        type=obj.type,
        data=obj.data,
        note=obj.note,
        created_by=obj.created_by,
        created_at=obj.created_at,
    )


def item_to_domain(obj: OrderItemModel) -> OrderItem:
    return OrderItem(
        id=str(obj.id),
        order_id=str(obj.order_id),
        variant_id=obj.variant_id,
        product_name=obj.product_name,
        variant_name=obj.variant_name,
        sku=obj.sku,
        quantity=obj.quantity,
        price=obj.price,
        total=obj.total,
        fulfilled_qty=obj.fulfilled_qty,
        metadata=obj.metadata,
        created_at=obj.created_at,
    )


def order_to_domain(obj: OrderModel) -> Order:
    """Map an ``OrderModel`` (with prefetched relations) to an ``Order`` snapshot.

    List queries prefetch only the latest events into ``recent_events``.
    """
    events = getattr(obj, "recent_events", None)
    if events is None:
        events = obj.events.all()
    return Order(
        id=str(obj.id),
        order_number=obj.order_number,
        user_id=obj.user_id,
        email=obj.email,
        status=OrderStatus(obj.status),
        payment_status=PaymentStatus(obj.payment_status),
        fulfillment_status=FulfillmentStatus(obj.fulfillment_status),
        subtotal=obj.subtotal,
        discount=obj.discount,
        tax=obj.tax,
        shipping=obj.shipping,
        total=obj.total,
        currency=obj.currency,
        shipping_address=obj.shipping_address,
        billing_address=obj.billing_address,
        discount_code=obj.discount_code,
        notes=obj.notes,
        metadata=obj.metadata,
        created_at=obj.created_at,
        updated_at=obj.updated_at,
        cancelled_at=obj.cancelled_at,
        items=[item_to_domain(i) for i in obj.items.all()],
        payments=[
            Payment(id=str(p.id), order_id=str(p.order_id), amount=p.amount, status=p.status)
            for p in obj.payments.all()
        ],
        fulfillments=[
            Fulfillment(
                id=str(f.id),
                order_id=str(f.order_id),
                status=f.status,
                tracking_number=f.tracking_number,
            )
            for f in obj.fulfillments.all()
        ],
        events=[event_to_domain(e) for e in events],
    )


class DjangoOrderRepository:
    """Order storage backed by the Django ORM."""

    def _queryset(self, recent_events_only: bool = False):
        events = OrderEventModel.objects.order_by("-created_at", "-id")
        if recent_events_only:
            # a sliced prefetch cannot back the related manager, it needs to_attr
            events_lookup = Prefetch("events", queryset=events[:RECENT_EVENTS], to_attr="recent_events")
        else:
            events_lookup = Prefetch("events", queryset=events)
        return OrderModel.objects.prefetch_related("items", "payments", "fulfillments", events_lookup)

    def find_by_id(self, order_id: str) -> Optional[Order]:
        oid = _parse_id(order_id)
        if oid is None:
            return None
        obj = self._queryset().filter(id=oid).first()
        return order_to_domain(obj) if obj else None

    def find_by_order_number(self, order_number: str) -> Optional[Order]:
        obj = self._queryset().filter(order_number=order_number).first()
        return order_to_domain(obj) if obj else None

    def find_many(self, params: OrderQueryParams) -> OrderPage:
        """Filter, sort and paginate orders.

        Each returned order carries only its most recent audit events.

        Raises:
            BadRequest: If ``sort_by`` is not a sortable column.
        """
        qs = self._queryset(recent_events_only=True)

        if params.user_id:
            qs = qs.filter(user_id=params.user_id)
        if params.status:
            qs = qs.filter(status=_db_value(params.status))
        if params.payment_status:
            qs = qs.filter(payment_status=_db_value(params.payment_status))
        if params.fulfillment_status:
            qs = qs.filter(fulfillment_status=_db_value(params.fulfillment_status))
        if params.search:
            qs = qs.filter(
                Q(order_number__icontains=params.search) | Q(email__icontains=params.search)
            )
        if params.date_from:
            qs = qs.filter(created_at__gte=params.date_from)
        if params.date_to:
            qs = qs.filter(created_at__lte=params.date_to)

        if params.sort_by not in SORTABLE_FIELDS:
            raise BadRequest("INVALID_SORT_FIELD", f"Cannot sort by: {params.sort_by}")
        prefix = "" if params.sort_order == "asc" else "-"
        qs = qs.order_by(f"{prefix}{params.sort_by}", f"{prefix}id")

        limit = max(1, min(params.limit, MAX_PAGE_SIZE))
        page = max(1, params.page)
        total = qs.count()
        rows = qs[(page - 1) * limit : page * limit]
        return OrderPage(data=[order_to_domain(o) for o in rows], total=total)

    def order_number_exists(self, order_number: str) -> bool:
        return OrderModel.objects.filter(order_number=order_number).exists()

    def create(self, draft: OrderDraft) -> Order:
        """Insert order, items and the initial event in one transaction.

        Raises:
            DuplicateOrderNumber: If another insert took ``draft.order_number``
                after it was checked.
        """
        try:
            obj = self._insert_order(draft)
        except IntegrityError:
            if self.order_number_exists(draft.order_number):
                raise DuplicateOrderNumber(message=f"Order number {draft.order_number} is taken") from None
            raise
        return self.find_by_id(obj.id)

    def _insert_order(self, draft: OrderDraft) -> OrderModel:
        data = draft.input
        totals = draft.totals
        with transaction.atomic():
            obj = OrderModel.objects.create(
                order_number=draft.order_number,
                user_id=data.user_id,
                email=data.email,
                status=OrderStatus.PENDING.value,
                payment_status=PaymentStatus.PENDING.value,
                fulfillment_status=FulfillmentStatus.UNFULFILLED.value,
                subtotal=totals.subtotal,
                discount=totals.discount,
                tax=totals.tax,
                shipping=totals.shipping,
                total=totals.total,
                currency=data.currency,
                shipping_address=data.shipping_address,
                billing_address=data.billing_address,
                discount_code=data.discount_code,
                notes=data.notes,
                metadata=data.metadata,
            )
            OrderItemModel.objects.bulk_create(
                [
                    OrderItemModel(
                        order=obj,
                        variant_id=item.variant_id,
                        product_name=item.product_name,
                        variant_name=item.variant_name,
                        sku=item.sku,
                        quantity=item.quantity,
                        price=item.price,
                        total=item.quantity * item.price,
                        metadata=item.metadata,
                        position=position,
                    )
                    for position, item in enumerate(data.items)
                ]
            )
            if draft.initial_event is not None:
                self._insert_event(obj.id, draft.initial_event)
        return obj

    def update(
        self,
        order_id: str,
        fields: dict[str, Any],
        expected_status: Optional[OrderStatus] = None,
    ) -> Order:
        """Conditionally write ``fields`` onto the order row.

        The status check and the write are one ``UPDATE ... WHERE`` so two
        concurrent transitions cannot both succeed against the same read.
        """
        oid = _parse_id(order_id)
        if oid is None:
            raise OrderNotFound(message="Order not found")

        values = {k: _db_value(v) for k, v in fields.items()}
        # queryset.update() skips auto_now
        values["updated_at"] = timezone.now()

        with transaction.atomic():
            qs = OrderModel.objects.filter(id=oid)
            if expected_status is not None:
                qs = qs.filter(status=_db_value(expected_status))
            changed = qs.update(**values)
            if not changed:
                if not OrderModel.objects.filter(id=oid).exists():
                    raise OrderNotFound(message="Order not found")
                raise OrderConflict(
                    message=f"Order status changed concurrently, expected: {_db_value(expected_status)}"
                )
        return self.find_by_id(oid)

    def _insert_event(self, oid: uuid.UUID, event: AddOrderEventInput) -> OrderEventModel:
        return OrderEventModel.objects.create(
            order_id=oid,
            type=event.type,
            data=event.data,
            note=event.note,
            created_by=event.created_by,
        )

    def append_event(self, order_id: str, event: AddOrderEventInput) -> OrderEvent:
        oid = _parse_id(order_id)
        if oid is None or not OrderModel.objects.filter(id=oid).exists():
            raise OrderNotFound(message="Order not found")
        return event_to_domain(self._insert_event(oid, event))

    def list_events(self, order_id: str) -> List[OrderEvent]:
        oid = _parse_id(order_id)
        if oid is None:
            return []
        rows = OrderEventModel.objects.filter(order_id=oid).order_by("-created_at", "-id")
        return [event_to_domain(e) for e in rows]

    def add_fulfilled_quantities(self, order_id: str, quantities: dict[str, int]) -> Order:
        """Increment ``fulfilled_qty`` without ever passing the ordered quantity.

        Each increment is an ``UPDATE ... WHERE fulfilled_qty <= quantity - qty``
        so concurrent calls cannot over-fulfill an item; if any item does not
        match, the whole batch is rolled back.

        Raises:
            BadRequest: ``FULFILLMENT_EXCEEDS_ORDERED`` when an increment no
                longer fits.
        """
        oid = _parse_id(order_id)
        if oid is None:
            raise OrderNotFound(message="Order not found")
        with transaction.atomic():
            for item_id, qty in quantities.items():
                changed = OrderItemModel.objects.filter(
                    order_id=oid,
                    id=item_id,
                    fulfilled_qty__lte=F("quantity") - qty,
                ).update(fulfilled_qty=F("fulfilled_qty") + qty)
                if not changed:
                    raise BadRequest(
                        "FULFILLMENT_EXCEEDS_ORDERED",
                        f"Cannot fulfill more than ordered quantity for item {item_id}",
                    )
        return self.find_by_id(oid)
