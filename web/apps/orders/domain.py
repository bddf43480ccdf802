"""Domain models and ports for the orders engine.

This module contains the enums for the three status axes, the dataclasses
used as snapshots of persisted orders (and as inputs to the service), and
the repository port the service depends on. Nothing here touches the
database or the network.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, List, Optional, Protocol


# ---- Enums ----
class OrderStatus(str, Enum):
    """Customer-facing lifecycle stage of an order."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentStatus(str, Enum):
    """Money collection state, independent from the order status."""

    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"
    FAILED = "failed"


class FulfillmentStatus(str, Enum):
    """Shipped-quantity coverage. Derived from the items, never set by clients."""

    UNFULFILLED = "unfulfilled"
    PARTIAL = "partial"
    FULFILLED = "fulfilled"


# Audit event types written by the engine itself
ORDER_CREATED_EVENT = "order_created"
STATUS_CHANGED_EVENT = "status_changed"
ORDER_CANCELLED_EVENT = "order_cancelled"

MAX_PAGE_SIZE = 100
# audit events embedded in list results
RECENT_EVENTS = 5
# columns the list endpoint may sort on
SORTABLE_FIELDS = frozenset(
    {"created_at", "updated_at", "total", "order_number", "status", "payment_status"}
)


# ---- Value objects ----
@dataclass(frozen=True)
class OrderTotals:
    """Monetary summary of an order.

    Attributes:
        subtotal: Sum of quantity * price over the items.
        discount: Discount amount handed in by the caller.
        tax: Tax computed on ``subtotal - discount``.
        shipping: Shipping cost handed in by the caller.
        total: ``max(0, subtotal - discount + tax + shipping)``.
    """

    subtotal: Decimal
    discount: Decimal
    tax: Decimal
    shipping: Decimal
    total: Decimal


# ---- Entities / snapshots ----
@dataclass(frozen=True)
class OrderItem:
    """A line of an order.

    Product name, variant name, sku and price are copied from the catalogue
    when the order is created, so later catalogue edits never change a
    historical order. ``fulfilled_qty`` is the only field that moves
    afterwards, and only through the fulfillment path.
    """

    id: str
    order_id: str
    product_name: str
    quantity: int
    price: Decimal
    total: Decimal
    variant_id: Optional[str] = None
    variant_name: Optional[str] = None
    sku: Optional[str] = None
    fulfilled_qty: int = 0
    metadata: Optional[dict] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class OrderEvent:
    """Append-only audit record attached to an order."""

    id: str
    order_id: str
    type: str
    created_at: datetime
    data: Optional[dict] = None
    note: Optional[str] = None
    created_by: Optional[str] = None


@dataclass(frozen=True)
class Payment:
    id: str
    order_id: str
    amount: Decimal
    status: str


@dataclass(frozen=True)
class Fulfillment:
    id: str
    order_id: str
    status: str
    tracking_number: Optional[str] = None


@dataclass
class Order:
    """Snapshot of an order aggregate with its relations.

    Instances are produced by repositories; the service never mutates them
    in place; every change goes through the repository and a fresh
    snapshot is read back.
    """

    id: str
    order_number: str
    email: str
    shipping_address: dict
    user_id: Optional[str] = None
    status: OrderStatus = OrderStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.PENDING
    fulfillment_status: FulfillmentStatus = FulfillmentStatus.UNFULFILLED
    subtotal: Decimal = Decimal("0")
    discount: Decimal = Decimal("0")
    tax: Decimal = Decimal("0")
    shipping: Decimal = Decimal("0")
    total: Decimal = Decimal("0")
    currency: str = "USD"
    billing_address: Optional[dict] = None
    discount_code: Optional[str] = None
    notes: Optional[str] = None
    metadata: Optional[dict] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    items: List[OrderItem] = field(default_factory=list)
    payments: List[Payment] = field(default_factory=list)
    fulfillments: List[Fulfillment] = field(default_factory=list)
    events: List[OrderEvent] = field(default_factory=list)


# ---- Inputs ----
@dataclass
class CreateOrderItemInput:
    product_name: str
    quantity: int
    price: Decimal
    variant_id: Optional[str] = None
    variant_name: Optional[str] = None
    sku: Optional[str] = None
    metadata: Optional[dict] = None


@dataclass
class CreateOrderInput:
    """Checkout input for :meth:`OrderService.create`.

    ``discount``, ``tax_rate`` and ``shipping_cost`` are already resolved by
    the caller (discount-code validation, tax lookup and shipping quotes
    live outside this engine); ``discount_code`` is only kept as a
    reference on the order.
    """

    email: str
    items: List[CreateOrderItemInput]
    shipping_address: dict
    user_id: Optional[str] = None
    billing_address: Optional[dict] = None
    discount_code: Optional[str] = None
    discount: Decimal = Decimal("0")
    tax_rate: Decimal = Decimal("0")
    shipping_cost: Decimal = Decimal("0")
    currency: str = "USD"
    notes: Optional[str] = None
    metadata: Optional[dict] = None


@dataclass
class UpdateOrderInput:
    status: Optional[OrderStatus] = None
    payment_status: Optional[PaymentStatus] = None
    notes: Optional[str] = None
    metadata: Optional[dict] = None

    def has_field_edits(self) -> bool:
        """Return True when the update touches anything besides the order status."""
        return any(v is not None for v in (self.payment_status, self.notes, self.metadata))


@dataclass
class AddOrderEventInput:
    type: str
    data: Optional[dict] = None
    note: Optional[str] = None
    created_by: Optional[str] = None


@dataclass
class OrderQueryParams:
    page: int = 1
    limit: int = 10
    sort_by: str = "created_at"
    sort_order: str = "desc"
    user_id: Optional[str] = None
    status: Optional[OrderStatus] = None
    payment_status: Optional[PaymentStatus] = None
    fulfillment_status: Optional[FulfillmentStatus] = None
    search: Optional[str] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None


@dataclass
class OrderPage:
    data: List[Order]
    total: int


@dataclass
class OrderDraft:
    """Fully computed order ready to be persisted by a repository."""

    order_number: str
    input: CreateOrderInput
    totals: OrderTotals
    initial_event: Optional[AddOrderEventInput] = None


# ---- Ports (DIP) ----
class OrderRepositoryPort(Protocol):
    """Port describing the durable storage used by the order service.

    All reads return :class:`Order` snapshots that include items, payments,
    fulfillments and events (newest first), or ``None`` when the order does
    not exist. Writes return the refreshed snapshot.
    """

    def find_by_id(self, order_id: str) -> Optional[Order]:
        raise NotImplementedError()

    def find_by_order_number(self, order_number: str) -> Optional[Order]:
        raise NotImplementedError()

    def find_many(self, params: OrderQueryParams) -> OrderPage:
        raise NotImplementedError()

    def order_number_exists(self, order_number: str) -> bool:
        raise NotImplementedError()

    def create(self, draft: OrderDraft) -> Order:
        """Persist order, items and the optional initial event atomically.

        Raises:
            DuplicateOrderNumber: If ``draft.order_number`` is already stored.
        """
        raise NotImplementedError()

    def update(
        self,
        order_id: str,
        fields: dict[str, Any],
        expected_status: Optional[OrderStatus] = None,
    ) -> Order:
        """Write ``fields`` onto the order.

        Raises:
            OrderNotFound: If the order does not exist.
            OrderConflict: If ``expected_status`` is given and the stored
                status no longer matches it.
        """
        raise NotImplementedError()

    def append_event(self, order_id: str, event: AddOrderEventInput) -> OrderEvent:
        raise NotImplementedError()

    def list_events(self, order_id: str) -> List[OrderEvent]:
        raise NotImplementedError()

    def add_fulfilled_quantities(self, order_id: str, quantities: dict[str, int]) -> Order:
        """Increment ``fulfilled_qty`` of the given items (item id -> quantity).

        Raises:
            BadRequest: ``FULFILLMENT_EXCEEDS_ORDERED`` if an increment would
                pass the ordered quantity; nothing is written then.
        """
        raise NotImplementedError()
