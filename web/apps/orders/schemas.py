"""Pydantic schemas for orders.

This module exposes the request/validation schemas used by the orders API
and the read schemas used to render order snapshots as JSON. Request
schemas convert themselves into the domain input dataclasses with
``to_domain()`` so views never hand pydantic models to the service.
"""

import re
from datetime import datetime
from decimal import Decimal
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .domain import (
    AddOrderEventInput,
    CreateOrderInput,
    CreateOrderItemInput,
    FulfillmentStatus,
    OrderQueryParams,
    OrderStatus,
    PaymentStatus,
    UpdateOrderInput,
)

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
# order_items.quantity is a 32-bit integer column
MAX_ITEM_QUANTITY = 1_000_000
CURRENCIES = {"EUR", "USD", "GBP", "INR", "CAD", "AUD"}


# ---- Requests ----
class AddressIn(BaseModel):
    """Postal address. Stored on the order as a JSON snapshot."""

    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    company: Optional[str] = Field(default=None, max_length=255)
    address1: str = Field(min_length=1, max_length=255)
    address2: Optional[str] = Field(default=None, max_length=255)
    city: str = Field(min_length=1, max_length=100)
    state: Optional[str] = Field(default=None, max_length=100)
    postal_code: str = Field(min_length=1, max_length=20)
    country: str = Field(min_length=2, max_length=100)
    phone: Optional[str] = Field(default=None, max_length=20)


class OrderItemIn(BaseModel):
    """Input schema for a single order line.

    Attributes:
        product_name: Product name copied onto the order.
        quantity: Units ordered, between 1 and ``MAX_ITEM_QUANTITY``.
        price: Unit price, non-negative, at most 12 digits with 2 decimals.
    """

    variant_id: Optional[str] = Field(default=None, max_length=64)
    product_name: str = Field(min_length=1, max_length=255)
    variant_name: Optional[str] = Field(default=None, max_length=255)
    sku: Optional[str] = Field(default=None, max_length=100)
    quantity: int = Field(ge=1, le=MAX_ITEM_QUANTITY)
    price: Decimal = Field(ge=0, max_digits=12, decimal_places=2)
    metadata: Optional[dict[str, Any]] = None

    def to_domain(self) -> CreateOrderItemInput:
        return CreateOrderItemInput(**self.model_dump())


class CreateOrderDTO(BaseModel):
    """Schema for creating an order.

    ``discount``, ``tax_rate`` and ``shipping_cost`` are the amounts the
    checkout resolved before calling the API; ``discount_code`` is kept for
    reference only.
    """

    user_id: Optional[str] = Field(default=None, max_length=64)
    email: str = Field(max_length=254)
    items: List[OrderItemIn] = Field(min_length=1)
    shipping_address: AddressIn
    billing_address: Optional[AddressIn] = None
    discount_code: Optional[str] = Field(default=None, max_length=50)
    discount: Decimal = Field(default=Decimal("0"), ge=0, max_digits=12, decimal_places=2)
    tax_rate: Decimal = Field(default=Decimal("0"), ge=0, le=1)
    shipping_cost: Decimal = Field(default=Decimal("0"), ge=0, max_digits=12, decimal_places=2)
    currency: str = Field(default="USD", min_length=3, max_length=3)
    notes: Optional[str] = Field(default=None, max_length=1000)
    metadata: Optional[dict[str, Any]] = None

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        """Validate and normalize the buyer e-mail to lowercase.

        Raises:
            ValueError: When the value does not look like an e-mail address.
        """
        v2 = v.strip().lower()
        if not EMAIL_RE.match(v2):
            raise ValueError("Invalid email")
        return v2

    @field_validator("currency")
    @classmethod
    def validate_currency(cls, v: str) -> str:
        """Validate and normalize currency code.

        Raises:
            ValueError: When the currency is not in the supported set.
        """
        v2 = v.upper()
        if v2 not in CURRENCIES:
            raise ValueError("Unsupported currency")
        return v2

    def to_domain(self) -> CreateOrderInput:
        return CreateOrderInput(
            user_id=self.user_id,
            email=self.email,
            items=[i.to_domain() for i in self.items],
            shipping_address=self.shipping_address.model_dump(exclude_none=True),
            billing_address=(
                self.billing_address.model_dump(exclude_none=True) if self.billing_address else None
            ),
            discount_code=self.discount_code,
            discount=self.discount,
            tax_rate=self.tax_rate,
            shipping_cost=self.shipping_cost,
            currency=self.currency,
            notes=self.notes,
            metadata=self.metadata,
        )


class UpdateOrderDTO(BaseModel):
    # fulfillment_status is derived and therefore not accepted here
    model_config = ConfigDict(extra="forbid")

    status: Optional[OrderStatus] = None
    payment_status: Optional[PaymentStatus] = None
    notes: Optional[str] = Field(default=None, max_length=1000)
    metadata: Optional[dict[str, Any]] = None

    def to_domain(self) -> UpdateOrderInput:
        return UpdateOrderInput(
            status=self.status,
            payment_status=self.payment_status,
            notes=self.notes,
            metadata=self.metadata,
        )


class CancelOrderDTO(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=500)


class AddEventDTO(BaseModel):
    type: str = Field(min_length=1, max_length=100)
    data: Optional[dict[str, Any]] = None
    note: Optional[str] = Field(default=None, max_length=1000)
    created_by: Optional[str] = Field(default=None, max_length=255)

    def to_domain(self) -> AddOrderEventInput:
        return AddOrderEventInput(**self.model_dump())


class OrderQueryDTO(BaseModel):
    """Query-string parameters of the list endpoint."""

    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1, le=100)
    sort_by: str = "created_at"
    sort_order: Literal["asc", "desc"] = "desc"
    user_id: Optional[str] = None
    status: Optional[OrderStatus] = None
    payment_status: Optional[PaymentStatus] = None
    fulfillment_status: Optional[FulfillmentStatus] = None
    search: Optional[str] = Field(default=None, max_length=100)
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None

    def to_domain(self) -> OrderQueryParams:
        return OrderQueryParams(**self.model_dump())


class TotalsLineIn(BaseModel):
    quantity: int = Field(ge=0)
    price: Decimal = Field(ge=0)


class TotalsPreviewDTO(BaseModel):
    items: List[TotalsLineIn] = Field(default_factory=list)
    discount: Decimal = Field(default=Decimal("0"), ge=0)
    tax_rate: Decimal = Field(default=Decimal("0"), ge=0, le=1)
    shipping_cost: Decimal = Field(default=Decimal("0"), ge=0)


# ---- Responses ----
class _ReadModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class OrderItemOut(_ReadModel):
    id: str
    variant_id: Optional[str] = None
    product_name: str
    variant_name: Optional[str] = None
    sku: Optional[str] = None
    quantity: int
    price: Decimal
    total: Decimal
    fulfilled_qty: int
    metadata: Optional[dict[str, Any]] = None


class OrderEventOut(_ReadModel):
    id: str
    order_id: str
    type: str
    data: Optional[dict[str, Any]] = None
    note: Optional[str] = None
    created_by: Optional[str] = None
    created_at: datetime


class PaymentOut(_ReadModel):
    id: str
    amount: Decimal
    status: str


class FulfillmentOut(_ReadModel):
    id: str
    status: str
    tracking_number: Optional[str] = None


class OrderReadDTO(_ReadModel):
    """Read model returned by every order endpoint."""

    id: str
    order_number: str
    user_id: Optional[str] = None
    email: str
    status: OrderStatus
    payment_status: PaymentStatus
    fulfillment_status: FulfillmentStatus
    subtotal: Decimal
    discount: Decimal
    tax: Decimal
    shipping: Decimal
    total: Decimal
    currency: str
    shipping_address: dict[str, Any]
    billing_address: Optional[dict[str, Any]] = None
    discount_code: Optional[str] = None
    notes: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    items: List[OrderItemOut] = Field(default_factory=list)
    payments: List[PaymentOut] = Field(default_factory=list)
    fulfillments: List[FulfillmentOut] = Field(default_factory=list)
    events: List[OrderEventOut] = Field(default_factory=list)


class TotalsOut(_ReadModel):
    subtotal: Decimal
    discount: Decimal
    tax: Decimal
    shipping: Decimal
    total: Decimal
