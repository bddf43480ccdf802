import uuid

from django.db import models

MONEY = {"max_digits": 12, "decimal_places": 2}


class OrderModel(models.Model):
    # UUID PK exposed by the API
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order_number = models.CharField(max_length=64, unique=True)

    user_id = models.CharField(max_length=64, null=True, blank=True, db_index=True)
    email = models.EmailField(max_length=254)

    class Status(models.TextChoices):
        PENDING = "pending"
        CONFIRMED = "confirmed"
        PROCESSING = "processing"
        SHIPPED = "shipped"
        DELIVERED = "delivered"
        CANCELLED = "cancelled"

    class PaymentStatus(models.TextChoices):
        PENDING = "pending"
        PAID = "paid"
        REFUNDED = "refunded"
        FAILED = "failed"

    class FulfillmentStatus(models.TextChoices):
        UNFULFILLED = "unfulfilled"
        PARTIAL = "partial"
        FULFILLED = "fulfilled"

    status = models.CharField(max_length=32, choices=Status.choices, default=Status.PENDING)
    payment_status = models.CharField(
        max_length=32, choices=PaymentStatus.choices, default=PaymentStatus.PENDING
    )
    fulfillment_status = models.CharField(
        max_length=32, choices=FulfillmentStatus.choices, default=FulfillmentStatus.UNFULFILLED
    )

    subtotal = models.DecimalField(default=0, **MONEY)
    discount = models.DecimalField(default=0, **MONEY)
    tax = models.DecimalField(default=0, **MONEY)
    shipping = models.DecimalField(default=0, **MONEY)
    total = models.DecimalField(default=0, **MONEY)
    currency = models.CharField(max_length=3, default="USD")

    shipping_address = models.JSONField()
    billing_address = models.JSONField(null=True, blank=True)
    discount_code = models.CharField(max_length=50, null=True, blank=True)
    notes = models.TextField(null=True, blank=True)
    metadata = models.JSONField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "orders"
        ordering = ["-created_at"]


class OrderItemModel(models.Model):
    """Line snapshot; only ``fulfilled_qty`` changes after creation."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order = models.ForeignKey(OrderModel, related_name="items", on_delete=models.CASCADE)
    variant_id = models.CharField(max_length=64, null=True, blank=True)
    product_name = models.CharField(max_length=255)
    variant_name = models.CharField(max_length=255, null=True, blank=True)
    sku = models.CharField(max_length=100, null=True, blank=True)
    quantity = models.PositiveIntegerField()
    price = models.DecimalField(**MONEY)
    total = models.DecimalField(**MONEY)
    fulfilled_qty = models.PositiveIntegerField(default=0)
    metadata = models.JSONField(null=True, blank=True)
    # checkout line order
    position = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "order_items"
        ordering = ["position", "id"]


class OrderEventModel(models.Model):
    """Append-only audit log entry."""

    order = models.ForeignKey(OrderModel, related_name="events", on_delete=models.CASCADE)
    type = models.CharField(max_length=100)
    data = models.JSONField(null=True, blank=True)
    note = models.TextField(null=True, blank=True)
    created_by = models.CharField(max_length=255, null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "order_events"
        # newest first; the autoincrement id breaks ties inside one clock tick
        ordering = ["-created_at", "-id"]


# Payments and fulfillments are owned by their own modules; the orders
# engine only reads them as relations of the order.
class OrderPaymentModel(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order = models.ForeignKey(OrderModel, related_name="payments", on_delete=models.CASCADE)
    amount = models.DecimalField(**MONEY)
    status = models.CharField(max_length=32)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "order_payments"
        ordering = ["created_at"]


class OrderFulfillmentModel(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    order = models.ForeignKey(OrderModel, related_name="fulfillments", on_delete=models.CASCADE)
    status = models.CharField(max_length=32)
    tracking_number = models.CharField(max_length=255, null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "order_fulfillments"
        ordering = ["created_at"]
