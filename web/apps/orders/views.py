"""HTTP views for the orders app.

This module contains DRF API views for the order lifecycle. Views are kept
intentionally small: they validate requests (via Pydantic), map them to
domain inputs, delegate to ``OrderService`` and render the returned
snapshot with ``OrderReadDTO``.

The service is obtained per request from ``providers.get_order_service()``
so tests can swap settings or the whole service without touching views.

Errors: domain errors (``OrderError``) are answered with their own HTTP
status and ``{"detail": <CODE>, "message": <text>}``; Pydantic validation
errors become 400. Anything else, including exceptions raised by lifecycle
hooks after a change was committed, is left to DRF / Django.
"""

import logging

from pydantic import ValidationError
from rest_framework import status
from rest_framework.response import Response
from rest_framework.throttling import ScopedRateThrottle
from rest_framework.views import APIView

from . import providers
from .errors import OrderError
from .schemas import (
    AddEventDTO,
    CancelOrderDTO,
    CreateOrderDTO,
    OrderEventOut,
    OrderQueryDTO,
    OrderReadDTO,
    TotalsOut,
    TotalsPreviewDTO,
    UpdateOrderDTO,
)

logger = logging.getLogger(__name__)


def render_order(order) -> dict:
    return OrderReadDTO.model_validate(order).model_dump(mode="json")


class OrdersAPIView(APIView):
    """Base view translating domain and validation errors into responses."""

    throttle_classes = [ScopedRateThrottle]

    def handle_exception(self, exc):
        if isinstance(exc, OrderError):
            if exc.status_code >= 500:
                logger.error("order request failed", extra={"code": exc.code})
            body = {"detail": exc.code}
            if exc.message:
                body["message"] = exc.message
            return Response(body, status=exc.status_code)
        if isinstance(exc, ValidationError):
            return Response({"detail": str(exc)}, status=status.HTTP_400_BAD_REQUEST)
        return super().handle_exception(exc)


class OrdersPingView(APIView):
    """Simple health-check endpoint for the orders module."""

    def get(self, request):
        return Response({"ok": True})


class OrdersCollectionView(OrdersAPIView):
    """List orders (GET) and create an order from checkout input (POST)."""

    def get_throttles(self):
        # DRF evaluates throttles in initial(), before get/post
        self.throttle_scope = "orders_list" if self.request.method == "GET" else "orders_create"
        return [throttle() for throttle in self.throttle_classes]

    def get(self, request):
        """Return a page of orders.

        Query parameters follow ``OrderQueryDTO`` (page, limit, sort_by,
        sort_order, status filters, search, date range).

        Returns:
            Response: 200 with ``{count, page, page_size, results}``.
        """
        query = OrderQueryDTO.model_validate(request.query_params.dict())
        result = providers.get_order_service().find_many(query.to_domain())
        return Response(
            {
                "count": result.total,
                "page": query.page,
                "page_size": query.limit,
                "results": [render_order(o) for o in result.data],
            },
            status=status.HTTP_200_OK,
        )

    def post(self, request):
        """Create a new order.

        Returns:
            Response: One of the following responses.
            - 201 with the created order.
            - 400 for DTO validation errors, an empty/invalid item list or
              amounts too large to store.
        """
        dto = CreateOrderDTO.model_validate(request.data)
        order = providers.get_order_service().create(dto.to_domain())
        return Response(render_order(order), status=status.HTTP_201_CREATED)


class OrderTotalsView(OrdersAPIView):
    """Checkout preview: compute totals without creating anything."""

    throttle_scope = "orders_list"

    def post(self, request):
        dto = TotalsPreviewDTO.model_validate(request.data)
        totals = providers.get_order_service().calculate_totals(
            dto.items, dto.discount, dto.tax_rate, dto.shipping_cost
        )
        return Response(TotalsOut.model_validate(totals).model_dump(mode="json"))


class OrderDetailView(OrdersAPIView):
    throttle_scope = "orders_detail"

    def get(self, request, oid):
        order = providers.get_order_service().find_by_id(str(oid))
        return Response(render_order(order))

    def put(self, request, oid):
        """Direct update of status, payment status, notes or metadata.

        Returns:
            Response: 200 with the updated order, 400 when editing is
            disabled, 404 when the order does not exist, 409 when its status
            changed concurrently.
        """
        dto = UpdateOrderDTO.model_validate(request.data)
        order = providers.get_order_service().update(str(oid), dto.to_domain())
        return Response(render_order(order))

    patch = put


class OrderByNumberView(OrdersAPIView):
    throttle_scope = "orders_detail"

    def get(self, request, order_number):
        order = providers.get_order_service().find_by_order_number(order_number)
        return Response(render_order(order))


class OrderConfirmView(OrdersAPIView):
    throttle_scope = "orders_update"

    def post(self, request, oid):
        order = providers.get_order_service().confirm(str(oid))
        return Response(render_order(order))


class OrderCancelView(OrdersAPIView):
    throttle_scope = "orders_update"

    def post(self, request, oid):
        """Cancel an order.

        Returns:
            Response: 200 with the cancelled order; 400 with
            ``INVALID_TRANSITION`` or ``CANCELLATION_DISABLED`` when the
            order cannot be cancelled.
        """
        dto = CancelOrderDTO.model_validate(request.data or {})
        order = providers.get_order_service().cancel(str(oid), dto.reason)
        return Response(render_order(order))


class OrderEventsView(OrdersAPIView):
    """Audit log of an order: list (GET) and append a note (POST)."""

    throttle_scope = "orders_detail"

    def get(self, request, oid):
        events = providers.get_order_service().get_events(str(oid))
        return Response([OrderEventOut.model_validate(e).model_dump(mode="json") for e in events])

    def post(self, request, oid):
        dto = AddEventDTO.model_validate(request.data)
        event = providers.get_order_service().add_event(str(oid), dto.to_domain())
        return Response(
            OrderEventOut.model_validate(event).model_dump(mode="json"),
            status=status.HTTP_201_CREATED,
        )
