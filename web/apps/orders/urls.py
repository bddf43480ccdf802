from django.urls import path

from .views import (
    OrderByNumberView,
    OrderCancelView,
    OrderConfirmView,
    OrderDetailView,
    OrderEventsView,
    OrdersCollectionView,
    OrdersPingView,
    OrderTotalsView,
)

app_name = "orders"

urlpatterns = [
    path("ping/", OrdersPingView.as_view(), name="ping"),
    path("", OrdersCollectionView.as_view(), name="orders-collection"),  # GET list / POST create
    path("totals/", OrderTotalsView.as_view(), name="orders-totals"),
    path("number/<str:order_number>/", OrderByNumberView.as_view(), name="orders-by-number"),
    path("<uuid:oid>/", OrderDetailView.as_view(), name="orders-detail"),  # GET / PUT / PATCH
    path("<uuid:oid>/confirm/", OrderConfirmView.as_view(), name="orders-confirm"),
    path("<uuid:oid>/cancel/", OrderCancelView.as_view(), name="orders-cancel"),
    path("<uuid:oid>/events/", OrderEventsView.as_view(), name="orders-events"),
]
