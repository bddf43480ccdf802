from django.apps import AppConfig


class OrdersConfig(AppConfig):
    name = "orders"
    label = "orders"
    default_auto_field = "django.db.models.BigAutoField"

    def ready(self):
        from .events import EventBus

        # one bus per process; OrderService instances receive it explicitly
        self.event_bus = EventBus()
