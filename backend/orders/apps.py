from django.apps import AppConfig


class OrdersConfig(AppConfig):
    name = "orders"
    default_auto_field = "django.db.models.BigAutoField"

    def ready(self):
        from .events import log_order_event, order_event

        order_event.connect(log_order_event, dispatch_uid="orders.log_order_event")
