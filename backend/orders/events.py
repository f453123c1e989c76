import logging

from django.db import transaction
from django.dispatch import Signal

LOGGER = logging.getLogger(__name__)

# Reçoit ``payload`` : {order_id, order_number, new_status, customer_contact}
order_event = Signal()


def build_payload(order):
    return {
        "order_id": order.id,
        "order_number": order.order_number,
        "new_status": order.status,
        "customer_contact": order.customer_contact,
    }


def emit_order_event(order):
    """Publie l'événement après commit : rien n'est envoyé si la transaction échoue."""
    payload = build_payload(order)
    transaction.on_commit(lambda: order_event.send(sender=type(order), payload=payload))
    return payload


def log_order_event(sender, payload, **kwargs):
    LOGGER.info("order_event", extra=payload)
