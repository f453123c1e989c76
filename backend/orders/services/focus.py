# backend/orders/services/focus.py
import logging

from django.db.models import F
from django.utils import timezone

from ..concurrency import run_with_retry, save_versioned
from ..errors import OrderValidationError
from ..models import Order
from .orders import actor_name

LOGGER = logging.getLogger(__name__)

DEFAULT_PRIORITY = 3
MIN_PRIORITY = 1
MAX_PRIORITY = 5

KITCHEN_STATUSES = ["CONFIRMED", "DELAYED", "PREPARING", "READY"]
FOCUS_FIELDS = ["is_focus_order", "priority", "focus_reason", "focused_by", "focused_at"]


def queue_ordering():
    return [
        F("is_focus_order").desc(),
        F("priority").asc(nulls_last=True),
        F("order_date").asc(),
        F("id").asc(),
    ]


def set_focus(order, priority=None, reason="", by=None):
    """Passe la commande en priorité cuisine. Le statut n'est pas modifié."""
    priority = DEFAULT_PRIORITY if priority is None else int(priority)
    reason = (reason or "").strip()
    if not MIN_PRIORITY <= priority <= MAX_PRIORITY:
        raise OrderValidationError(f"La priorité doit être comprise entre {MIN_PRIORITY} et {MAX_PRIORITY}.")
    if not reason:
        raise OrderValidationError("Un motif est obligatoire pour prioriser une commande.")
    actor = actor_name(by)

    def _apply():
        fresh = Order.objects.get(pk=order.pk)
        if fresh.is_deleted or fresh.is_terminal:
            raise OrderValidationError("Seule une commande en cours peut être priorisée.")
        fresh.is_focus_order = True
        fresh.priority = priority
        fresh.focus_reason = reason
        fresh.focused_by = actor
        fresh.focused_at = timezone.now()
        save_versioned(fresh, FOCUS_FIELDS)
        return fresh

    fresh = run_with_retry(_apply, scope="order")
    LOGGER.info(
        "order_focused",
        extra={"order_id": fresh.id, "priority": priority, "focused_by": actor},
    )
    return fresh


def clear_focus(order):
    def _apply():
        fresh = Order.objects.get(pk=order.pk)
        fresh.is_focus_order = False
        fresh.priority = None
        fresh.focus_reason = ""
        fresh.focused_by = ""
        fresh.focused_at = None
        save_versioned(fresh, FOCUS_FIELDS)
        return fresh

    return run_with_retry(_apply, scope="order")


def kitchen_queue():
    return (
        Order.objects.filter(is_deleted=False, status__in=KITCHEN_STATUSES)
        .prefetch_related("items")
        .order_by(*queue_ordering())
    )


def focus_orders():
    return kitchen_queue().filter(is_focus_order=True)
