# backend/orders/services/state.py
import logging
from datetime import timedelta

from django.utils import timezone

from loyalty.errors import PointsAlreadyAwarded
from loyalty.services.points import award_points
from restaurant.metrics import track_transition

from ..concurrency import run_with_retry, save_versioned
from ..errors import InvalidPaymentTransition, InvalidTransition, OrderValidationError
from ..events import emit_order_event
from ..models import Order, OrderStatusHistory
from .orders import actor_name, check_invariants

LOGGER = logging.getLogger(__name__)

STATUS_TRANSITIONS = {
    "PENDING": {"CONFIRMED", "CANCELLED"},
    "CONFIRMED": {"PREPARING", "DELAYED", "CANCELLED"},
    "DELAYED": {"CONFIRMED", "CANCELLED"},
    "PREPARING": {"READY", "CANCELLED"},
    "READY": {"COMPLETED", "CANCELLED"},
    "COMPLETED": set(),
    "CANCELLED": set(),
}

# Sortie du retard vers CONFIRMED : uniquement après accord du client.
CUSTOMER_ACK_EDGES = {("DELAYED", "CONFIRMED")}

PAYMENT_STATUS_TRANSITIONS = {
    "UNPAID": {"PARTIALLY_PAID", "PAID"},
    "PARTIALLY_PAID": {"PAID", "PARTIALLY_REFUNDED", "REFUNDED"},
    "PAID": {"PARTIALLY_REFUNDED", "REFUNDED"},
    "PARTIALLY_REFUNDED": {"PARTIALLY_REFUNDED", "REFUNDED", "PAID"},
    "REFUNDED": set(),
}

MAX_DELAY_MINUTES = 240


def can_transition(from_status, to_status, customer_ack=False) -> bool:
    if to_status not in STATUS_TRANSITIONS.get(from_status, set()):
        return False
    if (from_status, to_status) in CUSTOMER_ACK_EDGES and not customer_ack:
        return False
    return True


def derive_payment_status(net_paid, total, refunded_total, has_pending=False) -> str:
    """REFUNDED seulement quand plus rien n'est encaissé ni en attente : un
    paiement en attente peut encore être validé après un remboursement."""
    if net_paid > 0 and net_paid >= total:
        return "PAID"
    if refunded_total > 0:
        if net_paid <= 0 and not has_pending:
            return "REFUNDED"
        return "PARTIALLY_REFUNDED"
    if net_paid <= 0:
        return "UNPAID"
    return "PARTIALLY_PAID"


def validate_payment_transition(from_status, to_status):
    if from_status == to_status:
        return
    if to_status not in PAYMENT_STATUS_TRANSITIONS.get(from_status, set()):
        raise InvalidPaymentTransition(from_status, to_status)


def transition(order, to_status, changed_by=None, notes="", customer_ack=False, expected_from=None, extra_fields=None):
    """Applique un changement de statut et ajoute exactement une ligne d'historique,
    dans la même transaction. Les transitions refusées n'écrivent rien."""
    actor = actor_name(changed_by)
    extra_fields = extra_fields or {}

    def _apply():
        fresh = Order.objects.select_related("customer").get(pk=order.pk)
        from_status = fresh.status
        if fresh.is_deleted:
            raise InvalidTransition(from_status, to_status, "Commande supprimée.")
        if expected_from and from_status not in expected_from:
            raise InvalidTransition(from_status, to_status)
        if not can_transition(from_status, to_status, customer_ack=customer_ack):
            raise InvalidTransition(from_status, to_status)

        fresh.status = to_status
        for field, value in extra_fields.items():
            setattr(fresh, field, value)
        check_invariants(fresh)
        save_versioned(fresh, ["status", *extra_fields.keys()])

        OrderStatusHistory.objects.create(
            order=fresh,
            from_status=from_status,
            to_status=to_status,
            changed_by=actor,
            notes=notes or "",
        )

        if to_status == "CONFIRMED" and fresh.customer_id:
            try:
                award_points(fresh.customer, fresh, by=actor)
            except PointsAlreadyAwarded:
                LOGGER.info("points_already_awarded", extra={"order_id": fresh.id})

        emit_order_event(fresh)
        return fresh, from_status

    fresh, from_status = run_with_retry(_apply, scope="order")
    track_transition(to_status)
    LOGGER.info(
        "order_transition",
        extra={
            "order_id": fresh.id,
            "from_status": from_status,
            "to_status": to_status,
            "changed_by": actor,
        },
    )
    return fresh


def cancel_order(order, reason, changed_by=None):
    """Annulation depuis tout statut non terminal. Ne rembourse pas : les
    remboursements passent par le registre de paiements."""
    reason = (reason or "").strip()
    if not reason:
        raise OrderValidationError("Un motif d'annulation est obligatoire.")
    return transition(
        order,
        "CANCELLED",
        changed_by=changed_by,
        notes=reason,
        extra_fields={"cancellation_reason": reason},
    )


def delay_order(order, minutes, changed_by=None, notes=""):
    minutes = int(minutes or 0)
    if minutes <= 0 or minutes > MAX_DELAY_MINUTES:
        raise OrderValidationError(f"Le retard doit être compris entre 1 et {MAX_DELAY_MINUTES} minutes.")
    return transition(
        order,
        "DELAYED",
        changed_by=changed_by,
        notes=notes or f"Retard estimé : {minutes} min",
        extra_fields={"estimated_ready_at": timezone.now() + timedelta(minutes=minutes)},
    )


def approve_delay(order, changed_by=None, notes=""):
    return transition(
        order,
        "CONFIRMED",
        changed_by=changed_by,
        notes=notes or "Retard accepté par le client",
        customer_ack=True,
        expected_from={"DELAYED"},
    )


def reject_delay(order, changed_by=None, reason=""):
    reason = (reason or "").strip() or "Retard refusé par le client"
    return transition(
        order,
        "CANCELLED",
        changed_by=changed_by,
        notes=reason,
        expected_from={"DELAYED"},
        extra_fields={"cancellation_reason": reason},
    )
