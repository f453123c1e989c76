# backend/orders/services/payments.py
import logging
from decimal import Decimal

from django.conf import settings
from django.db.models import DecimalField, F, Sum
from django.utils import timezone
from django.utils.module_loading import import_string

from restaurant.metrics import track_payment

from ..concurrency import run_with_retry, save_versioned
from ..errors import (
    OrderNotPayable,
    OrderValidationError,
    OverpaymentRejected,
    PaymentStateError,
    RefundExceedsPayment,
)
from ..models import Order, OrderPayment
from .orders import check_invariants
from .pricing import ZERO, quantize_money
from .state import derive_payment_status, validate_payment_transition

LOGGER = logging.getLogger(__name__)

PAYMENT_TOLERANCE = Decimal("0.01")
MIN_REFUND_REASON_LENGTH = 5
METHODS = {code for code, _ in OrderPayment.METHOD_CHOICES}


class ClampOverpaymentPolicy:
    """Le trop-perçu est plafonné au total et conservé à part comme avoir."""

    def before_confirm(self, order, net_paid, amount):
        return None

    def settle(self, total, net_paid):
        total_paid = min(net_paid, total)
        overpaid = max(net_paid - total, ZERO)
        return quantize_money(total_paid), quantize_money(overpaid)


class RejectOverpaymentPolicy(ClampOverpaymentPolicy):
    """Refuse toute confirmation qui dépasserait le total de la commande."""

    def before_confirm(self, order, net_paid, amount):
        if net_paid + amount - order.total > PAYMENT_TOLERANCE:
            raise OverpaymentRejected(
                items=[
                    {
                        "total": str(order.total),
                        "already_paid": str(net_paid),
                        "amount": str(amount),
                    }
                ]
            )


def get_overpayment_policy():
    path = getattr(settings, "ORDERS_OVERPAYMENT_POLICY", "orders.services.payments.ClampOverpaymentPolicy")
    return import_string(path)()


def _net_paid(order) -> Decimal:
    net = order.payments.filter(status="COMPLETED").aggregate(
        net=Sum(
            F("amount") - F("refunded_amount"),
            output_field=DecimalField(max_digits=12, decimal_places=2),
        )
    )["net"]
    return quantize_money(net or ZERO)


def _refunded_total(order) -> Decimal:
    refunded = order.payments.aggregate(total=Sum("refunded_amount"))["total"]
    return quantize_money(refunded or ZERO)


def reconcile(order, policy=None):
    """Recalcule total_paid / remaining_amount / payment_status sur une commande
    relue dans la transaction courante, puis l'écrit avec contrôle de version."""
    policy = policy or get_overpayment_policy()
    net_paid = _net_paid(order)
    total_paid, overpaid = policy.settle(order.total, net_paid)

    order.total_paid = total_paid
    order.overpaid_amount = overpaid
    order.remaining_amount = max(order.total - total_paid, ZERO)

    new_status = derive_payment_status(
        net_paid,
        order.total,
        _refunded_total(order),
        has_pending=order.payments.filter(status="PENDING").exists(),
    )
    validate_payment_transition(order.payment_status, new_status)
    order.payment_status = new_status

    check_invariants(order)
    save_versioned(order, ["total_paid", "overpaid_amount", "remaining_amount", "payment_status"])
    if overpaid > 0:
        LOGGER.warning(
            "order_overpaid",
            extra={"order_id": order.id, "overpaid_amount": str(overpaid)},
        )
    return order


def _confirm(order, payment, policy):
    policy.before_confirm(order, _net_paid(order), payment.amount)
    payment.status = "COMPLETED"
    payment.confirmed_at = timezone.now()
    payment.save(update_fields=["status", "confirmed_at"])


def record_payment(order, amount, method, reference="", confirm=False, created_by=None):
    amount = quantize_money(amount)
    if amount <= 0:
        raise OrderValidationError("Le montant doit être supérieur à 0.")
    if method not in METHODS:
        raise OrderValidationError("Moyen de paiement inconnu.")
    policy = get_overpayment_policy()

    def _apply():
        fresh = Order.objects.get(pk=order.pk)
        if fresh.is_deleted or fresh.status == "CANCELLED" or fresh.payment_status == "REFUNDED":
            raise OrderNotPayable()
        payment = OrderPayment.objects.create(
            order=fresh,
            amount=amount,
            method=method,
            status="PENDING",
            transaction_reference=reference or "",
            created_by=created_by,
        )
        if confirm:
            _confirm(fresh, payment, policy)
        reconcile(fresh, policy)
        return payment

    payment = run_with_retry(_apply, scope="order")
    track_payment(method, payment.status)
    LOGGER.info(
        "payment_recorded",
        extra={"order_id": order.pk, "payment_id": payment.id, "amount": str(amount), "status": payment.status},
    )
    return payment


def confirm_payment(payment):
    policy = get_overpayment_policy()

    def _apply():
        fresh_order = Order.objects.get(pk=payment.order_id)
        fresh = OrderPayment.objects.get(pk=payment.pk)
        if fresh.status != "PENDING":
            raise PaymentStateError("Seul un paiement en attente peut être validé.")
        _confirm(fresh_order, fresh, policy)
        reconcile(fresh_order, policy)
        return fresh

    fresh = run_with_retry(_apply, scope="order")
    track_payment(fresh.method, fresh.status)
    LOGGER.info("payment_confirmed", extra={"order_id": fresh.order_id, "payment_id": fresh.id})
    return fresh


def fail_payment(payment, reason=""):
    def _apply():
        fresh_order = Order.objects.get(pk=payment.order_id)
        fresh = OrderPayment.objects.get(pk=payment.pk)
        if fresh.status != "PENDING":
            raise PaymentStateError("Seul un paiement en attente peut échouer.")
        fresh.status = "FAILED"
        fresh.failure_reason = (reason or "")[:255]
        fresh.save(update_fields=["status", "failure_reason"])
        reconcile(fresh_order)
        return fresh

    fresh = run_with_retry(_apply, scope="order")
    track_payment(fresh.method, fresh.status)
    LOGGER.info("payment_failed", extra={"order_id": fresh.order_id, "payment_id": fresh.id})
    return fresh


def refund_payment(payment, amount, reason):
    amount = quantize_money(amount)
    reason = (reason or "").strip()
    if amount <= 0:
        raise OrderValidationError("Le montant du remboursement doit être supérieur à 0.")
    if len(reason) < MIN_REFUND_REASON_LENGTH:
        raise OrderValidationError(
            f"Le motif du remboursement doit contenir au moins {MIN_REFUND_REASON_LENGTH} caractères."
        )

    def _apply():
        fresh_order = Order.objects.get(pk=payment.order_id)
        fresh = OrderPayment.objects.get(pk=payment.pk)
        if fresh.status != "COMPLETED":
            raise PaymentStateError("Seul un paiement validé peut être remboursé.")
        if amount > fresh.refundable_amount:
            raise RefundExceedsPayment(
                items=[{"requested": str(amount), "refundable": str(fresh.refundable_amount)}]
            )
        fresh.refunded_amount = fresh.refunded_amount + amount
        fresh.refund_reason = reason
        fresh.refunded_at = timezone.now()
        if fresh.refunded_amount == fresh.amount:
            fresh.status = "REFUNDED"
        fresh.save(update_fields=["refunded_amount", "refund_reason", "refunded_at", "status"])
        reconcile(fresh_order)
        return fresh

    fresh = run_with_retry(_apply, scope="order")
    track_payment(fresh.method, "REFUND")
    LOGGER.info(
        "payment_refunded",
        extra={"order_id": fresh.order_id, "payment_id": fresh.id, "amount": str(amount)},
    )
    return fresh
