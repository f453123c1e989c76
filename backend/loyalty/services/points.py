# backend/loyalty/services/points.py
import logging
from decimal import Decimal

from django.conf import settings
from django.db import IntegrityError
from django.db.models import Count, Q, Sum

from orders.concurrency import run_with_retry, save_versioned
from orders.services.pricing import quantize_money
from restaurant.metrics import track_points

from ..errors import InsufficientPoints, LoyaltyValidationError, PointsAlreadyAwarded
from ..models import FidelityPointBalance, FidelityPointsTransaction, PointEarningRule

LOGGER = logging.getLogger(__name__)

BALANCE_SCOPE = "fidelity_balance"


def point_value() -> Decimal:
    return Decimal(getattr(settings, "LOYALTY_POINT_VALUE", Decimal("0.01")))


def points_to_currency(points: int) -> Decimal:
    return quantize_money(Decimal(int(points or 0)) * point_value())


def find_earning_rule(amount):
    """Règle active dont la tranche contient ``amount``.

    En cas de chevauchement, la plus petite priorité gagne (puis l'id le plus ancien).
    """
    amount = quantize_money(amount)
    return (
        PointEarningRule.objects.filter(is_active=True, min_order_amount__lte=amount)
        .filter(Q(max_order_amount__isnull=True) | Q(max_order_amount__gte=amount))
        .order_by("priority", "id")
        .first()
    )


def calculate_points(amount) -> int:
    rule = find_earning_rule(amount)
    return rule.points_awarded if rule else 0


def find_overlapping_rules(rule):
    """Règles actives dont la tranche recoupe celle de ``rule`` (hors elle-même)."""
    qs = PointEarningRule.objects.filter(is_active=True).exclude(pk=rule.pk)
    if rule.max_order_amount is not None:
        qs = qs.filter(min_order_amount__lte=rule.max_order_amount)
    qs = qs.filter(Q(max_order_amount__isnull=True) | Q(max_order_amount__gte=rule.min_order_amount))
    return list(qs.order_by("priority", "id"))


def get_balance(customer):
    balance, _ = FidelityPointBalance.objects.get_or_create(customer=customer)
    return balance


def current_points(customer) -> int:
    """Lecture seule : ne crée pas de solde."""
    value = (
        FidelityPointBalance.objects.filter(customer=customer)
        .values_list("current_points", flat=True)
        .first()
    )
    return value or 0


def _ledger_totals(customer_id):
    totals = FidelityPointsTransaction.objects.filter(customer_id=customer_id).aggregate(
        current=Sum("points"),
        earned=Sum("points", filter=Q(transaction_type__in=["EARN", "ADJUST"], points__gt=0)),
        redeemed=Sum("points", filter=Q(transaction_type="REDEEM")),
    )
    return (
        totals["current"] or 0,
        totals["earned"] or 0,
        -(totals["redeemed"] or 0),
    )


def recompute_balance(balance):
    current, earned, redeemed = _ledger_totals(balance.customer_id)
    balance.current_points = current
    balance.total_earned_points = earned
    balance.total_redeemed_points = redeemed
    save_versioned(balance, ["current_points", "total_earned_points", "total_redeemed_points"])
    return balance


def _append(balance, transaction_type, points, order=None, order_amount=None, description="", by="system"):
    entry = FidelityPointsTransaction.objects.create(
        customer_id=balance.customer_id,
        order=order,
        transaction_type=transaction_type,
        points=points,
        order_amount=order_amount,
        description=description,
        created_by=by or "system",
    )
    recompute_balance(balance)
    return entry


def award_points(customer, order, order_amount=None, by="system") -> int:
    """Crédite les points d'une commande. Un second appel pour la même commande
    lève PointsAlreadyAwarded."""
    if customer is None:
        return 0
    amount = quantize_money(order.subtotal if order_amount is None else order_amount)
    rule = find_earning_rule(amount)

    def _apply():
        if FidelityPointsTransaction.objects.filter(order=order, transaction_type="EARN").exists():
            raise PointsAlreadyAwarded(order.id)
        if rule is None:
            return 0
        balance = get_balance(customer)
        _append(
            balance,
            "EARN",
            rule.points_awarded,
            order=order,
            order_amount=amount,
            description=f"Commande {order.order_number} ({rule.name})",
            by=by,
        )
        return rule.points_awarded

    try:
        points = run_with_retry(_apply, scope=BALANCE_SCOPE)
    except IntegrityError as exc:
        raise PointsAlreadyAwarded(order.id) from exc

    if points:
        track_points("EARN")
        LOGGER.info(
            "points_awarded",
            extra={"customer_id": customer.pk, "order_id": order.id, "points": points},
        )
    return points


def redeem_points(customer, points, order=None, by="system") -> Decimal:
    """Débite ``points`` et retourne la remise correspondante."""
    points = int(points or 0)
    max_points = getattr(settings, "LOYALTY_MAX_REDEEM_POINTS", 100000)
    if points <= 0:
        raise LoyaltyValidationError("Le nombre de points doit être supérieur à 0.")
    if points > max_points:
        raise LoyaltyValidationError(f"Maximum {max_points} points par utilisation.")

    def _apply():
        balance = get_balance(customer)
        current, _, _ = _ledger_totals(balance.customer_id)
        if points > current:
            raise InsufficientPoints(points, current)
        description = f"Commande {order.order_number}" if order is not None else "Utilisation de points"
        _append(balance, "REDEEM", -points, order=order, description=description, by=by)

    run_with_retry(_apply, scope=BALANCE_SCOPE)
    track_points("REDEEM")
    amount = points_to_currency(points)
    LOGGER.info(
        "points_redeemed",
        extra={"customer_id": customer.pk, "points": points, "amount": str(amount)},
    )
    return amount


def adjust_points(customer, points, reason, by="system"):
    points = int(points or 0)
    if points == 0:
        raise LoyaltyValidationError("L'ajustement ne peut pas être nul.")
    if not (reason or "").strip():
        raise LoyaltyValidationError("Un motif est obligatoire.")

    def _apply():
        balance = get_balance(customer)
        current, _, _ = _ledger_totals(balance.customer_id)
        if current + points < 0:
            raise InsufficientPoints(-points, current)
        entry = _append(balance, "ADJUST", points, description=reason.strip(), by=by)
        return entry, balance

    entry, balance = run_with_retry(_apply, scope=BALANCE_SCOPE)
    track_points("ADJUST")
    LOGGER.info(
        "points_adjusted",
        extra={"customer_id": customer.pk, "points": points, "by": by},
    )
    return entry, balance


def loyalty_analytics():
    ledger = FidelityPointsTransaction.objects.aggregate(
        issued=Sum("points", filter=Q(transaction_type="EARN")),
        redeemed=Sum("points", filter=Q(transaction_type="REDEEM")),
        adjusted=Sum("points", filter=Q(transaction_type="ADJUST")),
        expired=Sum("points", filter=Q(transaction_type="EXPIRE")),
    )
    balances = FidelityPointBalance.objects.aggregate(
        outstanding=Sum("current_points"),
        active_customers=Count("id", filter=Q(current_points__gt=0)),
    )
    per_rule = []
    for rule in PointEarningRule.objects.order_by("priority", "id"):
        per_rule.append(
            {
                "id": rule.id,
                "name": rule.name,
                "points_awarded": rule.points_awarded,
                "is_active": rule.is_active,
            }
        )
    redeemed = -(ledger["redeemed"] or 0)
    return {
        "points_issued": ledger["issued"] or 0,
        "points_redeemed": redeemed,
        "points_adjusted": ledger["adjusted"] or 0,
        "points_expired": -(ledger["expired"] or 0),
        "points_outstanding": balances["outstanding"] or 0,
        "active_customers": balances["active_customers"] or 0,
        "redeemed_value": str(points_to_currency(redeemed)),
        "rules": per_rule,
    }
