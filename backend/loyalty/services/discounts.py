# backend/loyalty/services/discounts.py
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from django.utils import timezone

from orders.concurrency import run_with_retry, save_versioned
from orders.services.pricing import ZERO, capped_discount, quantize_money

from ..errors import DiscountNoLongerAvailable, InvalidPromoCode
from ..models import CustomerDiscountRule, PromoCode

LOGGER = logging.getLogger(__name__)

SOURCE_CUSTOMER_RULE = "CUSTOMER_RULE"
SOURCE_PROMO_CODE = "PROMO_CODE"
SOURCE_NONE = "NONE"


@dataclass(frozen=True)
class DiscountDecision:
    source: str
    amount: Decimal
    subtotal: Decimal = ZERO
    rule_id: Optional[int] = None
    promo_code: str = ""
    percentage: Decimal = ZERO

    @property
    def applies(self):
        return self.source != SOURCE_NONE and self.amount > 0

    def as_dict(self):
        return {
            "source": self.source,
            "amount": str(self.amount),
            "rule_id": self.rule_id,
            "promo_code": self.promo_code,
            "percentage": str(self.percentage),
        }


def normalize_promo_code(code):
    return (code or "").strip().upper()


def _within_validity(obj, at):
    if obj.valid_from and at < obj.valid_from:
        return False
    if obj.valid_until and at > obj.valid_until:
        return False
    return True


def _usage_left(obj):
    return not obj.max_usage_count or obj.usage_count < obj.max_usage_count


def rule_is_eligible(rule, subtotal, at=None) -> bool:
    at = at or timezone.now()
    if not rule.is_active or not _within_validity(rule, at) or not _usage_left(rule):
        return False
    if rule.min_order_amount is not None and subtotal < rule.min_order_amount:
        return False
    if rule.max_order_amount is not None and subtotal > rule.max_order_amount:
        return False
    return True


def _promo_rejection_reason(promo, subtotal, at):
    if not promo.is_active:
        return "inactive"
    if not _within_validity(promo, at):
        return "expired"
    if not _usage_left(promo):
        return "exhausted"
    if promo.min_order_amount is not None and subtotal < promo.min_order_amount:
        return "below_minimum"
    return None


def _percentage_of(obj):
    return obj.value if obj.discount_type == "PERCENTAGE" else ZERO


def resolve_discount(customer, subtotal, promo_code=None, at=None) -> DiscountDecision:
    """Choisit la remise applicable, sans effet de bord.

    Ordre fixe, la première source éligible gagne (pas de cumul) :
    règle client, puis code promo, puis aucune remise.
    """
    at = at or timezone.now()
    subtotal = quantize_money(subtotal)

    if customer is not None:
        best_rule, best_amount = None, ZERO
        rules = CustomerDiscountRule.objects.filter(customer=customer, is_active=True).order_by("id")
        for rule in rules:
            if not rule_is_eligible(rule, subtotal, at):
                continue
            amount = capped_discount(subtotal, rule.discount_type, rule.value, rule.max_discount_amount)
            if amount > best_amount:
                best_rule, best_amount = rule, amount
        if best_rule is not None:
            return DiscountDecision(
                source=SOURCE_CUSTOMER_RULE,
                amount=best_amount,
                subtotal=subtotal,
                rule_id=best_rule.id,
                percentage=_percentage_of(best_rule),
            )

    code = normalize_promo_code(promo_code)
    if code:
        promo = PromoCode.objects.filter(code=code).first()
        if promo is None:
            raise InvalidPromoCode(code, "unknown")
        reason = _promo_rejection_reason(promo, subtotal, at)
        if reason:
            raise InvalidPromoCode(code, reason)
        amount = capped_discount(subtotal, promo.discount_type, promo.value, promo.max_discount_amount)
        return DiscountDecision(
            source=SOURCE_PROMO_CODE,
            amount=amount,
            subtotal=subtotal,
            promo_code=code,
            percentage=_percentage_of(promo),
        )

    return DiscountDecision(source=SOURCE_NONE, amount=ZERO, subtotal=subtotal)


def _bump_usage(obj):
    obj.usage_count += 1
    fields = ["usage_count"]
    if obj.max_usage_count and obj.usage_count >= obj.max_usage_count:
        obj.is_active = False
        fields.append("is_active")
    save_versioned(obj, fields)


def consume_discount(decision: DiscountDecision, at=None):
    """Incrémente le compteur d'utilisation de la source retenue (une fois par commande)."""
    at = at or timezone.now()

    if decision.source == SOURCE_CUSTOMER_RULE:

        def _apply_rule():
            rule = CustomerDiscountRule.objects.get(pk=decision.rule_id)
            if not rule_is_eligible(rule, decision.subtotal, at):
                raise DiscountNoLongerAvailable()
            _bump_usage(rule)
            return rule

        rule = run_with_retry(_apply_rule, scope="discount_rule")
        LOGGER.info(
            "discount_rule_consumed",
            extra={"rule_id": rule.id, "usage_count": rule.usage_count},
        )
        return rule

    if decision.source == SOURCE_PROMO_CODE:

        def _apply_promo():
            promo = PromoCode.objects.get(code=decision.promo_code)
            if _promo_rejection_reason(promo, decision.subtotal, at):
                raise DiscountNoLongerAvailable()
            _bump_usage(promo)
            return promo

        promo = run_with_retry(_apply_promo, scope="promo_code")
        LOGGER.info(
            "promo_code_consumed",
            extra={"promo_code": promo.code, "usage_count": promo.usage_count},
        )
        return promo

    return None
