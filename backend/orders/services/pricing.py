# backend/orders/services/pricing.py
import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

from django.conf import settings

from ..models import TaxConfiguration

LOGGER = logging.getLogger(__name__)

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")

TAX_BASIS_PRE_DISCOUNT = "pre_discount"
TAX_BASIS_POST_DISCOUNT = "post_discount"


@dataclass(frozen=True)
class PricingBreakdown:
    subtotal: Decimal
    tax: Decimal
    delivery_fee: Decimal
    tip: Decimal
    discount: Decimal
    fidelity_discount: Decimal
    customer_discount: Decimal
    total: Decimal
    raw_total: Decimal

    @property
    def clamped(self):
        return self.raw_total < ZERO

    def as_dict(self):
        return {
            "subtotal": self.subtotal,
            "tax": self.tax,
            "delivery_fee": self.delivery_fee,
            "tip": self.tip,
            "discount": self.discount,
            "fidelity_points_discount": self.fidelity_discount,
            "customer_discount_amount": self.customer_discount,
            "total": self.total,
        }


def quantize_money(value) -> Decimal:
    return Decimal(value or 0).quantize(CENT, rounding=ROUND_HALF_UP)


def percentage_amount(base: Decimal, percent: Decimal) -> Decimal:
    return quantize_money(Decimal(base) * Decimal(percent) / HUNDRED)


def capped_discount(base: Decimal, discount_type: str, value: Decimal, max_amount=None) -> Decimal:
    """Montant de remise pour une base donnée.

    PERCENTAGE : base * value / 100, plafonné par ``max_amount`` si défini.
    FIXED : value, plafonné à la base.
    """
    base = quantize_money(base)
    if base <= 0 or not value or value <= 0:
        return ZERO
    if discount_type == "PERCENTAGE":
        amount = percentage_amount(base, value)
        if max_amount is not None and max_amount > 0:
            amount = min(amount, quantize_money(max_amount))
    else:
        amount = quantize_money(value)
    return min(amount, base)


def line_total(quantity, unit_price) -> Decimal:
    return quantize_money(Decimal(quantity) * Decimal(unit_price))


def compute_subtotal(items) -> Decimal:
    return quantize_money(sum((line_total(i["quantity"], i["unit_price"]) for i in items), ZERO))


def delivery_fee_for(order_type: str) -> Decimal:
    if order_type != "DELIVERY":
        return ZERO
    return quantize_money(getattr(settings, "ORDERS_DELIVERY_FEE", Decimal("5.00")))


def tax_rate_for(order_type: str) -> Decimal:
    configs = [c for c in TaxConfiguration.objects.filter(is_enabled=True) if c.applies_to(order_type)]
    if not configs:
        return Decimal(getattr(settings, "ORDERS_DEFAULT_TAX_RATE", ZERO))
    return sum((c.rate for c in configs), ZERO)


def compute(
    items,
    tax_rate,
    delivery_fee=ZERO,
    tip=ZERO,
    discount_amount=ZERO,
    fidelity_discount=ZERO,
    customer_discount=ZERO,
    tax_basis=None,
) -> PricingBreakdown:
    """items : itérable de dicts ``{"quantity", "unit_price"}`` déjà validés."""
    tax_basis = tax_basis or getattr(settings, "ORDERS_TAX_BASIS", TAX_BASIS_PRE_DISCOUNT)
    subtotal = compute_subtotal(items)
    delivery_fee = quantize_money(delivery_fee)
    tip = quantize_money(tip)
    discount_amount = quantize_money(discount_amount)
    fidelity_discount = quantize_money(fidelity_discount)
    customer_discount = quantize_money(customer_discount)
    discounts = discount_amount + fidelity_discount + customer_discount

    if tax_basis == TAX_BASIS_POST_DISCOUNT:
        taxable = max(subtotal - discounts, ZERO)
    else:
        taxable = subtotal
    tax = percentage_amount(taxable, tax_rate or ZERO)

    raw_total = subtotal + tax + delivery_fee + tip - discounts
    total = max(raw_total, ZERO)
    if raw_total < ZERO:
        LOGGER.warning(
            "pricing_total_clamped",
            extra={"raw_total": str(raw_total), "subtotal": str(subtotal), "discounts": str(discounts)},
        )

    return PricingBreakdown(
        subtotal=subtotal,
        tax=tax,
        delivery_fee=delivery_fee,
        tip=tip,
        discount=discount_amount,
        fidelity_discount=fidelity_discount,
        customer_discount=customer_discount,
        total=quantize_money(total),
        raw_total=raw_total,
    )
