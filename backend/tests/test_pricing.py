from decimal import Decimal

import pytest

from orders.models import TaxConfiguration
from orders.services.pricing import (
    capped_discount,
    compute,
    delivery_fee_for,
    quantize_money,
    tax_rate_for,
)


def _items(*pairs):
    return [{"quantity": q, "unit_price": Decimal(p)} for q, p in pairs]


def test_total_with_tax_delivery_and_promo():
    items = _items((2, "30.00"), (1, "40.00"))

    pricing = compute(
        items,
        Decimal("8"),
        delivery_fee=Decimal("5.00"),
        discount_amount=capped_discount(Decimal("100.00"), "PERCENTAGE", Decimal("10")),
    )

    assert pricing.subtotal == Decimal("100.00")
    assert pricing.tax == Decimal("8.00")
    assert pricing.discount == Decimal("10.00")
    assert pricing.total == Decimal("103.00")
    assert not pricing.clamped


def test_post_discount_tax_basis(settings):
    settings.ORDERS_TAX_BASIS = "post_discount"
    pricing = compute(
        _items((1, "100.00")),
        Decimal("8"),
        delivery_fee=Decimal("5.00"),
        discount_amount=Decimal("10.00"),
    )

    assert pricing.tax == Decimal("7.20")
    assert pricing.total == Decimal("102.20")


def test_total_is_floored_at_zero():
    pricing = compute(_items((1, "5.00")), Decimal("0"), fidelity_discount=Decimal("20.00"))

    assert pricing.total == Decimal("0.00")
    assert pricing.clamped


def test_tip_is_added_and_rounding_is_half_up():
    pricing = compute(_items((3, "3.335")), Decimal("5.5"), tip=Decimal("2"))

    assert pricing.subtotal == Decimal("10.01")
    assert pricing.tax == Decimal("0.55")
    assert pricing.total == Decimal("12.56")
    assert quantize_money("0.125") == Decimal("0.13")


def test_capped_discount_rules():
    assert capped_discount(Decimal("200.00"), "PERCENTAGE", Decimal("20"), Decimal("15.00")) == Decimal("15.00")
    assert capped_discount(Decimal("8.00"), "FIXED", Decimal("10.00")) == Decimal("8.00")
    assert capped_discount(Decimal("0"), "FIXED", Decimal("10.00")) == Decimal("0.00")


def test_delivery_fee_only_for_delivery(settings):
    settings.ORDERS_DELIVERY_FEE = Decimal("4.50")
    assert delivery_fee_for("DELIVERY") == Decimal("4.50")
    assert delivery_fee_for("DINE_IN") == Decimal("0.00")


@pytest.mark.django_db
def test_tax_rate_sums_enabled_configurations(settings):
    settings.ORDERS_DEFAULT_TAX_RATE = Decimal("20")
    assert tax_rate_for("TAKEAWAY") == Decimal("20")

    TaxConfiguration.objects.create(name="TVA", rate=Decimal("10.00"))
    TaxConfiguration.objects.create(name="Taxe locale", rate=Decimal("1.50"), applies_to_takeaway=False)
    TaxConfiguration.objects.create(name="Ancienne", rate=Decimal("5.00"), is_enabled=False)

    assert tax_rate_for("DINE_IN") == Decimal("11.50")
    assert tax_rate_for("TAKEAWAY") == Decimal("10.00")
