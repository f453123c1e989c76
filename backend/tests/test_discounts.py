from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone

from loyalty.errors import InvalidPromoCode
from loyalty.models import PromoCode
from loyalty.services.discounts import (
    SOURCE_CUSTOMER_RULE,
    SOURCE_NONE,
    SOURCE_PROMO_CODE,
    consume_discount,
    resolve_discount,
)
from orders.services.orders import create_order, quote_order

from .factories import CustomerDiscountRuleFactory, ProductFactory, PromoCodeFactory, UserFactory


@pytest.mark.django_db
def test_customer_rule_wins_over_promo_code():
    customer = UserFactory()
    rule = CustomerDiscountRuleFactory(customer=customer, value="5.00")
    PromoCodeFactory(code="BIENVENUE", value="20.00")

    decision = resolve_discount(customer, Decimal("100.00"), "bienvenue")

    assert decision.source == SOURCE_CUSTOMER_RULE
    assert decision.rule_id == rule.id
    assert decision.amount == Decimal("5.00")


@pytest.mark.django_db
def test_best_customer_rule_is_selected():
    customer = UserFactory()
    CustomerDiscountRuleFactory(customer=customer, discount_type="FIXED", value="4.00")
    best = CustomerDiscountRuleFactory(customer=customer, value="10.00")

    decision = resolve_discount(customer, Decimal("60.00"))

    assert decision.rule_id == best.id
    assert decision.amount == Decimal("6.00")


@pytest.mark.django_db
def test_expired_or_exhausted_rules_fall_back_to_promo():
    customer = UserFactory()
    CustomerDiscountRuleFactory(customer=customer, valid_until=timezone.now() - timedelta(days=1))
    CustomerDiscountRuleFactory(customer=customer, max_usage_count=2, usage_count=2)
    CustomerDiscountRuleFactory(customer=customer, min_order_amount="80.00")
    PromoCodeFactory(code="ETE", discount_type="FIXED", value="3.00")

    decision = resolve_discount(customer, Decimal("50.00"), "ete")

    assert decision.source == SOURCE_PROMO_CODE
    assert decision.promo_code == "ETE"
    assert decision.amount == Decimal("3.00")


@pytest.mark.django_db
def test_no_discount_without_rule_or_code():
    decision = resolve_discount(UserFactory(), Decimal("50.00"))
    assert decision.source == SOURCE_NONE
    assert decision.amount == Decimal("0.00")
    assert not decision.applies


@pytest.mark.django_db
@pytest.mark.parametrize(
    "promo_kwargs, reason",
    [
        ({"is_active": False}, "inactive"),
        ({"valid_until": timezone.now() - timedelta(hours=1)}, "expired"),
        ({"max_usage_count": 1, "usage_count": 1}, "exhausted"),
        ({"min_order_amount": "100.00"}, "below_minimum"),
    ],
)
def test_invalid_promo_code_reason(promo_kwargs, reason):
    PromoCodeFactory(code="NOEL", **promo_kwargs)

    with pytest.raises(InvalidPromoCode) as exc:
        resolve_discount(None, Decimal("50.00"), "NOEL")

    assert exc.value.reason == reason


@pytest.mark.django_db
def test_unknown_promo_code():
    with pytest.raises(InvalidPromoCode) as exc:
        resolve_discount(None, Decimal("50.00"), "INCONNU")
    assert exc.value.reason == "unknown"


@pytest.mark.django_db
def test_preview_does_not_consume_usage():
    customer = UserFactory()
    product = ProductFactory(base_price="25.00")
    promo = PromoCodeFactory(code="MIDI", max_usage_count=5)

    quote = quote_order(customer, "TAKEAWAY", [{"product_id": product.id, "quantity": 2}], promo_code="MIDI")

    assert quote["discount"] == "5.00"
    assert quote["discount_source"] == SOURCE_PROMO_CODE
    promo.refresh_from_db()
    assert promo.usage_count == 0


@pytest.mark.django_db
def test_order_placement_consumes_rule_once_and_deactivates_at_cap():
    customer = UserFactory()
    product = ProductFactory(base_price="20.00")
    rule = CustomerDiscountRuleFactory(customer=customer, max_usage_count=1)

    order = create_order(customer, "TAKEAWAY", [{"product_id": product.id, "quantity": 1}])

    assert order.customer_discount_amount == Decimal("2.00")
    assert order.discount == Decimal("0.00")
    assert order.customer_discount_rule_id == rule.id
    rule.refresh_from_db()
    assert rule.usage_count == 1
    assert rule.is_active is False
    assert rule.version == 2


@pytest.mark.django_db
def test_promo_code_consumption_increments_usage():
    promo = PromoCodeFactory(code="SOIR")
    decision = resolve_discount(None, Decimal("40.00"), "soir")

    consume_discount(decision)

    promo.refresh_from_db()
    assert promo.usage_count == 1
    assert PromoCode.objects.get(code="SOIR").is_active is True


@pytest.mark.django_db
def test_invalid_promo_can_be_ignored(settings):
    settings.ORDERS_REJECT_INVALID_PROMO = False
    product = ProductFactory(base_price="10.00")

    order = create_order(None, "TAKEAWAY", [{"product_id": product.id, "quantity": 1}], promo_code="FAUX")

    assert order.discount == Decimal("0.00")
    assert order.promo_code == ""
    assert order.total == Decimal("10.00")
