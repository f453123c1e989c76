from decimal import Decimal

import pytest
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from loyalty.errors import InsufficientPoints, PointsAlreadyAwarded
from loyalty.models import FidelityPointsTransaction
from loyalty.services.points import (
    adjust_points,
    award_points,
    calculate_points,
    current_points,
    find_earning_rule,
    find_overlapping_rules,
    get_balance,
    redeem_points,
)
from orders.services.orders import create_order
from orders.services.state import transition

from .factories import PointEarningRuleFactory, ProductFactory, StaffFactory, UserFactory


def _auth_client(user):
    client = APIClient()
    token = RefreshToken.for_user(user).access_token
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")
    return client


def _tiers():
    bronze = PointEarningRuleFactory(name="Bronze", min_order_amount="0.00", max_order_amount="29.99", points_awarded=5)
    silver = PointEarningRuleFactory(name="Silver", min_order_amount="30.00", max_order_amount="59.99", points_awarded=15)
    PointEarningRuleFactory(name="Promo", min_order_amount="40.00", max_order_amount="80.00", points_awarded=50, priority=5)
    return bronze, silver


@pytest.mark.django_db
def test_earning_rule_by_priority_on_overlap():
    _, silver = _tiers()

    assert find_earning_rule(Decimal("45.00")) == silver
    assert calculate_points(Decimal("45.00")) == 15
    assert calculate_points(Decimal("10.00")) == 5
    assert [r.name for r in find_overlapping_rules(silver)] == ["Promo"]


@pytest.mark.django_db
def test_points_awarded_on_confirmation_only_once():
    _tiers()
    customer = UserFactory()
    product = ProductFactory(base_price="45.00")
    order = create_order(customer, "TAKEAWAY", [{"product_id": product.id, "quantity": 1}])

    assert current_points(customer) == 0
    transition(order, "CONFIRMED", changed_by="caisse")
    assert current_points(customer) == 15

    with pytest.raises(PointsAlreadyAwarded):
        award_points(customer, order)

    assert FidelityPointsTransaction.objects.filter(order=order, transaction_type="EARN").count() == 1
    assert current_points(customer) == 15


@pytest.mark.django_db
def test_redeem_points_debits_balance_and_returns_discount():
    customer = UserFactory()
    adjust_points(customer, 50, "Reprise de solde", by="admin")

    discount = redeem_points(customer, 30)

    assert discount == Decimal("3.00")
    balance = get_balance(customer)
    assert balance.current_points == 20
    assert balance.total_redeemed_points == 30
    redeem_rows = FidelityPointsTransaction.objects.filter(customer=customer, transaction_type="REDEEM")
    assert [row.points for row in redeem_rows] == [-30]


@pytest.mark.django_db
def test_redeem_more_than_balance_leaves_balance_unchanged():
    customer = UserFactory()
    adjust_points(customer, 10, "Geste commercial", by="admin")

    with pytest.raises(InsufficientPoints) as exc:
        redeem_points(customer, 25)

    assert exc.value.available == 10
    assert current_points(customer) == 10
    assert not FidelityPointsTransaction.objects.filter(customer=customer, transaction_type="REDEEM").exists()


@pytest.mark.django_db
def test_order_with_points_records_redemption():
    customer = UserFactory()
    adjust_points(customer, 50, "Reprise de solde", by="admin")
    product = ProductFactory(base_price="20.00")

    order = create_order(customer, "TAKEAWAY", [{"product_id": product.id, "quantity": 1}], points_to_redeem=30)

    assert order.fidelity_points_discount == Decimal("3.00")
    assert order.total == Decimal("17.00")
    assert order.fidelity_points_redeemed == 30
    assert current_points(customer) == 20


@pytest.mark.django_db
def test_negative_adjustment_cannot_go_below_zero():
    customer = UserFactory()
    adjust_points(customer, 5, "Ouverture", by="admin")

    with pytest.raises(InsufficientPoints):
        adjust_points(customer, -6, "Correction", by="admin")

    entry, balance = adjust_points(customer, -5, "Correction", by="admin")
    assert entry.points == -5
    assert balance.current_points == 0


@pytest.mark.django_db
def test_ledger_rows_are_append_only():
    customer = UserFactory()
    entry, _ = adjust_points(customer, 5, "Ouverture", by="admin")

    entry.points = 500
    with pytest.raises(ValueError):
        entry.save()


@pytest.mark.django_db
def test_loyalty_api_balance_and_calculators():
    PointEarningRuleFactory(name="Base", points_awarded=7)
    customer = UserFactory()
    adjust_points(customer, 40, "Ouverture", by="admin")
    client = _auth_client(customer)

    res = client.get("/api/loyalty/balance/")
    assert res.status_code == 200
    assert res.data["current_points"] == 40
    assert res.data["points_value"] == "4.00"

    res = client.get("/api/loyalty/calculate-points/", {"amount": "12.50"})
    assert res.data["points"] == 7

    res = client.get("/api/loyalty/calculate-discount/", {"points": "50"})
    assert res.data["discount"] == "5.00"
    assert res.data["can_redeem"] is False

    res = client.get("/api/loyalty/history/")
    assert len(res.data) == 1


@pytest.mark.django_db
def test_loyalty_admin_endpoints_require_staff():
    customer = UserFactory()
    staff = StaffFactory()

    res = _auth_client(customer).get("/api/loyalty/admin/analytics/")
    assert res.status_code == 403

    client = _auth_client(staff)
    res = client.post(
        "/api/loyalty/admin/rules/",
        {"name": "Gold", "min_order_amount": "60.00", "points_awarded": 30, "priority": 1},
        format="json",
    )
    assert res.status_code == 201
    assert res.data["overlapping_rules"] == []

    res = client.post(
        "/api/loyalty/admin/adjust/",
        {"customer_id": customer.id, "points": 12, "reason": "Réclamation"},
        format="json",
    )
    assert res.status_code == 201
    assert res.data["balance"]["current_points"] == 12

    res = client.post(
        "/api/loyalty/admin/adjust/",
        {"customer_id": customer.id, "points": -20, "reason": "Erreur"},
        format="json",
    )
    assert res.status_code == 400
    assert res.data["code"] == "insufficient_points"

    res = client.get("/api/loyalty/admin/analytics/")
    assert res.status_code == 200
    assert res.data["points_outstanding"] == 12
