from decimal import Decimal

import pytest

from loyalty.models import FidelityPointBalance, FidelityPointsTransaction
from loyalty.services import points as points_service
from loyalty.services.points import adjust_points, current_points, redeem_points
from orders.concurrency import StaleVersionError, run_with_retry, save_versioned
from orders.errors import ConcurrentModification
from orders.models import Order
from orders.services.orders import create_order
from orders.services.payments import record_payment

from .factories import ProductFactory, UserFactory


def _order():
    product = ProductFactory(base_price="20.00")
    return create_order(None, "TAKEAWAY", [{"product_id": product.id, "quantity": 1}])


@pytest.mark.django_db
def test_stale_copy_cannot_overwrite():
    order = _order()
    first = Order.objects.get(pk=order.pk)
    second = Order.objects.get(pk=order.pk)

    first.notes = "Sans oignons"
    save_versioned(first, ["notes"])
    assert first.version == 2

    second.notes = "Bien cuit"
    with pytest.raises(StaleVersionError):
        save_versioned(second, ["notes"])

    assert Order.objects.get(pk=order.pk).notes == "Sans oignons"


@pytest.mark.django_db
def test_retry_replays_until_success():
    order = _order()
    calls = []

    def _apply():
        fresh = Order.objects.get(pk=order.pk)
        calls.append(fresh.version)
        if len(calls) == 1:
            # copie périmée au premier essai
            fresh.version -= 1
        fresh.notes = "Table du fond"
        save_versioned(fresh, ["notes"])
        return fresh

    fresh = run_with_retry(_apply, scope="order")

    assert calls == [1, 1]
    assert fresh.version == 2
    assert Order.objects.get(pk=order.pk).notes == "Table du fond"


@pytest.mark.django_db
def test_retry_exhaustion_raises_concurrent_modification():
    order = _order()
    calls = []

    def _apply():
        calls.append(1)
        stale = Order.objects.get(pk=order.pk)
        stale.version -= 1
        save_versioned(stale, ["notes"])

    with pytest.raises(ConcurrentModification) as exc:
        run_with_retry(_apply, scope="order", attempts=3)

    assert len(calls) == 3
    assert exc.value.status_code == 409


@pytest.mark.django_db
def test_payments_keep_balance_after_successive_writes():
    order = _order()
    for _ in range(4):
        record_payment(order, "5.00", "CASH", confirm=True)

    order = Order.objects.get(pk=order.pk)
    assert order.total_paid == Decimal("20.00")
    assert order.remaining_amount == Decimal("0.00")
    assert order.payments.count() == 4
    assert order.version == 5


@pytest.mark.django_db
def test_redeem_retries_on_stale_balance(monkeypatch):
    customer = UserFactory()
    adjust_points(customer, 50, "Geste commercial")
    real_get_balance = points_service.get_balance
    calls = []

    def _get_balance(who):
        balance = real_get_balance(who)
        calls.append(balance.version)
        if len(calls) == 1:
            # un autre débit est passé entre la lecture et l'écriture
            balance.version -= 1
        return balance

    monkeypatch.setattr(points_service, "get_balance", _get_balance)

    amount = redeem_points(customer, 30)

    assert calls == [2, 2]
    assert amount == Decimal("3.00")
    balance = FidelityPointBalance.objects.get(customer=customer)
    assert balance.current_points == 20
    assert balance.version == 3
    assert FidelityPointsTransaction.objects.filter(customer=customer, transaction_type="REDEEM").count() == 1


@pytest.mark.django_db
def test_redeem_gives_up_when_balance_stays_stale(monkeypatch):
    customer = UserFactory()
    adjust_points(customer, 50, "Geste commercial")
    real_get_balance = points_service.get_balance

    def _stale_balance(who):
        balance = real_get_balance(who)
        balance.version -= 1
        return balance

    monkeypatch.setattr(points_service, "get_balance", _stale_balance)

    with pytest.raises(ConcurrentModification):
        redeem_points(customer, 30)

    assert current_points(customer) == 50
    assert not FidelityPointsTransaction.objects.filter(customer=customer, transaction_type="REDEEM").exists()
