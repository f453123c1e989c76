from decimal import Decimal

import pytest

from orders.errors import (
    OrderNotPayable,
    OrderValidationError,
    OverpaymentRejected,
    PaymentStateError,
    RefundExceedsPayment,
)
from orders.models import Order
from orders.services.orders import create_order
from orders.services.payments import (
    confirm_payment,
    fail_payment,
    record_payment,
    refund_payment,
)
from orders.services.state import cancel_order, derive_payment_status

from .factories import ProductFactory


def _order(total="100.00"):
    product = ProductFactory(base_price=total)
    return create_order(None, "TAKEAWAY", [{"product_id": product.id, "quantity": 1}])


def _reload(order):
    return Order.objects.get(pk=order.pk)


def _assert_balanced(order):
    assert order.total_paid + order.remaining_amount == order.total
    assert order.remaining_amount >= 0


@pytest.mark.django_db
def test_partial_then_overpayment_is_clamped_and_flagged():
    order = _order()

    record_payment(order, "60.00", "CARD", confirm=True)
    order = _reload(order)
    assert order.payment_status == "PARTIALLY_PAID"
    assert order.remaining_amount == Decimal("40.00")
    _assert_balanced(order)

    record_payment(order, "50.00", "CASH", confirm=True)
    order = _reload(order)
    assert order.total_paid == Decimal("100.00")
    assert order.remaining_amount == Decimal("0.00")
    assert order.overpaid_amount == Decimal("10.00")
    assert order.payment_status == "PAID"
    _assert_balanced(order)


@pytest.mark.django_db
def test_pending_payment_does_not_count_until_confirmed():
    order = _order("30.00")

    payment = record_payment(order, "30.00", "CARD")
    assert payment.status == "PENDING"
    assert _reload(order).total_paid == Decimal("0.00")

    confirm_payment(payment)
    order = _reload(order)
    assert order.payment_status == "PAID"
    _assert_balanced(order)

    with pytest.raises(PaymentStateError):
        confirm_payment(payment)


@pytest.mark.django_db
def test_failed_payment_keeps_order_unpaid():
    order = _order("30.00")
    payment = record_payment(order, "30.00", "CARD")

    payment = fail_payment(payment, "Carte refusée")

    assert payment.status == "FAILED"
    assert payment.failure_reason == "Carte refusée"
    assert _reload(order).payment_status == "UNPAID"


@pytest.mark.django_db
def test_partial_and_full_refund():
    order = _order("40.00")
    payment = record_payment(order, "40.00", "CARD", confirm=True)

    payment = refund_payment(payment, "15.00", "Plat froid")
    order = _reload(order)
    assert payment.refunded_amount == Decimal("15.00")
    assert payment.status == "COMPLETED"
    assert order.payment_status == "PARTIALLY_REFUNDED"
    assert order.total_paid == Decimal("25.00")
    _assert_balanced(order)

    with pytest.raises(RefundExceedsPayment):
        refund_payment(payment, "30.00", "Erreur de caisse")

    payment = refund_payment(payment, "25.00", "Commande annulée")
    order = _reload(order)
    assert payment.status == "REFUNDED"
    assert order.payment_status == "REFUNDED"
    assert order.total_paid == Decimal("0.00")
    _assert_balanced(order)


@pytest.mark.django_db
def test_repayment_after_refund_settles_order():
    order = _order("100.00")
    payment = record_payment(order, "100.00", "CARD", confirm=True)
    refund_payment(payment, "20.00", "Dessert oublié")
    assert _reload(order).payment_status == "PARTIALLY_REFUNDED"

    record_payment(order, "20.00", "CASH", confirm=True)

    order = _reload(order)
    assert order.remaining_amount == Decimal("0.00")
    assert order.total_paid == Decimal("100.00")
    assert order.payment_status == "PAID"
    _assert_balanced(order)


@pytest.mark.django_db
def test_pending_payment_can_be_confirmed_after_full_refund_of_another():
    order = _order("100.00")
    first = record_payment(order, "50.00", "CARD", confirm=True)
    pending = record_payment(order, "50.00", "CARD")

    refund_payment(first, "50.00", "Double débit")
    order = _reload(order)
    assert order.payment_status == "PARTIALLY_REFUNDED"
    assert order.total_paid == Decimal("0.00")

    confirm_payment(pending)

    order = _reload(order)
    assert order.total_paid == Decimal("50.00")
    assert order.remaining_amount == Decimal("50.00")
    assert order.payment_status == "PARTIALLY_REFUNDED"
    _assert_balanced(order)


@pytest.mark.django_db
def test_order_refunded_once_last_pending_payment_fails():
    order = _order("100.00")
    first = record_payment(order, "50.00", "CARD", confirm=True)
    pending = record_payment(order, "50.00", "CARD")
    refund_payment(first, "50.00", "Double débit")

    fail_payment(pending, "Carte refusée")

    assert _reload(order).payment_status == "REFUNDED"


@pytest.mark.parametrize(
    "net_paid, refunded, has_pending, expected",
    [
        ("0.00", "0.00", False, "UNPAID"),
        ("40.00", "0.00", False, "PARTIALLY_PAID"),
        ("100.00", "0.00", False, "PAID"),
        ("100.00", "20.00", False, "PAID"),
        ("80.00", "20.00", False, "PARTIALLY_REFUNDED"),
        ("0.00", "50.00", True, "PARTIALLY_REFUNDED"),
        ("0.00", "50.00", False, "REFUNDED"),
    ],
)
def test_derive_payment_status(net_paid, refunded, has_pending, expected):
    status = derive_payment_status(Decimal(net_paid), Decimal("100.00"), Decimal(refunded), has_pending=has_pending)
    assert status == expected


@pytest.mark.django_db
def test_refund_needs_reason_and_completed_payment():
    order = _order("20.00")
    pending = record_payment(order, "20.00", "CARD")

    with pytest.raises(PaymentStateError):
        refund_payment(pending, "5.00", "Erreur de caisse")
    with pytest.raises(OrderValidationError):
        refund_payment(pending, "5.00", "ko")


@pytest.mark.django_db
def test_reject_policy_refuses_overpayment(settings):
    settings.ORDERS_OVERPAYMENT_POLICY = "orders.services.payments.RejectOverpaymentPolicy"
    order = _order("50.00")
    record_payment(order, "30.00", "CARD", confirm=True)

    with pytest.raises(OverpaymentRejected):
        record_payment(order, "30.00", "CASH", confirm=True)

    order = _reload(order)
    assert order.total_paid == Decimal("30.00")
    assert order.payments.count() == 1


@pytest.mark.django_db
def test_cancelled_order_is_not_payable():
    order = cancel_order(_order("20.00"), "Rupture de stock")

    with pytest.raises(OrderNotPayable):
        record_payment(order, "20.00", "CARD", confirm=True)


@pytest.mark.django_db
def test_invalid_amount_or_method():
    order = _order("20.00")
    with pytest.raises(OrderValidationError):
        record_payment(order, "0", "CARD")
    with pytest.raises(OrderValidationError):
        record_payment(order, "5.00", "CHEQUE")
