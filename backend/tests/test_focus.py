import pytest

from orders.errors import OrderValidationError
from orders.services.focus import clear_focus, focus_orders, kitchen_queue, set_focus
from orders.services.orders import create_order
from orders.services.state import cancel_order, transition

from .factories import ProductFactory, StaffFactory


def _confirmed_orders(count):
    product = ProductFactory()
    orders = []
    for _ in range(count):
        order = create_order(None, "TAKEAWAY", [{"product_id": product.id, "quantity": 1}])
        orders.append(transition(order, "CONFIRMED"))
    return orders


@pytest.mark.django_db
def test_focus_orders_jump_the_kitchen_queue():
    first, second, third = _confirmed_orders(3)
    staff = StaffFactory()

    set_focus(third, priority=2, reason="Client pressé", by=staff)
    set_focus(second, priority=1, reason="Allergie", by=staff)

    assert [o.id for o in kitchen_queue()] == [second.id, third.id, first.id]
    assert [o.id for o in focus_orders()] == [second.id, third.id]


@pytest.mark.django_db
def test_focus_does_not_change_status_and_can_be_cleared():
    (order,) = _confirmed_orders(1)

    focused = set_focus(order, reason="VIP")
    assert focused.status == "CONFIRMED"
    assert focused.priority == 3
    assert focused.focused_by == "system"

    cleared = clear_focus(focused)
    assert cleared.is_focus_order is False
    assert cleared.priority is None


@pytest.mark.django_db
def test_focus_validation():
    (order,) = _confirmed_orders(1)

    with pytest.raises(OrderValidationError):
        set_focus(order, priority=9, reason="Test")
    with pytest.raises(OrderValidationError):
        set_focus(order, reason="")

    cancelled = cancel_order(order, "Erreur de saisie")
    with pytest.raises(OrderValidationError):
        set_focus(cancelled, reason="Trop tard")


@pytest.mark.django_db
def test_pending_orders_stay_out_of_kitchen_queue():
    product = ProductFactory()
    create_order(None, "TAKEAWAY", [{"product_id": product.id, "quantity": 1}])

    assert list(kitchen_queue()) == []
