import pytest

from orders.errors import InvalidTransition
from orders.events import order_event
from orders.services.orders import create_order
from orders.services.state import transition

from .factories import ProductFactory, UserFactory


@pytest.fixture
def received():
    payloads = []

    def _receiver(sender, payload, **kwargs):
        payloads.append(payload)

    order_event.connect(_receiver, weak=False, dispatch_uid="test_order_event")
    yield payloads
    order_event.disconnect(dispatch_uid="test_order_event")


@pytest.mark.django_db
def test_event_sent_after_commit_for_creation_and_transitions(received, django_capture_on_commit_callbacks):
    customer = UserFactory(email="ana@example.com")
    product = ProductFactory()

    with django_capture_on_commit_callbacks(execute=True):
        order = create_order(
            customer,
            "TAKEAWAY",
            [{"product_id": product.id, "quantity": 1}],
            customer_phone="0600000000",
        )
    with django_capture_on_commit_callbacks(execute=True):
        transition(order, "CONFIRMED")

    assert [p["new_status"] for p in received] == ["PENDING", "CONFIRMED"]
    assert received[0]["order_number"] == order.order_number
    assert received[0]["customer_contact"]["email"] == "ana@example.com"
    assert received[0]["customer_contact"]["phone"] == "0600000000"


@pytest.mark.django_db
def test_no_event_for_rejected_transition(received, django_capture_on_commit_callbacks):
    product = ProductFactory()
    order = create_order(None, "TAKEAWAY", [{"product_id": product.id, "quantity": 1}])

    with django_capture_on_commit_callbacks(execute=True) as callbacks:
        with pytest.raises(InvalidTransition):
            transition(order, "READY")

    assert callbacks == []
    assert received == []
