import pytest
from rest_framework.test import APIClient

from orders.services.orders import create_order

from .factories import ProductFactory


@pytest.mark.django_db
def test_metrics_endpoint():
    product = ProductFactory()
    create_order(None, "DINE_IN", [{"product_id": product.id, "quantity": 1}])

    client = APIClient()
    res = client.get("/metrics/")

    assert res.status_code == 200
    content_type = res.headers.get("Content-Type", "")
    assert "text/plain" in content_type
    content = res.content.decode("utf-8", errors="ignore")
    assert 'restaurant_orders_created_total{order_type="DINE_IN"}' in content
    assert "restaurant_payments_total" in content
    assert "restaurant_concurrency_conflicts_total" in content
    assert "restaurant_invariant_breaches_total" in content


def test_health_endpoint():
    res = APIClient().get("/health/")
    assert res.status_code == 200
    assert res.json() == {"status": "ok"}
