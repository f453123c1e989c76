import pytest
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from .factories import ProductFactory, StaffFactory, UserFactory


def _auth_client(user):
    client = APIClient()
    token = RefreshToken.for_user(user).access_token
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")
    return client


@pytest.mark.django_db
def test_staff_manages_products_and_variations():
    client = _auth_client(StaffFactory())

    res = client.post(
        "/api/catalog/products/",
        {"name": "Burger", "category": "MAIN", "base_price": "12.00"},
        format="json",
    )
    assert res.status_code == 201
    product_id = res.data["id"]

    res = client.post(
        f"/api/catalog/products/{product_id}/variations/",
        {"name": "XL", "price_modifier": "3.00"},
        format="json",
    )
    assert res.status_code == 201

    res = client.post(
        f"/api/catalog/products/{product_id}/variations/",
        {"name": "XL", "price_modifier": "4.00"},
        format="json",
    )
    assert res.status_code == 400

    res = client.post(
        f"/api/catalog/products/{product_id}/variations/",
        {"name": "Mini", "price_modifier": "-20.00"},
        format="json",
    )
    assert res.status_code == 400

    res = client.get(f"/api/catalog/products/{product_id}/")
    assert [v["name"] for v in res.data["variations"]] == ["XL"]


@pytest.mark.django_db
def test_customers_only_see_active_products():
    ProductFactory(name="Salade")
    hidden = ProductFactory(name="Ancien menu", is_active=False)
    client = _auth_client(UserFactory())

    res = client.get("/api/catalog/products/")
    assert [p["name"] for p in res.data] == ["Salade"]
    assert client.get(f"/api/catalog/products/{hidden.id}/").status_code == 404

    res = client.post("/api/catalog/products/", {"name": "Pirate", "base_price": "1.00"}, format="json")
    assert res.status_code == 403


@pytest.mark.django_db
def test_negative_price_rejected():
    res = _auth_client(StaffFactory()).post(
        "/api/catalog/products/", {"name": "Erreur", "base_price": "-1.00"}, format="json"
    )
    assert res.status_code == 400
