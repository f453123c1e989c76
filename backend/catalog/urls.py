from django.urls import path

from . import views

urlpatterns = [
    path("products/", views.catalog_products, name="catalog_products"),
    path("products/<int:product_id>/", views.catalog_product_detail, name="catalog_product_detail"),
    path(
        "products/<int:product_id>/variations/",
        views.catalog_product_variations,
        name="catalog_product_variations",
    ),
]
