from django.urls import path

from . import views

urlpatterns = [
    path("", views.basket_detail, name="basket_detail"),
    path("items/", views.basket_items, name="basket_items"),
    path("items/<int:item_id>/", views.basket_item_detail, name="basket_item_detail"),
    path("summary/", views.basket_summary, name="basket_summary"),
    path("checkout/", views.basket_checkout, name="basket_checkout"),
]
