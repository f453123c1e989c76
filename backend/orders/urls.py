from django.urls import path

from . import views

urlpatterns = [
    path("", views.orders_list_create, name="orders_list_create"),
    path("quote/", views.order_quote, name="order_quote"),
    path("kitchen/queue/", views.orders_kitchen_queue, name="orders_kitchen_queue"),
    path("focus/", views.orders_focus_list, name="orders_focus_list"),
    path("tax-configurations/", views.tax_configurations, name="tax_configurations"),
    path(
        "tax-configurations/<int:config_id>/",
        views.tax_configuration_detail,
        name="tax_configuration_detail",
    ),
    path("<int:order_id>/", views.order_detail, name="order_detail"),
    path("<int:order_id>/status/", views.order_status, name="order_status"),
    path("<int:order_id>/cancel/", views.order_cancel, name="order_cancel"),
    path("<int:order_id>/delay/", views.order_delay, name="order_delay"),
    path("<int:order_id>/approve-delay/", views.order_approve_delay, name="order_approve_delay"),
    path("<int:order_id>/reject-delay/", views.order_reject_delay, name="order_reject_delay"),
    path("<int:order_id>/focus/", views.order_focus, name="order_focus"),
    path("<int:order_id>/payments/", views.order_payments, name="order_payments"),
    path(
        "<int:order_id>/payments/<int:payment_id>/confirm/",
        views.payment_confirm,
        name="order_payment_confirm",
    ),
    path(
        "<int:order_id>/payments/<int:payment_id>/fail/",
        views.payment_fail,
        name="order_payment_fail",
    ),
    path(
        "<int:order_id>/payments/<int:payment_id>/refund/",
        views.payment_refund,
        name="order_payment_refund",
    ),
]
