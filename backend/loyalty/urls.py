from django.urls import path

from . import views

urlpatterns = [
    path("balance/", views.loyalty_balance, name="loyalty_balance"),
    path("history/", views.loyalty_history, name="loyalty_history"),
    path("calculate-points/", views.loyalty_calculate_points, name="loyalty_calculate_points"),
    path("calculate-discount/", views.loyalty_calculate_discount, name="loyalty_calculate_discount"),
    path("admin/rules/", views.admin_earning_rules, name="loyalty_admin_rules"),
    path("admin/rules/<int:rule_id>/", views.admin_earning_rule_detail, name="loyalty_admin_rule_detail"),
    path("admin/discounts/", views.admin_discount_rules, name="loyalty_admin_discounts"),
    path(
        "admin/discounts/<int:rule_id>/",
        views.admin_discount_rule_detail,
        name="loyalty_admin_discount_detail",
    ),
    path("admin/promo-codes/", views.admin_promo_codes, name="loyalty_admin_promo_codes"),
    path(
        "admin/promo-codes/<int:promo_id>/",
        views.admin_promo_code_detail,
        name="loyalty_admin_promo_code_detail",
    ),
    path("admin/adjust/", views.admin_adjust_points, name="loyalty_admin_adjust"),
    path("admin/analytics/", views.admin_analytics, name="loyalty_admin_analytics"),
]
