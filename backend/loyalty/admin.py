from django.contrib import admin

from .models import (
    CustomerDiscountRule,
    FidelityPointBalance,
    FidelityPointsTransaction,
    PointEarningRule,
    PromoCode,
)


@admin.register(PointEarningRule)
class PointEarningRuleAdmin(admin.ModelAdmin):
    list_display = ["name", "min_order_amount", "max_order_amount", "points_awarded", "priority", "is_active"]
    list_filter = ["is_active"]


@admin.register(FidelityPointBalance)
class FidelityPointBalanceAdmin(admin.ModelAdmin):
    list_display = ["customer", "current_points", "total_earned_points", "total_redeemed_points", "updated_at"]
    search_fields = ["customer__username", "customer__email"]
    readonly_fields = ["current_points", "total_earned_points", "total_redeemed_points", "version"]


@admin.register(FidelityPointsTransaction)
class FidelityPointsTransactionAdmin(admin.ModelAdmin):
    list_display = ["customer", "transaction_type", "points", "order", "created_by", "created_at"]
    list_filter = ["transaction_type"]
    search_fields = ["customer__username", "description"]

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(CustomerDiscountRule)
class CustomerDiscountRuleAdmin(admin.ModelAdmin):
    list_display = ["name", "customer", "discount_type", "value", "usage_count", "max_usage_count", "is_active"]
    list_filter = ["discount_type", "is_active"]
    search_fields = ["name", "customer__username"]
    readonly_fields = ["usage_count", "version"]


@admin.register(PromoCode)
class PromoCodeAdmin(admin.ModelAdmin):
    list_display = ["code", "discount_type", "value", "usage_count", "max_usage_count", "is_active", "valid_until"]
    list_filter = ["discount_type", "is_active"]
    search_fields = ["code"]
    readonly_fields = ["usage_count", "version"]
