from django.contrib import admin

from .models import Order, OrderItem, OrderPayment, OrderStatusHistory, TaxConfiguration


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    readonly_fields = ["product_name", "variation_name", "quantity", "unit_price", "item_total", "parent"]


class OrderPaymentInline(admin.TabularInline):
    model = OrderPayment
    extra = 0
    readonly_fields = ["amount", "method", "status", "refunded_amount", "payment_date"]


class OrderStatusHistoryInline(admin.TabularInline):
    model = OrderStatusHistory
    extra = 0
    can_delete = False
    readonly_fields = ["from_status", "to_status", "changed_by", "changed_at", "notes"]

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = [
        "order_number",
        "customer_name",
        "order_type",
        "status",
        "payment_status",
        "total",
        "remaining_amount",
        "is_focus_order",
        "order_date",
    ]
    list_filter = ["status", "payment_status", "order_type", "is_focus_order", "is_deleted"]
    search_fields = ["order_number", "customer_name", "customer_email", "customer_phone"]
    readonly_fields = [
        "order_number",
        "subtotal",
        "tax",
        "delivery_fee",
        "discount",
        "fidelity_points_discount",
        "customer_discount_amount",
        "total",
        "total_paid",
        "remaining_amount",
        "overpaid_amount",
        "status",
        "payment_status",
        "version",
    ]
    inlines = [OrderItemInline, OrderPaymentInline, OrderStatusHistoryInline]


@admin.register(TaxConfiguration)
class TaxConfigurationAdmin(admin.ModelAdmin):
    list_display = ["name", "rate", "is_enabled", "applies_to_dine_in", "applies_to_takeaway", "applies_to_delivery"]
    list_filter = ["is_enabled"]
