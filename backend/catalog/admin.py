from django.contrib import admin

from .models import Product, ProductVariation


class ProductVariationInline(admin.TabularInline):
    model = ProductVariation
    extra = 0


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ["name", "category", "base_price", "is_active", "is_available", "updated_at"]
    list_filter = ["category", "is_active", "is_available"]
    search_fields = ["name"]
    inlines = [ProductVariationInline]
