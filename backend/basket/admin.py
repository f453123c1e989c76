from django.contrib import admin

from .models import Basket, BasketItem


class BasketItemInline(admin.TabularInline):
    model = BasketItem
    extra = 0
    fk_name = "basket"


@admin.register(Basket)
class BasketAdmin(admin.ModelAdmin):
    list_display = ["customer", "created_at", "updated_at"]
    search_fields = ["customer__username", "customer__email"]
    inlines = [BasketItemInline]
