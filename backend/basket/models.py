from decimal import Decimal

from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils import timezone

from catalog.models import Product, ProductVariation


class Basket(models.Model):
    customer = models.OneToOneField(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="basket"
    )
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Panier {self.customer_id}"


class BasketItem(models.Model):
    basket = models.ForeignKey(Basket, on_delete=models.CASCADE, related_name="items")
    parent = models.ForeignKey(
        "self", on_delete=models.CASCADE, null=True, blank=True, related_name="children"
    )
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name="basket_items")
    variation = models.ForeignKey(
        ProductVariation, on_delete=models.SET_NULL, null=True, blank=True, related_name="basket_items"
    )
    quantity = models.PositiveIntegerField(default=1)
    # prix figé à l'ajout, hors personnalisations
    unit_price = models.DecimalField(max_digits=12, decimal_places=2)
    customization_price = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    customizations = models.JSONField(default=list, blank=True)
    special_instructions = models.CharField(max_length=255, blank=True, default="")

    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["id"]
        constraints = [
            models.CheckConstraint(condition=Q(quantity__gte=1), name="basket_item_quantity_gte_1"),
        ]

    def __str__(self):
        return f"{self.quantity} x {self.product_id}"

    @property
    def effective_unit_price(self):
        return (self.unit_price or Decimal("0")) + (self.customization_price or Decimal("0"))

    @property
    def line_total(self):
        return self.effective_unit_price * self.quantity
