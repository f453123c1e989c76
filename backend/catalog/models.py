from django.db import models
from django.utils import timezone


class Product(models.Model):
    CATEGORY_CHOICES = [
        ("STARTER", "Entrée"),
        ("MAIN", "Plat"),
        ("DESSERT", "Dessert"),
        ("DRINK", "Boisson"),
        ("MENU", "Menu"),
        ("SIDE", "Accompagnement"),
    ]

    name = models.CharField(max_length=140)
    description = models.TextField(blank=True, default="")
    category = models.CharField(max_length=12, choices=CATEGORY_CHOICES, default="MAIN")
    base_price = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    is_active = models.BooleanField(default=True)
    is_available = models.BooleanField(default=True)

    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=["is_active", "category"]),
            models.Index(fields=["name"]),
        ]

    def __str__(self):
        return self.name


class ProductVariation(models.Model):
    product = models.ForeignKey(Product, on_delete=models.CASCADE, related_name="variations")
    name = models.CharField(max_length=80)
    price_modifier = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    is_active = models.BooleanField(default=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=["product", "name"], name="uniq_product_variation_name")
        ]

    def __str__(self):
        return f"{self.product.name} ({self.name})"

    @property
    def unit_price(self):
        return self.product.base_price + self.price_modifier
