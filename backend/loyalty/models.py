from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils import timezone

DISCOUNT_TYPE_CHOICES = [
    ("PERCENTAGE", "Pourcentage"),
    ("FIXED", "Montant fixe"),
]


class PointEarningRule(models.Model):
    name = models.CharField(max_length=80)
    min_order_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    max_order_amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    points_awarded = models.PositiveIntegerField()
    priority = models.PositiveSmallIntegerField(default=1)
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["priority", "min_order_amount", "id"]
        indexes = [
            models.Index(fields=["is_active", "priority"]),
        ]

    def __str__(self):
        upper = self.max_order_amount if self.max_order_amount is not None else "∞"
        return f"{self.name} [{self.min_order_amount}, {upper}] = {self.points_awarded} pts"

    def contains(self, amount):
        if amount < self.min_order_amount:
            return False
        return self.max_order_amount is None or amount <= self.max_order_amount


class FidelityPointBalance(models.Model):
    customer = models.OneToOneField(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="fidelity_balance"
    )
    current_points = models.IntegerField(default=0)
    total_earned_points = models.IntegerField(default=0)
    total_redeemed_points = models.IntegerField(default=0)

    version = models.PositiveIntegerField(default=1)
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.CheckConstraint(
                condition=Q(current_points__gte=0), name="fidelity_balance_non_negative"
            ),
        ]

    def __str__(self):
        return f"{self.customer_id}: {self.current_points} pts"


class FidelityPointsTransaction(models.Model):
    TYPE_CHOICES = [
        ("EARN", "Gagnés"),
        ("REDEEM", "Utilisés"),
        ("EXPIRE", "Expirés"),
        ("ADJUST", "Ajustement"),
    ]

    customer = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="fidelity_transactions"
    )
    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="fidelity_transactions",
    )
    transaction_type = models.CharField(max_length=8, choices=TYPE_CHOICES)
    points = models.IntegerField()
    order_amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    description = models.CharField(max_length=255, blank=True, default="")
    expires_at = models.DateTimeField(null=True, blank=True)
    created_by = models.CharField(max_length=150, blank=True, default="system")
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["customer", "created_at"]),
            models.Index(fields=["order", "transaction_type"]),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["order"],
                condition=Q(transaction_type="EARN"),
                name="uniq_fidelity_earn_per_order",
            ),
        ]

    def __str__(self):
        return f"{self.transaction_type} {self.points:+d} ({self.customer_id})"

    def save(self, *args, **kwargs):
        if self.pk is not None:
            raise ValueError("Le registre de points est en ajout seul.")
        super().save(*args, **kwargs)


class CustomerDiscountRule(models.Model):
    customer = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="discount_rules"
    )
    name = models.CharField(max_length=120)
    discount_type = models.CharField(max_length=10, choices=DISCOUNT_TYPE_CHOICES, default="PERCENTAGE")
    value = models.DecimalField(max_digits=12, decimal_places=2)
    min_order_amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    max_order_amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    max_discount_amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    max_usage_count = models.PositiveIntegerField(null=True, blank=True)
    usage_count = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True)
    valid_from = models.DateTimeField(null=True, blank=True)
    valid_until = models.DateTimeField(null=True, blank=True)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    version = models.PositiveIntegerField(default=1)
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=["customer", "is_active"]),
        ]

    def __str__(self):
        return f"{self.name} ({self.customer_id})"


class PromoCode(models.Model):
    code = models.CharField(max_length=40, unique=True)
    description = models.CharField(max_length=255, blank=True, default="")
    discount_type = models.CharField(max_length=10, choices=DISCOUNT_TYPE_CHOICES, default="PERCENTAGE")
    value = models.DecimalField(max_digits=12, decimal_places=2)
    max_discount_amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    min_order_amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    max_usage_count = models.PositiveIntegerField(null=True, blank=True)
    usage_count = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True)
    valid_from = models.DateTimeField(null=True, blank=True)
    valid_until = models.DateTimeField(null=True, blank=True)

    version = models.PositiveIntegerField(default=1)
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.code

    def save(self, *args, **kwargs):
        self.code = (self.code or "").strip().upper()
        super().save(*args, **kwargs)
