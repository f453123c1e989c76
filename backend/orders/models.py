from decimal import Decimal

from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils import timezone

from catalog.models import Product, ProductVariation


class TaxConfiguration(models.Model):
    name = models.CharField(max_length=80)
    rate = models.DecimalField(max_digits=5, decimal_places=2, default=0)
    is_enabled = models.BooleanField(default=True)
    applies_to_dine_in = models.BooleanField(default=True)
    applies_to_takeaway = models.BooleanField(default=True)
    applies_to_delivery = models.BooleanField(default=True)

    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.name} ({self.rate}%)"

    def applies_to(self, order_type):
        return {
            "DINE_IN": self.applies_to_dine_in,
            "TAKEAWAY": self.applies_to_takeaway,
            "DELIVERY": self.applies_to_delivery,
        }.get(order_type, False)


class Order(models.Model):
    TYPE_CHOICES = [
        ("DINE_IN", "Sur place"),
        ("TAKEAWAY", "À emporter"),
        ("DELIVERY", "Livraison"),
    ]
    STATUS_CHOICES = [
        ("PENDING", "En attente"),
        ("CONFIRMED", "Confirmée"),
        ("DELAYED", "Retardée"),
        ("PREPARING", "En préparation"),
        ("READY", "Prête"),
        ("COMPLETED", "Terminée"),
        ("CANCELLED", "Annulée"),
    ]
    PAYMENT_STATUS_CHOICES = [
        ("UNPAID", "Non payée"),
        ("PARTIALLY_PAID", "Partiellement payée"),
        ("PAID", "Payée"),
        ("PARTIALLY_REFUNDED", "Partiellement remboursée"),
        ("REFUNDED", "Remboursée"),
    ]

    order_number = models.CharField(max_length=20, unique=True, editable=False)
    customer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="orders",
    )
    customer_name = models.CharField(max_length=140, blank=True, default="")
    customer_email = models.EmailField(blank=True, default="")
    customer_phone = models.CharField(max_length=40, blank=True, default="")

    order_type = models.CharField(max_length=10, choices=TYPE_CHOICES, default="TAKEAWAY")
    table_number = models.CharField(max_length=20, blank=True, default="")

    delivery_address_line1 = models.CharField(max_length=200, blank=True, default="")
    delivery_address_line2 = models.CharField(max_length=200, blank=True, default="")
    delivery_city = models.CharField(max_length=100, blank=True, default="")
    delivery_postal_code = models.CharField(max_length=20, blank=True, default="")
    delivery_instructions = models.CharField(max_length=255, blank=True, default="")

    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    tax = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    delivery_fee = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    discount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    discount_percentage = models.DecimalField(max_digits=5, decimal_places=2, default=0)
    fidelity_points_discount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    customer_discount_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    tip = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    total = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    total_paid = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    remaining_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    overpaid_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)

    promo_code = models.CharField(max_length=40, blank=True, default="")
    customer_discount_rule = models.ForeignKey(
        "loyalty.CustomerDiscountRule",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="orders",
    )
    fidelity_points_redeemed = models.PositiveIntegerField(default=0)

    status = models.CharField(max_length=12, choices=STATUS_CHOICES, default="PENDING")
    payment_status = models.CharField(max_length=20, choices=PAYMENT_STATUS_CHOICES, default="UNPAID")
    cancellation_reason = models.TextField(blank=True, default="")
    notes = models.TextField(blank=True, default="")

    order_date = models.DateTimeField(default=timezone.now)
    estimated_ready_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    is_focus_order = models.BooleanField(default=False)
    priority = models.PositiveSmallIntegerField(null=True, blank=True)
    focus_reason = models.CharField(max_length=255, blank=True, default="")
    focused_by = models.CharField(max_length=150, blank=True, default="")
    focused_at = models.DateTimeField(null=True, blank=True)

    is_deleted = models.BooleanField(default=False)
    deleted_at = models.DateTimeField(null=True, blank=True)

    version = models.PositiveIntegerField(default=1)

    class Meta:
        indexes = [
            models.Index(fields=["status", "order_date"]),
            models.Index(fields=["customer", "order_date"]),
            models.Index(fields=["is_focus_order", "priority"]),
        ]
        constraints = [
            models.CheckConstraint(condition=Q(total__gte=0), name="order_total_non_negative"),
            models.CheckConstraint(
                condition=Q(remaining_amount__gte=0), name="order_remaining_non_negative"
            ),
        ]

    def __str__(self):
        return f"Commande {self.order_number}"

    @property
    def is_terminal(self):
        return self.status in {"COMPLETED", "CANCELLED"}

    @property
    def customer_contact(self):
        return {
            "name": self.customer_name,
            "email": self.customer_email,
            "phone": self.customer_phone,
        }

    def expected_total(self):
        raw = (
            self.subtotal
            + self.tax
            + self.delivery_fee
            + self.tip
            - self.discount
            - self.fidelity_points_discount
            - self.customer_discount_amount
        )
        return max(raw, Decimal("0.00"))

    def check_invariants(self):
        from .services.orders import check_invariants

        check_invariants(self)


class OrderItem(models.Model):
    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="items")
    parent = models.ForeignKey(
        "self", on_delete=models.CASCADE, null=True, blank=True, related_name="children"
    )
    product = models.ForeignKey(
        Product, on_delete=models.SET_NULL, null=True, blank=True, related_name="order_items"
    )
    variation = models.ForeignKey(
        ProductVariation, on_delete=models.SET_NULL, null=True, blank=True, related_name="order_items"
    )

    product_name = models.CharField(max_length=140)
    variation_name = models.CharField(max_length=80, blank=True, default="")
    quantity = models.PositiveIntegerField(default=1)
    unit_price = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    item_total = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    customizations = models.JSONField(default=list, blank=True)
    special_instructions = models.CharField(max_length=255, blank=True, default="")

    class Meta:
        indexes = [
            models.Index(fields=["order"]),
        ]
        constraints = [
            models.CheckConstraint(condition=Q(quantity__gte=1), name="order_item_quantity_min_1"),
        ]

    def __str__(self):
        return f"{self.quantity} x {self.product_name}"


class OrderStatusHistory(models.Model):
    FROM_STATUS_CHOICES = [("CREATED", "Créée")] + Order.STATUS_CHOICES

    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="status_history")
    from_status = models.CharField(max_length=12, choices=FROM_STATUS_CHOICES)
    to_status = models.CharField(max_length=12, choices=Order.STATUS_CHOICES)
    changed_by = models.CharField(max_length=150, blank=True, default="system")
    changed_at = models.DateTimeField(default=timezone.now)
    notes = models.TextField(blank=True, default="")

    class Meta:
        ordering = ["changed_at", "id"]
        indexes = [
            models.Index(fields=["order", "changed_at"]),
        ]

    def __str__(self):
        return f"{self.order_id}: {self.from_status} -> {self.to_status}"

    def save(self, *args, **kwargs):
        if self.pk is not None:
            raise ValueError("L'historique de statut est en ajout seul.")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValueError("L'historique de statut est en ajout seul.")


class OrderPayment(models.Model):
    METHOD_CHOICES = [
        ("CASH", "Espèces"),
        ("CARD", "Carte bancaire"),
        ("MOBILE", "Paiement mobile"),
        ("VOUCHER", "Titre restaurant"),
        ("OTHER", "Autre"),
    ]
    STATUS_CHOICES = [
        ("PENDING", "En attente"),
        ("COMPLETED", "Validé"),
        ("FAILED", "Échoué"),
        ("REFUNDED", "Remboursé"),
    ]

    order = models.ForeignKey(Order, on_delete=models.CASCADE, related_name="payments")
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    method = models.CharField(max_length=10, choices=METHOD_CHOICES, default="CARD")
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default="PENDING")
    transaction_reference = models.CharField(max_length=120, blank=True, default="")

    refunded_amount = models.DecimalField(max_digits=12, decimal_places=2, default=0)
    refund_reason = models.TextField(blank=True, default="")
    failure_reason = models.CharField(max_length=255, blank=True, default="")

    payment_date = models.DateTimeField(default=timezone.now)
    confirmed_at = models.DateTimeField(null=True, blank=True)
    refunded_at = models.DateTimeField(null=True, blank=True)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="order_payments",
    )

    class Meta:
        indexes = [
            models.Index(fields=["order", "status"]),
        ]
        constraints = [
            models.CheckConstraint(condition=Q(amount__gt=0), name="order_payment_amount_positive"),
            models.CheckConstraint(
                condition=Q(refunded_amount__lte=models.F("amount")),
                name="order_payment_refund_within_amount",
            ),
        ]

    def __str__(self):
        return f"Paiement #{self.id} ({self.amount} {self.method})"

    @property
    def refundable_amount(self):
        return self.amount - self.refunded_amount

    @property
    def net_amount(self):
        return self.amount - self.refunded_amount
