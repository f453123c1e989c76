from django.conf import settings
from django.db import models
from django.db.models import F, Q
from django.utils import timezone


class Table(models.Model):
    number = models.CharField(max_length=20, unique=True)
    max_guests = models.PositiveIntegerField(default=2)
    is_active = models.BooleanField(default=True)
    is_outdoor = models.BooleanField(default=False)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["number"]
        constraints = [
            models.CheckConstraint(condition=Q(max_guests__gte=1), name="table_max_guests_gte_1"),
        ]

    def __str__(self):
        return f"Table {self.number}"


class Reservation(models.Model):
    STATUS_CHOICES = [
        ("PENDING", "En attente"),
        ("CONFIRMED", "Confirmée"),
        ("REJECTED", "Refusée"),
        ("CANCELLED", "Annulée"),
        ("COMPLETED", "Terminée"),
    ]
    ACTIVE_STATUSES = ["PENDING", "CONFIRMED"]

    table = models.ForeignKey(Table, on_delete=models.PROTECT, related_name="reservations")
    customer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="reservations",
    )
    customer_name = models.CharField(max_length=140)
    customer_email = models.EmailField(blank=True, default="")
    customer_phone = models.CharField(max_length=40, blank=True, default="")

    reservation_date = models.DateField()
    start_time = models.TimeField()
    end_time = models.TimeField()
    number_of_guests = models.PositiveIntegerField()

    status = models.CharField(max_length=12, choices=STATUS_CHOICES, default="PENDING")
    special_requests = models.TextField(blank=True, default="")
    notes = models.TextField(blank=True, default="")
    handled_by = models.CharField(max_length=150, blank=True, default="")

    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["reservation_date", "start_time", "id"]
        indexes = [
            models.Index(fields=["table", "reservation_date", "status"]),
            models.Index(fields=["customer", "reservation_date"]),
        ]
        constraints = [
            models.CheckConstraint(condition=Q(end_time__gt=F("start_time")), name="reservation_end_after_start"),
            models.CheckConstraint(condition=Q(number_of_guests__gte=1), name="reservation_guests_gte_1"),
        ]

    def __str__(self):
        return f"{self.customer_name} - {self.reservation_date} {self.start_time}"

    @property
    def is_active(self):
        return self.status in self.ACTIVE_STATUSES
