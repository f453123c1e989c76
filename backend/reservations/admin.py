from django.contrib import admin

from .models import Reservation, Table


@admin.register(Table)
class TableAdmin(admin.ModelAdmin):
    list_display = ["number", "max_guests", "is_active", "is_outdoor"]
    list_filter = ["is_active", "is_outdoor"]


@admin.register(Reservation)
class ReservationAdmin(admin.ModelAdmin):
    list_display = ["customer_name", "table", "reservation_date", "start_time", "end_time", "number_of_guests", "status"]
    list_filter = ["status", "reservation_date"]
    search_fields = ["customer_name", "customer_email", "customer_phone"]
