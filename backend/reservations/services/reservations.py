# backend/reservations/services/reservations.py
import logging
from datetime import datetime, timedelta

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from orders.services.orders import actor_name

from ..errors import InvalidReservationTransition, ReservationValidationError, TableUnavailable
from ..models import Reservation, Table

LOGGER = logging.getLogger(__name__)

RESERVATION_TRANSITIONS = {
    "PENDING": ["CONFIRMED", "REJECTED", "CANCELLED"],
    "CONFIRMED": ["CANCELLED", "COMPLETED"],
    "REJECTED": [],
    "CANCELLED": [],
    "COMPLETED": [],
}


def default_end_time(start_time):
    minutes = int(getattr(settings, "RESERVATION_DEFAULT_DURATION_MINUTES", 120))
    end = (datetime.combine(datetime.min, start_time) + timedelta(minutes=minutes)).time()
    # un créneau ne déborde pas sur le lendemain
    if end <= start_time:
        end = start_time.replace(hour=23, minute=59, second=0, microsecond=0)
    return end


def overlapping(table, reservation_date, start_time, end_time, exclude_id=None):
    qs = Reservation.objects.filter(
        table=table,
        reservation_date=reservation_date,
        status__in=Reservation.ACTIVE_STATUSES,
        start_time__lt=end_time,
        end_time__gt=start_time,
    )
    if exclude_id:
        qs = qs.exclude(id=exclude_id)
    return qs


def _validate_slot(reservation_date, start_time, end_time, number_of_guests):
    errors = {}
    if end_time <= start_time:
        errors["end_time"] = "L'heure de fin doit être postérieure à l'heure de début."
    today = timezone.localdate()
    if reservation_date < today or (
        reservation_date == today and start_time < timezone.localtime().time()
    ):
        errors["reservation_date"] = "Impossible de réserver dans le passé."
    if number_of_guests is None or int(number_of_guests) < 1:
        errors["number_of_guests"] = "Au moins un couvert."
    if errors:
        raise ReservationValidationError(items=[errors])


def available_tables(reservation_date, start_time, end_time=None, number_of_guests=1):
    end_time = end_time or default_end_time(start_time)
    busy = Reservation.objects.filter(
        reservation_date=reservation_date,
        status__in=Reservation.ACTIVE_STATUSES,
        start_time__lt=end_time,
        end_time__gt=start_time,
    ).values("table_id")
    return (
        Table.objects.filter(is_active=True, max_guests__gte=number_of_guests)
        .exclude(id__in=busy)
        .order_by("max_guests", "number")
    )


def create_reservation(
    table_id,
    reservation_date,
    start_time,
    number_of_guests,
    end_time=None,
    customer=None,
    customer_name="",
    customer_email="",
    customer_phone="",
    special_requests="",
):
    end_time = end_time or default_end_time(start_time)
    _validate_slot(reservation_date, start_time, end_time, number_of_guests)

    if customer is not None:
        customer_name = customer_name or customer.get_full_name() or customer.get_username()
        customer_email = customer_email or customer.email or ""
    if not (customer_name or "").strip():
        raise ReservationValidationError(items=[{"customer_name": "Nom obligatoire."}])

    with transaction.atomic():
        # verrou sur la table : deux réservations concurrentes du même créneau
        # ne peuvent pas passer toutes les deux
        table = Table.objects.select_for_update().filter(id=table_id, is_active=True).first()
        if table is None:
            raise ReservationValidationError("Table introuvable ou inactive.")
        if int(number_of_guests) > table.max_guests:
            raise ReservationValidationError(
                f"La table {table.number} accueille au maximum {table.max_guests} personnes.",
                items=[{"max_guests": table.max_guests, "number_of_guests": int(number_of_guests)}],
            )
        if overlapping(table, reservation_date, start_time, end_time).exists():
            raise TableUnavailable(items=[{"table": table.number}])

        reservation = Reservation.objects.create(
            table=table,
            customer=customer,
            customer_name=customer_name.strip(),
            customer_email=customer_email or "",
            customer_phone=customer_phone or "",
            reservation_date=reservation_date,
            start_time=start_time,
            end_time=end_time,
            number_of_guests=int(number_of_guests),
            special_requests=special_requests or "",
        )

    LOGGER.info(
        "reservation_created",
        extra={"reservation_id": reservation.id, "table": table.number, "date": str(reservation_date)},
    )
    return reservation


def _set_status(reservation, to_status, by=None, notes=""):
    with transaction.atomic():
        fresh = Reservation.objects.select_for_update().get(pk=reservation.pk)
        if to_status not in RESERVATION_TRANSITIONS.get(fresh.status, []):
            raise InvalidReservationTransition(fresh.status, to_status)
        from_status = fresh.status
        fresh.status = to_status
        fresh.handled_by = actor_name(by)
        fields = ["status", "handled_by", "updated_at"]
        if notes:
            fresh.notes = notes
            fields.append("notes")
        fresh.save(update_fields=fields)

    LOGGER.info(
        "reservation_transition",
        extra={"reservation_id": fresh.id, "from_status": from_status, "to_status": to_status},
    )
    return fresh


def confirm_reservation(reservation, by=None):
    return _set_status(reservation, "CONFIRMED", by=by)


def reject_reservation(reservation, reason, by=None):
    reason = (reason or "").strip()
    if not reason:
        raise ReservationValidationError("Un motif de refus est obligatoire.")
    return _set_status(reservation, "REJECTED", by=by, notes=reason)


def cancel_reservation(reservation, reason, by=None):
    reason = (reason or "").strip()
    if not reason:
        raise ReservationValidationError("Un motif d'annulation est obligatoire.")
    return _set_status(reservation, "CANCELLED", by=by, notes=reason)


def complete_reservation(reservation, by=None):
    return _set_status(reservation, "COMPLETED", by=by)
