from datetime import time, timedelta

import pytest
from django.utils import timezone
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from reservations.errors import (
    InvalidReservationTransition,
    ReservationValidationError,
    TableUnavailable,
)
from reservations.services.reservations import (
    available_tables,
    cancel_reservation,
    confirm_reservation,
    create_reservation,
    reject_reservation,
)

from .factories import StaffFactory, TableFactory, UserFactory


def _auth_client(user):
    client = APIClient()
    token = RefreshToken.for_user(user).access_token
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {token}")
    return client


def _tomorrow():
    return timezone.localdate() + timedelta(days=1)


@pytest.mark.django_db
def test_overlapping_reservation_is_refused():
    table = TableFactory(max_guests=4)
    customer = UserFactory()
    create_reservation(table.id, _tomorrow(), time(19, 0), 2, end_time=time(21, 0), customer=customer)

    with pytest.raises(TableUnavailable):
        create_reservation(table.id, _tomorrow(), time(20, 0), 2, end_time=time(22, 0), customer=customer)

    # créneau contigu accepté
    later = create_reservation(table.id, _tomorrow(), time(21, 0), 2, end_time=time(22, 30), customer=customer)
    assert later.status == "PENDING"


@pytest.mark.django_db
def test_cancelled_reservation_frees_the_slot():
    table = TableFactory()
    customer = UserFactory()
    first = create_reservation(table.id, _tomorrow(), time(12, 0), 2, customer=customer)
    cancel_reservation(first, "Empêchement", by=customer)

    second = create_reservation(table.id, _tomorrow(), time(12, 30), 2, customer=customer)
    assert second.table_id == table.id


@pytest.mark.django_db
def test_reservation_validation():
    table = TableFactory(max_guests=2)
    customer = UserFactory()
    yesterday = timezone.localdate() - timedelta(days=1)

    with pytest.raises(ReservationValidationError):
        create_reservation(table.id, yesterday, time(12, 0), 2, customer=customer)
    with pytest.raises(ReservationValidationError):
        create_reservation(table.id, _tomorrow(), time(14, 0), 2, end_time=time(13, 0), customer=customer)
    with pytest.raises(ReservationValidationError):
        create_reservation(table.id, _tomorrow(), time(12, 0), 5, customer=customer)


@pytest.mark.django_db
def test_default_duration(settings):
    settings.RESERVATION_DEFAULT_DURATION_MINUTES = 90
    reservation = create_reservation(TableFactory().id, _tomorrow(), time(19, 0), 2, customer=UserFactory())
    assert reservation.end_time == time(20, 30)


@pytest.mark.django_db
def test_status_flow():
    reservation = create_reservation(TableFactory().id, _tomorrow(), time(19, 0), 2, customer=UserFactory())
    staff = StaffFactory()

    reservation = confirm_reservation(reservation, by=staff)
    assert reservation.status == "CONFIRMED"
    assert reservation.handled_by == staff.username

    with pytest.raises(InvalidReservationTransition):
        reject_reservation(reservation, "Complet", by=staff)
    with pytest.raises(ReservationValidationError):
        cancel_reservation(reservation, " ")


@pytest.mark.django_db
def test_available_tables_by_capacity_and_slot():
    small = TableFactory(number="A1", max_guests=2)
    large = TableFactory(number="B1", max_guests=6)
    TableFactory(number="C1", max_guests=8, is_active=False)
    create_reservation(large.id, _tomorrow(), time(20, 0), 4, customer=UserFactory())

    assert list(available_tables(_tomorrow(), time(12, 0), number_of_guests=2)) == [small, large]
    assert list(available_tables(_tomorrow(), time(19, 0), number_of_guests=2)) == [small]
    assert list(available_tables(_tomorrow(), time(19, 0), number_of_guests=4)) == []


@pytest.mark.django_db
def test_reservation_api():
    table = TableFactory(max_guests=4)
    customer = UserFactory()
    client = _auth_client(customer)
    staff_client = _auth_client(StaffFactory())
    day = _tomorrow().isoformat()

    res = client.post(
        "/api/reservations/",
        {"table_id": table.id, "reservation_date": day, "start_time": "19:00", "number_of_guests": 3},
        format="json",
    )
    assert res.status_code == 201
    reservation_id = res.data["id"]
    assert res.data["customer_name"] == customer.username

    res = client.post(
        "/api/reservations/",
        {"table_id": table.id, "reservation_date": day, "start_time": "20:00", "number_of_guests": 2},
        format="json",
    )
    assert res.status_code == 409
    assert res.data["code"] == "table_unavailable"

    res = client.get("/api/reservations/availability/", {"date": day, "start_time": "19:30", "guests": 2})
    assert res.data == []

    assert client.post(f"/api/reservations/{reservation_id}/confirm/").status_code == 403
    res = staff_client.post(f"/api/reservations/{reservation_id}/confirm/")
    assert res.data["status"] == "CONFIRMED"

    other = _auth_client(UserFactory())
    res = other.post(f"/api/reservations/{reservation_id}/cancel/", {"reason": "Pas à moi"}, format="json")
    assert res.status_code == 404

    res = client.post(f"/api/reservations/{reservation_id}/cancel/", {"reason": "Malade"}, format="json")
    assert res.data["status"] == "CANCELLED"
    assert len(client.get("/api/reservations/").data) == 1
