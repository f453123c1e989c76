from rest_framework import permissions, status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import PermissionDenied
from rest_framework.response import Response

from .models import Reservation, Table
from .serializers import (
    AvailabilitySerializer,
    ReservationCreateSerializer,
    ReservationReasonSerializer,
    ReservationSerializer,
    TableSerializer,
)
from .services.reservations import (
    available_tables,
    cancel_reservation,
    complete_reservation,
    confirm_reservation,
    create_reservation,
    reject_reservation,
)


def _visible_reservations(request):
    qs = Reservation.objects.select_related("table")
    if request.user.is_staff:
        return qs
    return qs.filter(customer=request.user)


def _get_reservation(request, reservation_id):
    return _visible_reservations(request).filter(id=reservation_id).first()


def _not_found():
    return Response({"detail": "Réservation introuvable."}, status=status.HTTP_404_NOT_FOUND)


@api_view(["GET", "POST"])
@permission_classes([permissions.IsAuthenticated])
def reservations_list_create(request):
    if request.method == "POST":
        serializer = ReservationCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        reservation = create_reservation(customer=request.user, **serializer.validated_data)
        return Response(ReservationSerializer(reservation).data, status=status.HTTP_201_CREATED)

    qs = _visible_reservations(request)
    date = request.query_params.get("date")
    if date:
        qs = qs.filter(reservation_date=date)
    status_filter = request.query_params.get("status")
    if status_filter:
        qs = qs.filter(status=status_filter.upper())
    return Response(ReservationSerializer(qs[:200], many=True).data)


@api_view(["GET", "POST"])
@permission_classes([permissions.IsAuthenticated])
def reservation_tables(request):
    if request.method == "POST":
        if not request.user.is_staff:
            raise PermissionDenied("Gestion des tables réservée au personnel.")
        serializer = TableSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        table = serializer.save()
        return Response(TableSerializer(table).data, status=status.HTTP_201_CREATED)

    qs = Table.objects.all()
    if not request.user.is_staff:
        qs = qs.filter(is_active=True)
    return Response(TableSerializer(qs, many=True).data)


@api_view(["GET", "PATCH"])
@permission_classes([permissions.IsAdminUser])
def reservation_table_detail(request, table_id: int):
    table = Table.objects.filter(id=table_id).first()
    if not table:
        return Response({"detail": "Table introuvable."}, status=status.HTTP_404_NOT_FOUND)

    if request.method == "PATCH":
        serializer = TableSerializer(table, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return Response(serializer.data)

    return Response(TableSerializer(table).data)


@api_view(["GET"])
@permission_classes([permissions.IsAuthenticated])
def reservation_availability(request):
    serializer = AvailabilitySerializer(data=request.query_params)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    tables = available_tables(
        data["date"],
        data["start_time"],
        end_time=data.get("end_time"),
        number_of_guests=data["guests"],
    )
    return Response(TableSerializer(tables, many=True).data)


@api_view(["POST"])
@permission_classes([permissions.IsAdminUser])
def reservation_confirm(request, reservation_id: int):
    reservation = _get_reservation(request, reservation_id)
    if not reservation:
        return _not_found()
    reservation = confirm_reservation(reservation, by=request.user)
    return Response(ReservationSerializer(reservation).data)


@api_view(["POST"])
@permission_classes([permissions.IsAdminUser])
def reservation_reject(request, reservation_id: int):
    reservation = _get_reservation(request, reservation_id)
    if not reservation:
        return _not_found()
    serializer = ReservationReasonSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    reservation = reject_reservation(reservation, serializer.validated_data["reason"], by=request.user)
    return Response(ReservationSerializer(reservation).data)


@api_view(["POST"])
@permission_classes([permissions.IsAuthenticated])
def reservation_cancel(request, reservation_id: int):
    # un client ne voit que ses propres réservations
    reservation = _get_reservation(request, reservation_id)
    if not reservation:
        return _not_found()
    serializer = ReservationReasonSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    reservation = cancel_reservation(reservation, serializer.validated_data["reason"], by=request.user)
    return Response(ReservationSerializer(reservation).data)


@api_view(["POST"])
@permission_classes([permissions.IsAdminUser])
def reservation_complete(request, reservation_id: int):
    reservation = _get_reservation(request, reservation_id)
    if not reservation:
        return _not_found()
    reservation = complete_reservation(reservation, by=request.user)
    return Response(ReservationSerializer(reservation).data)
