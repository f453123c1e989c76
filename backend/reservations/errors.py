from rest_framework import status


class ReservationError(Exception):
    code = "reservation_error"
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Réservation impossible."

    def __init__(self, detail=None, items=None):
        self.detail = detail or self.default_detail
        self.items = items
        super().__init__(self.detail)


class ReservationValidationError(ReservationError):
    code = "validation_error"


class TableUnavailable(ReservationError):
    code = "table_unavailable"
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Cette table est déjà réservée sur ce créneau."


class InvalidReservationTransition(ReservationError):
    code = "invalid_transition"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, from_status, to_status):
        super().__init__(
            f"Transition {from_status} -> {to_status} non autorisée.",
            items=[{"from": from_status, "to": to_status}],
        )
