import logging

from django.db.utils import OperationalError, ProgrammingError
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

from loyalty.errors import LoyaltyError
from orders.errors import ConcurrentModification, OrderError, OrderInvariantError
from reservations.errors import ReservationError

LOGGER = logging.getLogger(__name__)


def _domain_error_response(exc):
    payload = {"detail": exc.detail, "code": exc.code}
    # Conflits et incohérences : message générique, le détail reste dans les logs.
    if exc.items and not isinstance(exc, (ConcurrentModification, OrderInvariantError)):
        payload["items"] = exc.items
    return Response(payload, status=exc.status_code)


def custom_exception_handler(exc, context):
    """
    Return JSON for domain errors (orders, loyalty, reservations) and known infra/runtime errors
    (DB not ready, migrations missing) instead of the default Django HTML 500 page.
    """
    response = exception_handler(exc, context)
    if response is not None:
        return response

    if isinstance(exc, (OrderError, LoyaltyError, ReservationError)):
        if isinstance(exc, OrderInvariantError):
            LOGGER.error("Inconsistent order state: %s %s", exc.check, exc.context)
        return _domain_error_response(exc)

    if isinstance(exc, (OperationalError, ProgrammingError)):
        request = context.get("request")
        if request is not None:
            LOGGER.exception("Database error on %s %s", request.method, request.get_full_path())
        else:
            LOGGER.exception("Database error (no request in context)")

        return Response(
            {
                "detail": "Service indisponible (base de données). Réessaie dans quelques instants.",
                "code": "db_unavailable",
            },
            status=status.HTTP_503_SERVICE_UNAVAILABLE,
        )

    return None
