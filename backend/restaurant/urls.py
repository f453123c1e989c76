from django.contrib import admin
from django.db import connection
from django.db.utils import OperationalError, ProgrammingError
from django.http import JsonResponse
from django.urls import include, path
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from restaurant.metrics import metrics_view


def health(request):
    return JsonResponse({"status": "ok"})


def health_db(request):
    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
        return JsonResponse({"status": "ok", "db": "ok"})
    except (OperationalError, ProgrammingError):
        return JsonResponse({"status": "degraded", "db": "unavailable"}, status=503)


urlpatterns = [
    path("health/", health, name="health"),
    path("health/db/", health_db, name="health-db"),
    path("metrics/", metrics_view, name="metrics"),
    path("admin/", admin.site.urls),

    path("api/auth/token/", TokenObtainPairView.as_view(), name="token_obtain_pair"),
    path("api/auth/token/refresh/", TokenRefreshView.as_view(), name="token_refresh"),

    path("api/catalog/", include("catalog.urls")),
    path("api/orders/", include("orders.urls")),
    path("api/loyalty/", include("loyalty.urls")),
    path("api/basket/", include("basket.urls")),
    path("api/reservations/", include("reservations.urls")),
]
