from django.urls import path

from . import views

urlpatterns = [
    path("", views.reservations_list_create, name="reservations_list_create"),
    path("tables/", views.reservation_tables, name="reservation_tables"),
    path("tables/<int:table_id>/", views.reservation_table_detail, name="reservation_table_detail"),
    path("availability/", views.reservation_availability, name="reservation_availability"),
    path("<int:reservation_id>/confirm/", views.reservation_confirm, name="reservation_confirm"),
    path("<int:reservation_id>/reject/", views.reservation_reject, name="reservation_reject"),
    path("<int:reservation_id>/cancel/", views.reservation_cancel, name="reservation_cancel"),
    path("<int:reservation_id>/complete/", views.reservation_complete, name="reservation_complete"),
]
