from rest_framework import serializers

from .models import Reservation, Table


class TableSerializer(serializers.ModelSerializer):
    class Meta:
        model = Table
        fields = ["id", "number", "max_guests", "is_active", "is_outdoor", "created_at"]
        read_only_fields = ["id", "created_at"]

    def validate_max_guests(self, value):
        if value < 1:
            raise serializers.ValidationError("Au moins une place.")
        return value


class ReservationSerializer(serializers.ModelSerializer):
    table_number = serializers.CharField(source="table.number", read_only=True)

    class Meta:
        model = Reservation
        fields = [
            "id",
            "table",
            "table_number",
            "customer",
            "customer_name",
            "customer_email",
            "customer_phone",
            "reservation_date",
            "start_time",
            "end_time",
            "number_of_guests",
            "status",
            "special_requests",
            "notes",
            "handled_by",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class ReservationCreateSerializer(serializers.Serializer):
    table_id = serializers.IntegerField()
    reservation_date = serializers.DateField()
    start_time = serializers.TimeField()
    end_time = serializers.TimeField(required=False, allow_null=True)
    number_of_guests = serializers.IntegerField(min_value=1)
    customer_name = serializers.CharField(required=False, allow_blank=True, default="", max_length=140)
    customer_email = serializers.EmailField(required=False, allow_blank=True, default="")
    customer_phone = serializers.CharField(required=False, allow_blank=True, default="", max_length=40)
    special_requests = serializers.CharField(required=False, allow_blank=True, default="")


class ReservationReasonSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=500)


class AvailabilitySerializer(serializers.Serializer):
    date = serializers.DateField()
    start_time = serializers.TimeField()
    end_time = serializers.TimeField(required=False, allow_null=True)
    guests = serializers.IntegerField(min_value=1, default=1)
