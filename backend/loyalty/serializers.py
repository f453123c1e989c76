from rest_framework import serializers

from orders.concurrency import StaleVersionError, save_versioned
from orders.errors import ConcurrentModification

from .models import (
    CustomerDiscountRule,
    FidelityPointBalance,
    FidelityPointsTransaction,
    PointEarningRule,
    PromoCode,
)


def _validate_discount(attrs, instance=None):
    """Contrôles communs règles client / codes promo (création et PATCH)."""

    def current(name):
        if name in attrs:
            return attrs[name]
        return getattr(instance, name, None)

    errors = {}
    value = current("value")
    if value is not None and value <= 0:
        errors["value"] = "La valeur doit être supérieure à 0."
    if current("discount_type") == "PERCENTAGE" and value is not None and value > 100:
        errors["value"] = "Un pourcentage ne peut pas dépasser 100."
    min_amount, max_amount = current("min_order_amount"), current("max_order_amount")
    if min_amount is not None and max_amount is not None and max_amount <= min_amount:
        errors["max_order_amount"] = "Le montant maximum doit être supérieur au minimum."
    valid_from, valid_until = current("valid_from"), current("valid_until")
    if valid_from and valid_until and valid_until <= valid_from:
        errors["valid_until"] = "La date de fin doit être postérieure à la date de début."
    max_usage = current("max_usage_count")
    if max_usage is not None and max_usage <= 0:
        errors["max_usage_count"] = "Le nombre d'utilisations doit être supérieur à 0."
    max_discount = current("max_discount_amount")
    if max_discount is not None and max_discount <= 0:
        errors["max_discount_amount"] = "Le plafond doit être supérieur à 0."
    if errors:
        raise serializers.ValidationError(errors)
    return attrs


class VersionedUpdateMixin:
    """Les mises à jour admin passent par le même contrôle de version que les
    incréments d'utilisation."""

    versioned_scope = "discount_rule"

    def update(self, instance, validated_data):
        for attr, value in validated_data.items():
            setattr(instance, attr, value)
        try:
            save_versioned(instance, list(validated_data.keys()))
        except StaleVersionError as exc:
            raise ConcurrentModification(self.versioned_scope, 1) from exc
        return instance


class PointEarningRuleSerializer(serializers.ModelSerializer):
    class Meta:
        model = PointEarningRule
        fields = [
            "id",
            "name",
            "min_order_amount",
            "max_order_amount",
            "points_awarded",
            "priority",
            "is_active",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "created_at", "updated_at"]

    def validate_points_awarded(self, value):
        if value <= 0:
            raise serializers.ValidationError("Le nombre de points doit être supérieur à 0.")
        return value

    def validate_min_order_amount(self, value):
        if value < 0:
            raise serializers.ValidationError("Le montant minimum ne peut pas être négatif.")
        return value

    def validate(self, attrs):
        min_amount = attrs.get("min_order_amount", getattr(self.instance, "min_order_amount", None))
        max_amount = attrs.get("max_order_amount", getattr(self.instance, "max_order_amount", None))
        if min_amount is not None and max_amount is not None and max_amount <= min_amount:
            raise serializers.ValidationError(
                {"max_order_amount": "Le montant maximum doit être supérieur au minimum."}
            )
        return attrs


class CustomerDiscountRuleSerializer(VersionedUpdateMixin, serializers.ModelSerializer):
    customer_id = serializers.IntegerField()

    class Meta:
        model = CustomerDiscountRule
        fields = [
            "id",
            "customer_id",
            "name",
            "discount_type",
            "value",
            "min_order_amount",
            "max_order_amount",
            "max_discount_amount",
            "max_usage_count",
            "usage_count",
            "is_active",
            "valid_from",
            "valid_until",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "usage_count", "created_at", "updated_at"]

    def validate(self, attrs):
        return _validate_discount(attrs, self.instance)


class PromoCodeSerializer(VersionedUpdateMixin, serializers.ModelSerializer):
    versioned_scope = "promo_code"

    class Meta:
        model = PromoCode
        fields = [
            "id",
            "code",
            "description",
            "discount_type",
            "value",
            "max_discount_amount",
            "min_order_amount",
            "max_usage_count",
            "usage_count",
            "is_active",
            "valid_from",
            "valid_until",
        ]
        read_only_fields = ["id", "usage_count"]

    def validate_code(self, value):
        code = value.strip().upper()
        qs = PromoCode.objects.filter(code=code)
        if self.instance is not None:
            qs = qs.exclude(pk=self.instance.pk)
        if qs.exists():
            raise serializers.ValidationError("Ce code existe déjà.")
        return code

    def validate(self, attrs):
        return _validate_discount(attrs, self.instance)


class FidelityPointBalanceSerializer(serializers.ModelSerializer):
    points_value = serializers.SerializerMethodField()

    class Meta:
        model = FidelityPointBalance
        fields = ["current_points", "total_earned_points", "total_redeemed_points", "points_value", "updated_at"]

    def get_points_value(self, obj):
        from .services.points import points_to_currency

        return str(points_to_currency(obj.current_points))


class FidelityPointsTransactionSerializer(serializers.ModelSerializer):
    order_number = serializers.SerializerMethodField()

    class Meta:
        model = FidelityPointsTransaction
        fields = [
            "id",
            "transaction_type",
            "points",
            "order_id",
            "order_number",
            "order_amount",
            "description",
            "expires_at",
            "created_by",
            "created_at",
        ]

    def get_order_number(self, obj):
        return obj.order.order_number if obj.order_id else None


class PointsAdjustSerializer(serializers.Serializer):
    customer_id = serializers.IntegerField()
    points = serializers.IntegerField()
    reason = serializers.CharField(max_length=255)

    def validate_points(self, value):
        if value == 0:
            raise serializers.ValidationError("L'ajustement ne peut pas être nul.")
        return value
