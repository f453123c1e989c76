from rest_framework import serializers

from orders.models import Order
from orders.serializers import DeliveryAddressSerializer

from .models import Basket, BasketItem


class BasketItemSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source="product.name", read_only=True)
    variation_name = serializers.SerializerMethodField()
    line_total = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = BasketItem
        fields = [
            "id",
            "parent",
            "product",
            "product_name",
            "variation",
            "variation_name",
            "quantity",
            "unit_price",
            "customization_price",
            "customizations",
            "special_instructions",
            "line_total",
        ]
        read_only_fields = fields

    def get_variation_name(self, obj):
        return obj.variation.name if obj.variation_id else ""


class BasketSerializer(serializers.ModelSerializer):
    items = BasketItemSerializer(many=True, read_only=True)

    class Meta:
        model = Basket
        fields = ["id", "items", "created_at", "updated_at"]


class BasketItemAddSerializer(serializers.Serializer):
    product_id = serializers.IntegerField()
    variation_id = serializers.IntegerField(required=False, allow_null=True)
    parent_id = serializers.IntegerField(required=False, allow_null=True)
    quantity = serializers.IntegerField(default=1, min_value=1)
    customizations = serializers.ListField(child=serializers.CharField(), required=False, default=list)
    customization_price = serializers.DecimalField(
        max_digits=12, decimal_places=2, required=False, default=0, min_value=0
    )
    special_instructions = serializers.CharField(required=False, allow_blank=True, default="", max_length=255)


class BasketItemUpdateSerializer(serializers.Serializer):
    quantity = serializers.IntegerField(required=False, min_value=1)
    special_instructions = serializers.CharField(required=False, allow_blank=True, max_length=255)


class BasketCheckoutSerializer(serializers.Serializer):
    order_type = serializers.ChoiceField(choices=[c for c, _ in Order.TYPE_CHOICES], default="TAKEAWAY")
    tip = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, default=0, min_value=0)
    promo_code = serializers.CharField(required=False, allow_blank=True, default="", max_length=40)
    points_to_redeem = serializers.IntegerField(required=False, default=0, min_value=0)
    customer_phone = serializers.CharField(required=False, allow_blank=True, default="", max_length=40)
    table_number = serializers.CharField(required=False, allow_blank=True, default="", max_length=20)
    delivery_address = DeliveryAddressSerializer(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, default="")
