from rest_framework import serializers

from .models import Order, OrderItem, OrderPayment, OrderStatusHistory, TaxConfiguration
from .services.focus import MAX_PRIORITY, MIN_PRIORITY


class OrderChildLineInputSerializer(serializers.Serializer):
    product_id = serializers.IntegerField(required=False, allow_null=True)
    variation_id = serializers.IntegerField(required=False, allow_null=True)
    product_name = serializers.CharField(required=False, allow_blank=True, max_length=140)
    quantity = serializers.IntegerField()
    unit_price = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, allow_null=True)
    customizations = serializers.ListField(child=serializers.CharField(), required=False, default=list)
    special_instructions = serializers.CharField(required=False, allow_blank=True, default="", max_length=255)

    def validate_quantity(self, value):
        if value < 1:
            raise serializers.ValidationError("La quantité doit être au moins 1.")
        return value

    def validate_unit_price(self, value):
        if value is not None and value < 0:
            raise serializers.ValidationError("Le prix unitaire ne peut pas être négatif.")
        return value

    def validate(self, attrs):
        if not attrs.get("product_id") and (attrs.get("unit_price") is None or not attrs.get("product_name")):
            raise serializers.ValidationError("Indiquez un produit, ou un nom et un prix.")
        return attrs


class OrderLineInputSerializer(OrderChildLineInputSerializer):
    children = OrderChildLineInputSerializer(many=True, required=False, default=list)


class DeliveryAddressSerializer(serializers.Serializer):
    address_line1 = serializers.CharField(max_length=200)
    address_line2 = serializers.CharField(max_length=200, required=False, allow_blank=True, default="")
    city = serializers.CharField(max_length=100)
    postal_code = serializers.CharField(max_length=20)
    instructions = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")


class OrderQuoteSerializer(serializers.Serializer):
    order_type = serializers.ChoiceField(choices=[c for c, _ in Order.TYPE_CHOICES], default="TAKEAWAY")
    lines = OrderLineInputSerializer(many=True)
    tip = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, default=0)
    promo_code = serializers.CharField(required=False, allow_blank=True, default="", max_length=40)
    points_to_redeem = serializers.IntegerField(required=False, default=0, min_value=0)

    def validate_tip(self, value):
        if value < 0:
            raise serializers.ValidationError("Le pourboire ne peut pas être négatif.")
        return value

    def validate(self, attrs):
        if not attrs.get("lines"):
            raise serializers.ValidationError({"lines": "Ajoutez au moins un article."})
        return attrs


class OrderCreateSerializer(OrderQuoteSerializer):
    customer_id = serializers.IntegerField(required=False, allow_null=True)
    customer_name = serializers.CharField(required=False, allow_blank=True, default="", max_length=140)
    customer_email = serializers.EmailField(required=False, allow_blank=True, default="")
    customer_phone = serializers.CharField(required=False, allow_blank=True, default="", max_length=40)
    table_number = serializers.CharField(required=False, allow_blank=True, default="", max_length=20)
    delivery_address = DeliveryAddressSerializer(required=False, allow_null=True)
    notes = serializers.CharField(required=False, allow_blank=True, default="")

    def validate(self, attrs):
        attrs = super().validate(attrs)
        if attrs.get("order_type") == "DELIVERY" and not attrs.get("delivery_address"):
            raise serializers.ValidationError({"delivery_address": "Adresse obligatoire pour une livraison."})
        return attrs


class OrderItemSerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderItem
        fields = [
            "id",
            "parent_id",
            "product_id",
            "variation_id",
            "product_name",
            "variation_name",
            "quantity",
            "unit_price",
            "item_total",
            "customizations",
            "special_instructions",
        ]


class OrderStatusHistorySerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderStatusHistory
        fields = ["id", "from_status", "to_status", "changed_by", "changed_at", "notes"]


class OrderPaymentSerializer(serializers.ModelSerializer):
    class Meta:
        model = OrderPayment
        fields = [
            "id",
            "amount",
            "method",
            "status",
            "transaction_reference",
            "refunded_amount",
            "refund_reason",
            "failure_reason",
            "payment_date",
            "confirmed_at",
            "refunded_at",
        ]


class OrderSerializer(serializers.ModelSerializer):
    items = OrderItemSerializer(many=True, read_only=True)
    delivery_address = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "customer_id",
            "customer_name",
            "customer_email",
            "customer_phone",
            "order_type",
            "table_number",
            "delivery_address",
            "status",
            "payment_status",
            "subtotal",
            "tax",
            "delivery_fee",
            "discount",
            "discount_percentage",
            "fidelity_points_discount",
            "customer_discount_amount",
            "tip",
            "total",
            "total_paid",
            "remaining_amount",
            "overpaid_amount",
            "promo_code",
            "fidelity_points_redeemed",
            "cancellation_reason",
            "notes",
            "order_date",
            "estimated_ready_at",
            "is_focus_order",
            "priority",
            "focus_reason",
            "focused_by",
            "focused_at",
            "items",
        ]

    def get_delivery_address(self, obj):
        if obj.order_type != "DELIVERY":
            return None
        return {
            "address_line1": obj.delivery_address_line1,
            "address_line2": obj.delivery_address_line2,
            "city": obj.delivery_city,
            "postal_code": obj.delivery_postal_code,
            "instructions": obj.delivery_instructions,
        }


class OrderDetailSerializer(OrderSerializer):
    payments = OrderPaymentSerializer(many=True, read_only=True)
    status_history = OrderStatusHistorySerializer(many=True, read_only=True)

    class Meta(OrderSerializer.Meta):
        fields = OrderSerializer.Meta.fields + ["payments", "status_history"]


class OrderStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[c for c, _ in Order.STATUS_CHOICES])
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class OrderCancelSerializer(serializers.Serializer):
    reason = serializers.CharField(allow_blank=True, trim_whitespace=True)

    def validate_reason(self, value):
        if not value:
            raise serializers.ValidationError("Un motif d'annulation est obligatoire.")
        return value


class OrderDelaySerializer(serializers.Serializer):
    minutes = serializers.IntegerField(min_value=1, max_value=240)
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class OrderDelayDecisionSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default="")


class OrderFocusSerializer(serializers.Serializer):
    priority = serializers.IntegerField(
        required=False, default=3, min_value=MIN_PRIORITY, max_value=MAX_PRIORITY
    )
    reason = serializers.CharField(max_length=255)


class PaymentCreateSerializer(serializers.Serializer):
    method = serializers.ChoiceField(choices=[c for c, _ in OrderPayment.METHOD_CHOICES])
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    transaction_reference = serializers.CharField(required=False, allow_blank=True, default="", max_length=120)
    confirmed = serializers.BooleanField(required=False, default=False)

    def validate_amount(self, value):
        if value <= 0:
            raise serializers.ValidationError("Le montant doit être supérieur à 0.")
        return value


class PaymentFailSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default="", max_length=255)


class RefundSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    reason = serializers.CharField(min_length=5)

    def validate_amount(self, value):
        if value <= 0:
            raise serializers.ValidationError("Le montant doit être supérieur à 0.")
        return value


class TaxConfigurationSerializer(serializers.ModelSerializer):
    class Meta:
        model = TaxConfiguration
        fields = [
            "id",
            "name",
            "rate",
            "is_enabled",
            "applies_to_dine_in",
            "applies_to_takeaway",
            "applies_to_delivery",
        ]
        read_only_fields = ["id"]

    def validate_rate(self, value):
        if value < 0 or value > 100:
            raise serializers.ValidationError("Le taux doit être compris entre 0 et 100.")
        return value
