from rest_framework import serializers

from .models import Product, ProductVariation


class ProductVariationSerializer(serializers.ModelSerializer):
    class Meta:
        model = ProductVariation
        fields = ["id", "name", "price_modifier", "is_active"]
        read_only_fields = ["id"]

    def validate(self, attrs):
        product = self.context.get("product")
        modifier = attrs.get("price_modifier")
        if product is not None and modifier is not None and product.base_price + modifier < 0:
            raise serializers.ValidationError(
                {"price_modifier": "Le prix final de la variation ne peut pas être négatif."}
            )
        name = attrs.get("name")
        if product is not None and name and product.variations.filter(name=name).exists():
            raise serializers.ValidationError({"name": "Cette variation existe déjà."})
        return attrs


class ProductSerializer(serializers.ModelSerializer):
    variations = ProductVariationSerializer(many=True, read_only=True)

    class Meta:
        model = Product
        fields = [
            "id",
            "name",
            "description",
            "category",
            "base_price",
            "is_active",
            "is_available",
            "variations",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "created_at", "updated_at"]

    def validate_base_price(self, value):
        if value < 0:
            raise serializers.ValidationError("Le prix doit être positif.")
        return value
