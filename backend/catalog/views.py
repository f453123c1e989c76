from rest_framework import permissions, status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from .models import Product
from .serializers import ProductSerializer, ProductVariationSerializer


@api_view(["GET", "POST"])
@permission_classes([permissions.IsAuthenticated])
def catalog_products(request):
    if request.method == "POST":
        if not request.user.is_staff:
            return Response({"detail": "Action réservée au personnel."}, status=status.HTTP_403_FORBIDDEN)
        serializer = ProductSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        product = serializer.save()
        return Response(ProductSerializer(product).data, status=status.HTTP_201_CREATED)

    qs = Product.objects.prefetch_related("variations")
    if not request.user.is_staff:
        qs = qs.filter(is_active=True)
    category = request.query_params.get("category")
    if category:
        qs = qs.filter(category=category.upper())
    return Response(ProductSerializer(qs.order_by("category", "name"), many=True).data)


@api_view(["GET", "PATCH"])
@permission_classes([permissions.IsAuthenticated])
def catalog_product_detail(request, product_id: int):
    product = Product.objects.prefetch_related("variations").filter(id=product_id).first()
    if not product or (not product.is_active and not request.user.is_staff):
        return Response({"detail": "Produit introuvable."}, status=status.HTTP_404_NOT_FOUND)

    if request.method == "PATCH":
        if not request.user.is_staff:
            return Response({"detail": "Action réservée au personnel."}, status=status.HTTP_403_FORBIDDEN)
        serializer = ProductSerializer(product, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return Response(serializer.data)

    return Response(ProductSerializer(product).data)


@api_view(["POST"])
@permission_classes([permissions.IsAdminUser])
def catalog_product_variations(request, product_id: int):
    product = Product.objects.filter(id=product_id).first()
    if not product:
        return Response({"detail": "Produit introuvable."}, status=status.HTTP_404_NOT_FOUND)

    serializer = ProductVariationSerializer(data=request.data, context={"product": product})
    serializer.is_valid(raise_exception=True)
    variation = serializer.save(product=product)
    return Response(ProductVariationSerializer(variation).data, status=status.HTTP_201_CREATED)
