from decimal import Decimal, InvalidOperation

from rest_framework import permissions, status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from orders.serializers import OrderDetailSerializer

from .serializers import (
    BasketCheckoutSerializer,
    BasketItemAddSerializer,
    BasketItemSerializer,
    BasketItemUpdateSerializer,
    BasketSerializer,
)
from .services.basket import (
    add_item,
    checkout,
    clear_basket,
    get_basket,
    remove_item,
    summary,
    update_item,
)


@api_view(["GET", "DELETE"])
@permission_classes([permissions.IsAuthenticated])
def basket_detail(request):
    if request.method == "DELETE":
        clear_basket(request.user)
        return Response(status=status.HTTP_204_NO_CONTENT)
    return Response(BasketSerializer(get_basket(request.user)).data)


@api_view(["POST"])
@permission_classes([permissions.IsAuthenticated])
def basket_items(request):
    serializer = BasketItemAddSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    item = add_item(request.user, **serializer.validated_data)
    return Response(BasketItemSerializer(item).data, status=status.HTTP_201_CREATED)


@api_view(["PATCH", "DELETE"])
@permission_classes([permissions.IsAuthenticated])
def basket_item_detail(request, item_id: int):
    if request.method == "DELETE":
        remove_item(request.user, item_id)
        return Response(status=status.HTTP_204_NO_CONTENT)

    serializer = BasketItemUpdateSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    item = update_item(request.user, item_id, **serializer.validated_data)
    return Response(BasketItemSerializer(item).data)


@api_view(["GET"])
@permission_classes([permissions.IsAuthenticated])
def basket_summary(request):
    params = request.query_params
    try:
        points = int(params.get("points") or 0)
        tip = Decimal(params.get("tip") or "0")
    except (ValueError, InvalidOperation):
        return Response({"detail": "Paramètres invalides."}, status=status.HTTP_400_BAD_REQUEST)
    if points < 0 or tip < 0:
        return Response({"detail": "Paramètres invalides."}, status=status.HTTP_400_BAD_REQUEST)

    data = summary(
        request.user,
        order_type=(params.get("order_type") or "TAKEAWAY").upper(),
        promo_code=params.get("promo_code") or None,
        points_to_redeem=points,
        tip=tip,
    )
    return Response(data)


@api_view(["POST"])
@permission_classes([permissions.IsAuthenticated])
def basket_checkout(request):
    serializer = BasketCheckoutSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = dict(serializer.validated_data)
    order = checkout(
        request.user,
        order_type=data.pop("order_type"),
        changed_by=request.user,
        promo_code=data.pop("promo_code") or None,
        **data,
    )
    return Response(OrderDetailSerializer(order).data, status=status.HTTP_201_CREATED)
