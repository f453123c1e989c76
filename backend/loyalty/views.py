from decimal import Decimal, InvalidOperation

from django.contrib.auth import get_user_model
from rest_framework import permissions, status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response

from .models import CustomerDiscountRule, PointEarningRule, PromoCode
from .serializers import (
    CustomerDiscountRuleSerializer,
    FidelityPointBalanceSerializer,
    FidelityPointsTransactionSerializer,
    PointEarningRuleSerializer,
    PointsAdjustSerializer,
    PromoCodeSerializer,
)
from .services.points import (
    adjust_points,
    calculate_points,
    current_points,
    find_earning_rule,
    find_overlapping_rules,
    get_balance,
    loyalty_analytics,
    points_to_currency,
)

User = get_user_model()


def _overlap_warning(rule):
    overlaps = find_overlapping_rules(rule)
    return [{"id": r.id, "name": r.name, "priority": r.priority} for r in overlaps]


@api_view(["GET"])
@permission_classes([permissions.IsAuthenticated])
def loyalty_balance(request):
    return Response(FidelityPointBalanceSerializer(get_balance(request.user)).data)


@api_view(["GET"])
@permission_classes([permissions.IsAuthenticated])
def loyalty_history(request):
    qs = request.user.fidelity_transactions.select_related("order")
    transaction_type = request.query_params.get("type")
    if transaction_type:
        qs = qs.filter(transaction_type=transaction_type.upper())
    return Response(FidelityPointsTransactionSerializer(qs[:200], many=True).data)


@api_view(["GET"])
@permission_classes([permissions.IsAuthenticated])
def loyalty_calculate_points(request):
    try:
        amount = Decimal(request.query_params.get("amount", ""))
    except InvalidOperation:
        return Response({"detail": "Montant invalide."}, status=status.HTTP_400_BAD_REQUEST)
    if amount < 0:
        return Response({"detail": "Montant invalide."}, status=status.HTTP_400_BAD_REQUEST)

    rule = find_earning_rule(amount)
    return Response(
        {
            "amount": str(amount),
            "points": calculate_points(amount),
            "rule": {"id": rule.id, "name": rule.name} if rule else None,
        }
    )


@api_view(["GET"])
@permission_classes([permissions.IsAuthenticated])
def loyalty_calculate_discount(request):
    try:
        points = int(request.query_params.get("points", ""))
    except ValueError:
        return Response({"detail": "Nombre de points invalide."}, status=status.HTTP_400_BAD_REQUEST)
    if points <= 0:
        return Response({"detail": "Nombre de points invalide."}, status=status.HTTP_400_BAD_REQUEST)

    available = current_points(request.user)
    return Response(
        {
            "points": points,
            "discount": str(points_to_currency(points)),
            "available_points": available,
            "can_redeem": points <= available,
        }
    )


@api_view(["GET", "POST"])
@permission_classes([permissions.IsAdminUser])
def admin_earning_rules(request):
    if request.method == "POST":
        serializer = PointEarningRuleSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        rule = serializer.save()
        data = dict(PointEarningRuleSerializer(rule).data)
        data["overlapping_rules"] = _overlap_warning(rule)
        return Response(data, status=status.HTTP_201_CREATED)

    qs = PointEarningRule.objects.order_by("priority", "min_order_amount", "id")
    return Response(PointEarningRuleSerializer(qs, many=True).data)


@api_view(["GET", "PATCH", "DELETE"])
@permission_classes([permissions.IsAdminUser])
def admin_earning_rule_detail(request, rule_id: int):
    rule = PointEarningRule.objects.filter(id=rule_id).first()
    if not rule:
        return Response({"detail": "Règle introuvable."}, status=status.HTTP_404_NOT_FOUND)

    if request.method == "DELETE":
        rule.is_active = False
        rule.save(update_fields=["is_active", "updated_at"])
        return Response(status=status.HTTP_204_NO_CONTENT)

    if request.method == "PATCH":
        serializer = PointEarningRuleSerializer(rule, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        rule = serializer.save()

    data = dict(PointEarningRuleSerializer(rule).data)
    data["overlapping_rules"] = _overlap_warning(rule)
    return Response(data)


@api_view(["GET", "POST"])
@permission_classes([permissions.IsAdminUser])
def admin_discount_rules(request):
    if request.method == "POST":
        serializer = CustomerDiscountRuleSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        if not User.objects.filter(id=serializer.validated_data["customer_id"]).exists():
            return Response({"detail": "Client introuvable."}, status=status.HTTP_404_NOT_FOUND)
        rule = serializer.save(created_by=request.user)
        return Response(CustomerDiscountRuleSerializer(rule).data, status=status.HTTP_201_CREATED)

    qs = CustomerDiscountRule.objects.all()
    customer_id = request.query_params.get("customer_id")
    if customer_id:
        qs = qs.filter(customer_id=customer_id)
    if request.query_params.get("active") == "1":
        qs = qs.filter(is_active=True)
    return Response(CustomerDiscountRuleSerializer(qs.order_by("-created_at"), many=True).data)


@api_view(["GET", "PATCH", "DELETE"])
@permission_classes([permissions.IsAdminUser])
def admin_discount_rule_detail(request, rule_id: int):
    rule = CustomerDiscountRule.objects.filter(id=rule_id).first()
    if not rule:
        return Response({"detail": "Règle introuvable."}, status=status.HTTP_404_NOT_FOUND)

    if request.method == "DELETE":
        serializer = CustomerDiscountRuleSerializer(rule, data={"is_active": False}, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return Response(status=status.HTTP_204_NO_CONTENT)

    if request.method == "PATCH":
        serializer = CustomerDiscountRuleSerializer(rule, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return Response(serializer.data)

    return Response(CustomerDiscountRuleSerializer(rule).data)


@api_view(["GET", "POST"])
@permission_classes([permissions.IsAdminUser])
def admin_promo_codes(request):
    if request.method == "POST":
        serializer = PromoCodeSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        promo = serializer.save()
        return Response(PromoCodeSerializer(promo).data, status=status.HTTP_201_CREATED)

    return Response(PromoCodeSerializer(PromoCode.objects.order_by("code"), many=True).data)


@api_view(["GET", "PATCH"])
@permission_classes([permissions.IsAdminUser])
def admin_promo_code_detail(request, promo_id: int):
    promo = PromoCode.objects.filter(id=promo_id).first()
    if not promo:
        return Response({"detail": "Code promo introuvable."}, status=status.HTTP_404_NOT_FOUND)

    if request.method == "PATCH":
        serializer = PromoCodeSerializer(promo, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return Response(serializer.data)

    return Response(PromoCodeSerializer(promo).data)


@api_view(["POST"])
@permission_classes([permissions.IsAdminUser])
def admin_adjust_points(request):
    serializer = PointsAdjustSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    customer = User.objects.filter(id=serializer.validated_data["customer_id"]).first()
    if not customer:
        return Response({"detail": "Client introuvable."}, status=status.HTTP_404_NOT_FOUND)

    entry, balance = adjust_points(
        customer,
        serializer.validated_data["points"],
        serializer.validated_data["reason"],
        by=request.user.get_username(),
    )
    return Response(
        {
            "transaction": FidelityPointsTransactionSerializer(entry).data,
            "balance": FidelityPointBalanceSerializer(balance).data,
        },
        status=status.HTTP_201_CREATED,
    )


@api_view(["GET"])
@permission_classes([permissions.IsAdminUser])
def admin_analytics(request):
    return Response(loyalty_analytics())
