from django.contrib.auth import get_user_model
from rest_framework import permissions, status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import PermissionDenied
from rest_framework.response import Response

from .models import Order, OrderPayment, TaxConfiguration
from .serializers import (
    OrderCancelSerializer,
    OrderCreateSerializer,
    OrderDelayDecisionSerializer,
    OrderDelaySerializer,
    OrderDetailSerializer,
    OrderFocusSerializer,
    OrderPaymentSerializer,
    OrderQuoteSerializer,
    OrderSerializer,
    OrderStatusSerializer,
    PaymentCreateSerializer,
    PaymentFailSerializer,
    RefundSerializer,
    TaxConfigurationSerializer,
)
from .services.focus import clear_focus, focus_orders, kitchen_queue, set_focus
from .services.orders import create_order, quote_order, soft_delete_order
from .services.payments import confirm_payment, fail_payment, record_payment, refund_payment
from .services.state import approve_delay, cancel_order, delay_order, reject_delay, transition

User = get_user_model()


def _visible_orders(request):
    qs = Order.objects.filter(is_deleted=False)
    if not request.user.is_staff:
        qs = qs.filter(customer=request.user)
    return qs


def _get_order(request, order_id):
    return _visible_orders(request).filter(id=order_id).first()


def _not_found():
    return Response({"detail": "Commande introuvable."}, status=status.HTTP_404_NOT_FOUND)


def _detail(order):
    order = (
        Order.objects.prefetch_related("items", "payments", "status_history").get(pk=order.pk)
    )
    return OrderDetailSerializer(order).data


def _lines_payload(validated_lines):
    return [dict(line, children=[dict(child) for child in line.get("children") or []]) for line in validated_lines]


@api_view(["GET", "POST"])
@permission_classes([permissions.IsAuthenticated])
def orders_list_create(request):
    if request.method == "POST":
        serializer = OrderCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        customer = request.user
        if request.user.is_staff and "customer_id" in data:
            customer = None
            if data["customer_id"]:
                customer = User.objects.filter(id=data["customer_id"]).first()
                if customer is None:
                    return Response({"detail": "Client introuvable."}, status=status.HTTP_404_NOT_FOUND)

        order = create_order(
            customer=customer,
            order_type=data["order_type"],
            lines=_lines_payload(data["lines"]),
            customer_name=data.get("customer_name") or "",
            customer_email=data.get("customer_email") or "",
            customer_phone=data.get("customer_phone") or "",
            delivery_address=data.get("delivery_address"),
            table_number=data.get("table_number") or "",
            tip=data.get("tip") or 0,
            promo_code=data.get("promo_code") or None,
            points_to_redeem=data.get("points_to_redeem") or 0,
            notes=data.get("notes") or "",
            changed_by=request.user,
        )
        return Response(_detail(order), status=status.HTTP_201_CREATED)

    qs = _visible_orders(request).prefetch_related("items")
    for param in ("status", "payment_status", "order_type"):
        value = request.query_params.get(param)
        if value:
            qs = qs.filter(**{param: value.upper()})
    return Response(OrderSerializer(qs.order_by("-order_date")[:200], many=True).data)


@api_view(["POST"])
@permission_classes([permissions.IsAuthenticated])
def order_quote(request):
    serializer = OrderQuoteSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data
    quote = quote_order(
        customer=request.user,
        order_type=data["order_type"],
        lines=_lines_payload(data["lines"]),
        tip=data.get("tip") or 0,
        promo_code=data.get("promo_code") or None,
        points_to_redeem=data.get("points_to_redeem") or 0,
    )
    return Response(quote)


@api_view(["GET", "DELETE"])
@permission_classes([permissions.IsAuthenticated])
def order_detail(request, order_id: int):
    order = _get_order(request, order_id)
    if not order:
        return _not_found()

    if request.method == "DELETE":
        if not request.user.is_staff:
            raise PermissionDenied("Suppression réservée au personnel.")
        soft_delete_order(order, changed_by=request.user)
        return Response(status=status.HTTP_204_NO_CONTENT)

    return Response(_detail(order))


@api_view(["POST"])
@permission_classes([permissions.IsAdminUser])
def order_status(request, order_id: int):
    order = _get_order(request, order_id)
    if not order:
        return _not_found()

    serializer = OrderStatusSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    to_status = serializer.validated_data["status"]
    notes = serializer.validated_data.get("notes") or ""

    if to_status == "CANCELLED":
        order = cancel_order(order, notes, changed_by=request.user)
    else:
        order = transition(order, to_status, changed_by=request.user, notes=notes)
    return Response(_detail(order))


@api_view(["POST"])
@permission_classes([permissions.IsAuthenticated])
def order_cancel(request, order_id: int):
    order = _get_order(request, order_id)
    if not order:
        return _not_found()
    if not request.user.is_staff and order.status != "PENDING":
        raise PermissionDenied("Commande déjà prise en charge : contactez le restaurant.")

    serializer = OrderCancelSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    order = cancel_order(order, serializer.validated_data["reason"], changed_by=request.user)
    return Response(_detail(order))


@api_view(["POST"])
@permission_classes([permissions.IsAdminUser])
def order_delay(request, order_id: int):
    order = _get_order(request, order_id)
    if not order:
        return _not_found()

    serializer = OrderDelaySerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    order = delay_order(
        order,
        serializer.validated_data["minutes"],
        changed_by=request.user,
        notes=serializer.validated_data.get("notes") or "",
    )
    return Response(_detail(order))


@api_view(["POST"])
@permission_classes([permissions.IsAuthenticated])
def order_approve_delay(request, order_id: int):
    order = _get_order(request, order_id)
    if not order:
        return _not_found()
    order = approve_delay(order, changed_by=request.user)
    return Response(_detail(order))


@api_view(["POST"])
@permission_classes([permissions.IsAuthenticated])
def order_reject_delay(request, order_id: int):
    order = _get_order(request, order_id)
    if not order:
        return _not_found()

    serializer = OrderDelayDecisionSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    order = reject_delay(order, changed_by=request.user, reason=serializer.validated_data.get("reason") or "")
    return Response(_detail(order))


@api_view(["POST", "DELETE"])
@permission_classes([permissions.IsAdminUser])
def order_focus(request, order_id: int):
    order = _get_order(request, order_id)
    if not order:
        return _not_found()

    if request.method == "DELETE":
        order = clear_focus(order)
        return Response(OrderSerializer(order).data)

    serializer = OrderFocusSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    order = set_focus(
        order,
        priority=serializer.validated_data.get("priority"),
        reason=serializer.validated_data["reason"],
        by=request.user,
    )
    return Response(OrderSerializer(order).data)


@api_view(["GET"])
@permission_classes([permissions.IsAdminUser])
def orders_kitchen_queue(request):
    return Response(OrderSerializer(kitchen_queue(), many=True).data)


@api_view(["GET"])
@permission_classes([permissions.IsAdminUser])
def orders_focus_list(request):
    return Response(OrderSerializer(focus_orders(), many=True).data)


@api_view(["GET", "POST"])
@permission_classes([permissions.IsAuthenticated])
def order_payments(request, order_id: int):
    order = _get_order(request, order_id)
    if not order:
        return _not_found()

    if request.method == "POST":
        if not request.user.is_staff:
            raise PermissionDenied("Encaissement réservé au personnel.")
        serializer = PaymentCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        payment = record_payment(
            order,
            serializer.validated_data["amount"],
            serializer.validated_data["method"],
            reference=serializer.validated_data.get("transaction_reference") or "",
            confirm=serializer.validated_data.get("confirmed", False),
            created_by=request.user,
        )
        return Response(
            {"payment": OrderPaymentSerializer(payment).data, "order": _detail(order)},
            status=status.HTTP_201_CREATED,
        )

    return Response(OrderPaymentSerializer(order.payments.order_by("payment_date", "id"), many=True).data)


def _get_payment(order, payment_id):
    return OrderPayment.objects.filter(order=order, id=payment_id).first()


@api_view(["POST"])
@permission_classes([permissions.IsAdminUser])
def payment_confirm(request, order_id: int, payment_id: int):
    order = _get_order(request, order_id)
    payment = _get_payment(order, payment_id) if order else None
    if not payment:
        return Response({"detail": "Paiement introuvable."}, status=status.HTTP_404_NOT_FOUND)

    payment = confirm_payment(payment)
    return Response({"payment": OrderPaymentSerializer(payment).data, "order": _detail(order)})


@api_view(["POST"])
@permission_classes([permissions.IsAdminUser])
def payment_fail(request, order_id: int, payment_id: int):
    order = _get_order(request, order_id)
    payment = _get_payment(order, payment_id) if order else None
    if not payment:
        return Response({"detail": "Paiement introuvable."}, status=status.HTTP_404_NOT_FOUND)

    serializer = PaymentFailSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    payment = fail_payment(payment, serializer.validated_data.get("reason") or "")
    return Response({"payment": OrderPaymentSerializer(payment).data, "order": _detail(order)})


@api_view(["POST"])
@permission_classes([permissions.IsAdminUser])
def payment_refund(request, order_id: int, payment_id: int):
    order = _get_order(request, order_id)
    payment = _get_payment(order, payment_id) if order else None
    if not payment:
        return Response({"detail": "Paiement introuvable."}, status=status.HTTP_404_NOT_FOUND)

    serializer = RefundSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    payment = refund_payment(
        payment,
        serializer.validated_data["amount"],
        serializer.validated_data["reason"],
    )
    return Response({"payment": OrderPaymentSerializer(payment).data, "order": _detail(order)})


@api_view(["GET", "POST"])
@permission_classes([permissions.IsAdminUser])
def tax_configurations(request):
    if request.method == "POST":
        serializer = TaxConfigurationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        config = serializer.save()
        return Response(TaxConfigurationSerializer(config).data, status=status.HTTP_201_CREATED)

    return Response(TaxConfigurationSerializer(TaxConfiguration.objects.order_by("name"), many=True).data)


@api_view(["PATCH"])
@permission_classes([permissions.IsAdminUser])
def tax_configuration_detail(request, config_id: int):
    config = TaxConfiguration.objects.filter(id=config_id).first()
    if not config:
        return Response({"detail": "Taxe introuvable."}, status=status.HTTP_404_NOT_FOUND)

    serializer = TaxConfigurationSerializer(config, data=request.data, partial=True)
    serializer.is_valid(raise_exception=True)
    serializer.save()
    return Response(serializer.data)
