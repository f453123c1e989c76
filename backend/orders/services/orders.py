# backend/orders/services/orders.py
import logging
from decimal import Decimal

from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone

from catalog.models import Product, ProductVariation
from loyalty.errors import InvalidPromoCode
from loyalty.services.discounts import (
    SOURCE_CUSTOMER_RULE,
    SOURCE_PROMO_CODE,
    consume_discount,
    resolve_discount,
)
from loyalty.services.points import current_points, points_to_currency, redeem_points
from restaurant.metrics import track_invariant_breach, track_order_created

from ..concurrency import run_with_retry, save_versioned
from ..errors import ConcurrentModification, OrderInvariantError, OrderValidationError, ProductNotFound
from ..events import emit_order_event
from ..models import Order, OrderItem, OrderStatusHistory
from .pricing import ZERO, compute, compute_subtotal, delivery_fee_for, quantize_money, tax_rate_for

LOGGER = logging.getLogger(__name__)

ORDER_NUMBER_ATTEMPTS = 5
ORDER_TYPES = {code for code, _ in Order.TYPE_CHOICES}
DELIVERY_REQUIRED_FIELDS = ("address_line1", "city", "postal_code")


def _breach(order, check, **context):
    context.update({"order_id": order.pk, "order_number": order.order_number, "check": check})
    LOGGER.error("order_invariant_breach", extra=context)
    track_invariant_breach(check)
    raise OrderInvariantError(check, context)


def check_invariants(order):
    """Vérifie les invariants monétaires avant toute écriture de la commande."""
    money_fields = [
        "subtotal",
        "tax",
        "delivery_fee",
        "discount",
        "fidelity_points_discount",
        "customer_discount_amount",
        "tip",
        "total",
        "total_paid",
        "remaining_amount",
    ]
    negative = [name for name in money_fields if getattr(order, name) < 0]
    if negative:
        _breach(order, "negative_amount", fields=negative)

    expected_total = order.expected_total()
    if order.total != expected_total:
        _breach(order, "total_formula", total=str(order.total), expected=str(expected_total))

    expected_remaining = max(order.total - order.total_paid, ZERO)
    if order.remaining_amount != expected_remaining:
        _breach(
            order,
            "remaining_amount",
            remaining=str(order.remaining_amount),
            expected=str(expected_remaining),
        )
    if order.total_paid + order.remaining_amount != order.total:
        _breach(order, "payment_balance", total_paid=str(order.total_paid), total=str(order.total))


def generate_order_number():
    prefix = timezone.now().strftime("%Y%m%d")
    last = (
        Order.objects.filter(order_number__startswith=prefix)
        .order_by("-order_number")
        .values_list("order_number", flat=True)
        .first()
    )
    sequence = 1
    if last and last[len(prefix):].isdigit():
        sequence = int(last[len(prefix):]) + 1
    return f"{prefix}{sequence:04d}"


def _insert_with_number(order):
    for attempt in range(1, ORDER_NUMBER_ATTEMPTS + 1):
        order.order_number = generate_order_number()
        try:
            with transaction.atomic():
                order.save(force_insert=True)
            return order
        except IntegrityError:
            if Order.objects.filter(order_number=order.order_number).exists():
                LOGGER.warning("order_number_collision", extra={"order_number": order.order_number})
                continue
            raise
    raise ConcurrentModification("order_number", ORDER_NUMBER_ATTEMPTS)


def actor_name(changed_by) -> str:
    if changed_by is None:
        return "system"
    if isinstance(changed_by, str):
        return changed_by or "system"
    return changed_by.get_username() or "system"


def _validate_request(order_type, lines, tip, delivery_address, points_to_redeem, customer, require_address=True):
    errors = {}
    if order_type not in ORDER_TYPES:
        errors["order_type"] = "Type de commande inconnu."
    if not lines:
        errors["lines"] = "Ajoutez au moins un article."
    if tip is not None and Decimal(tip) < 0:
        errors["tip"] = "Le pourboire ne peut pas être négatif."
    if order_type == "DELIVERY" and require_address:
        address = delivery_address or {}
        missing = [key for key in DELIVERY_REQUIRED_FIELDS if not (address.get(key) or "").strip()]
        if missing:
            errors["delivery_address"] = f"Champs obligatoires : {', '.join(missing)}."
    if points_to_redeem:
        if int(points_to_redeem) < 0:
            errors["points_to_redeem"] = "Le nombre de points ne peut pas être négatif."
        elif customer is None:
            errors["points_to_redeem"] = "Un compte client est nécessaire pour utiliser des points."

    line_errors = []
    for index, line in enumerate(lines or []):
        problems = _line_problems(line)
        for child in line.get("children") or []:
            problems.extend(_line_problems(child))
            if child.get("children"):
                problems.append("Un sous-article ne peut pas avoir de sous-articles.")
        if problems:
            line_errors.append({"index": index, "errors": problems})
    if line_errors:
        errors["lines"] = line_errors

    if errors:
        raise OrderValidationError(items=[errors])


def _line_problems(line):
    problems = []
    quantity = line.get("quantity")
    if quantity is None or int(quantity) < 1:
        problems.append("La quantité doit être au moins 1.")
    unit_price = line.get("unit_price")
    if unit_price is not None and Decimal(unit_price) < 0:
        problems.append("Le prix unitaire ne peut pas être négatif.")
    if not line.get("product_id") and (unit_price is None or not line.get("product_name")):
        problems.append("Produit ou prix/nom figé obligatoire.")
    return problems


def _collect_ids(lines):
    product_ids, variation_ids = set(), set()
    for line in lines:
        for item in [line, *(line.get("children") or [])]:
            if item.get("product_id"):
                product_ids.add(item["product_id"])
            if item.get("variation_id"):
                variation_ids.add(item["variation_id"])
    return product_ids, variation_ids


def _snapshot_line(line, product_map, variation_map, missing):
    product = product_map.get(line.get("product_id")) if line.get("product_id") else None
    variation = variation_map.get(line.get("variation_id")) if line.get("variation_id") else None
    if line.get("product_id") and product is None:
        missing.append({"product_id": line.get("product_id")})
        return None
    if line.get("variation_id") and (variation is None or variation.product_id != line.get("product_id")):
        missing.append({"product_id": line.get("product_id"), "variation_id": line.get("variation_id")})
        return None

    unit_price = line.get("unit_price")
    if unit_price is None:
        unit_price = variation.unit_price if variation else product.base_price
    return {
        "product": product,
        "variation": variation,
        "product_name": line.get("product_name") or (product.name if product else ""),
        "variation_name": line.get("variation_name") or (variation.name if variation else ""),
        "quantity": int(line["quantity"]),
        "unit_price": quantize_money(unit_price),
        "customizations": line.get("customizations") or [],
        "special_instructions": line.get("special_instructions") or "",
    }


def resolve_lines(lines):
    """Fige nom/prix/variation de chaque ligne (et de ses sous-articles)."""
    product_ids, variation_ids = _collect_ids(lines)
    product_map = {
        p.id: p for p in Product.objects.filter(id__in=product_ids, is_active=True, is_available=True)
    }
    variation_map = {
        v.id: v
        for v in ProductVariation.objects.select_related("product").filter(id__in=variation_ids, is_active=True)
    }

    missing = []
    resolved = []
    for line in lines:
        parent = _snapshot_line(line, product_map, variation_map, missing)
        children = [
            _snapshot_line(child, product_map, variation_map, missing)
            for child in line.get("children") or []
        ]
        if parent is not None:
            parent["children"] = [c for c in children if c is not None]
            resolved.append(parent)
    if missing:
        raise ProductNotFound(missing)
    return resolved


def flatten(resolved):
    flat = []
    for line in resolved:
        flat.append(line)
        flat.extend(line.get("children") or [])
    return flat


def _create_items(order, resolved):
    def _item(line, parent=None):
        return OrderItem(
            order=order,
            parent=parent,
            product=line["product"],
            variation=line["variation"],
            product_name=line["product_name"],
            variation_name=line["variation_name"],
            quantity=line["quantity"],
            unit_price=line["unit_price"],
            item_total=quantize_money(line["quantity"] * line["unit_price"]),
            customizations=line["customizations"],
            special_instructions=line["special_instructions"],
        )

    parents = OrderItem.objects.bulk_create([_item(line) for line in resolved])
    children = []
    for parent, line in zip(parents, resolved):
        children.extend(_item(child, parent=parent) for child in line.get("children") or [])
    if children:
        OrderItem.objects.bulk_create(children)


def _resolve_discount_for_order(customer, subtotal, promo_code):
    try:
        return resolve_discount(customer, subtotal, promo_code)
    except InvalidPromoCode as exc:
        if getattr(settings, "ORDERS_REJECT_INVALID_PROMO", True):
            raise
        LOGGER.info("promo_code_ignored", extra={"promo_code": exc.promo_code, "reason": exc.reason})
        return resolve_discount(customer, subtotal, None)


def _discount_fields(decision):
    fields = {
        "discount": ZERO,
        "customer_discount_amount": ZERO,
        "discount_percentage": decision.percentage,
        "promo_code": "",
        "customer_discount_rule_id": None,
    }
    if decision.source == SOURCE_CUSTOMER_RULE:
        fields["customer_discount_amount"] = decision.amount
        fields["customer_discount_rule_id"] = decision.rule_id
    elif decision.source == SOURCE_PROMO_CODE:
        fields["discount"] = decision.amount
        fields["promo_code"] = decision.promo_code
    return fields


def price_order(customer, order_type, resolved, tip=ZERO, promo_code=None, points_to_redeem=0, tax_basis=None):
    """Calcul complet (remise + points) sans aucune écriture."""
    flat = flatten(resolved)
    subtotal = compute_subtotal(flat)
    decision = _resolve_discount_for_order(customer, subtotal, promo_code)
    discount_fields = _discount_fields(decision)
    tax_rate = tax_rate_for(order_type)
    delivery_fee = delivery_fee_for(order_type)
    fidelity_discount = points_to_currency(points_to_redeem) if points_to_redeem else ZERO

    pricing = compute(
        flat,
        tax_rate,
        delivery_fee=delivery_fee,
        tip=tip or ZERO,
        discount_amount=discount_fields["discount"],
        fidelity_discount=fidelity_discount,
        customer_discount=discount_fields["customer_discount_amount"],
        tax_basis=tax_basis,
    )
    if pricing.clamped and fidelity_discount > 0:
        raise OrderValidationError(
            "Les points utilisés dépassent le montant de la commande.",
            items=[{"fidelity_points_discount": str(fidelity_discount)}],
        )
    return pricing, decision, discount_fields, tax_rate


def quote_order(customer=None, order_type="TAKEAWAY", lines=None, tip=ZERO, promo_code=None, points_to_redeem=0):
    _validate_request(order_type, lines, tip, None, points_to_redeem, customer, require_address=False)
    resolved = resolve_lines(lines)
    pricing, decision, discount_fields, tax_rate = price_order(
        customer, order_type, resolved, tip=tip, promo_code=promo_code, points_to_redeem=points_to_redeem
    )
    data = {key: str(value) for key, value in pricing.as_dict().items()}
    data["tax_rate"] = str(tax_rate)
    data["discount_percentage"] = str(discount_fields["discount_percentage"])
    data["discount_source"] = decision.source
    data["points_to_redeem"] = int(points_to_redeem or 0)
    if customer is not None:
        data["points_available"] = current_points(customer)
    return data


def create_order(
    customer=None,
    order_type="TAKEAWAY",
    lines=None,
    customer_name="",
    customer_email="",
    customer_phone="",
    delivery_address=None,
    table_number="",
    tip=ZERO,
    promo_code=None,
    points_to_redeem=0,
    notes="",
    changed_by=None,
):
    _validate_request(order_type, lines, tip, delivery_address, points_to_redeem, customer)
    points_to_redeem = int(points_to_redeem or 0)
    actor = actor_name(changed_by)
    address = delivery_address or {}

    if customer is not None:
        customer_name = customer_name or customer.get_full_name() or customer.get_username()
        customer_email = customer_email or customer.email or ""

    with transaction.atomic():
        resolved = resolve_lines(lines)
        pricing, decision, discount_fields, _ = price_order(
            customer,
            order_type,
            resolved,
            tip=tip,
            promo_code=promo_code,
            points_to_redeem=points_to_redeem,
        )
        consume_discount(decision)

        order = Order(
            customer=customer,
            customer_name=customer_name or "",
            customer_email=customer_email or "",
            customer_phone=customer_phone or "",
            order_type=order_type,
            table_number=table_number or "",
            delivery_address_line1=address.get("address_line1", "") if order_type == "DELIVERY" else "",
            delivery_address_line2=address.get("address_line2", "") if order_type == "DELIVERY" else "",
            delivery_city=address.get("city", "") if order_type == "DELIVERY" else "",
            delivery_postal_code=address.get("postal_code", "") if order_type == "DELIVERY" else "",
            delivery_instructions=address.get("instructions", "") if order_type == "DELIVERY" else "",
            subtotal=pricing.subtotal,
            tax=pricing.tax,
            delivery_fee=pricing.delivery_fee,
            tip=pricing.tip,
            discount=pricing.discount,
            fidelity_points_discount=pricing.fidelity_discount,
            customer_discount_amount=pricing.customer_discount,
            discount_percentage=discount_fields["discount_percentage"],
            promo_code=discount_fields["promo_code"],
            customer_discount_rule_id=discount_fields["customer_discount_rule_id"],
            fidelity_points_redeemed=points_to_redeem,
            total=pricing.total,
            total_paid=ZERO,
            remaining_amount=pricing.total,
            notes=notes or "",
        )
        check_invariants(order)
        _insert_with_number(order)
        _create_items(order, resolved)

        if points_to_redeem:
            redeem_points(customer, points_to_redeem, order=order, by=actor)

        OrderStatusHistory.objects.create(
            order=order,
            from_status="CREATED",
            to_status="PENDING",
            changed_by=actor,
            notes="Commande créée",
        )
        emit_order_event(order)

    track_order_created(order_type)
    LOGGER.info(
        "order_created",
        extra={
            "order_id": order.id,
            "order_number": order.order_number,
            "total": str(order.total),
            "discount_source": decision.source,
        },
    )
    return order


def soft_delete_order(order, changed_by=None):
    def _apply():
        fresh = Order.objects.get(pk=order.pk)
        if fresh.is_deleted:
            return fresh
        fresh.is_deleted = True
        fresh.deleted_at = timezone.now()
        save_versioned(fresh, ["is_deleted", "deleted_at"])
        return fresh

    fresh = run_with_retry(_apply, scope="order")
    LOGGER.info(
        "order_soft_deleted",
        extra={"order_id": fresh.id, "by": getattr(changed_by, "pk", None)},
    )
    return fresh
