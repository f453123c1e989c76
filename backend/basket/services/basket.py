# backend/basket/services/basket.py
import logging
from decimal import Decimal

from django.db import transaction
from rest_framework import status

from catalog.models import Product, ProductVariation
from orders.errors import OrderError, OrderValidationError, ProductNotFound
from orders.services.orders import create_order, quote_order
from orders.services.pricing import ZERO, quantize_money

from ..models import Basket, BasketItem

LOGGER = logging.getLogger(__name__)


class BasketItemNotFound(OrderError):
    code = "basket_item_not_found"
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Article du panier introuvable."


def get_basket(customer):
    basket, _ = Basket.objects.get_or_create(customer=customer)
    return basket


def _get_item(basket, item_id):
    item = BasketItem.objects.filter(basket=basket, id=item_id).first()
    if item is None:
        raise BasketItemNotFound()
    return item


def _catalog_price(product_id, variation_id):
    product = Product.objects.filter(id=product_id, is_active=True, is_available=True).first()
    if product is None:
        raise ProductNotFound([{"product_id": product_id}])
    variation = None
    if variation_id:
        variation = ProductVariation.objects.filter(id=variation_id, product=product, is_active=True).first()
        if variation is None:
            raise ProductNotFound([{"product_id": product_id, "variation_id": variation_id}])
    price = variation.unit_price if variation else product.base_price
    return product, variation, quantize_money(price)


def add_item(
    customer,
    product_id,
    quantity=1,
    variation_id=None,
    customizations=None,
    customization_price=ZERO,
    special_instructions="",
    parent_id=None,
):
    """Ajoute une ligne au panier. Une ligne principale identique (produit,
    variation, personnalisations, consignes) voit simplement sa quantité augmenter."""
    quantity = int(quantity)
    if quantity < 1:
        raise OrderValidationError("La quantité doit être au moins 1.")
    customization_price = quantize_money(customization_price or ZERO)
    if customization_price < 0:
        raise OrderValidationError("Le supplément ne peut pas être négatif.")
    customizations = customizations or []
    special_instructions = (special_instructions or "").strip()

    basket = get_basket(customer)
    product, variation, unit_price = _catalog_price(product_id, variation_id)

    parent = None
    if parent_id:
        parent = _get_item(basket, parent_id)
        if parent.parent_id:
            raise OrderValidationError("Un sous-article ne peut pas avoir de sous-articles.")

    with transaction.atomic():
        if parent is None:
            existing = (
                BasketItem.objects.select_for_update()
                .filter(
                    basket=basket,
                    parent__isnull=True,
                    product=product,
                    variation=variation,
                    customization_price=customization_price,
                    special_instructions=special_instructions,
                )
                .order_by("id")
            )
            for item in existing:
                if item.customizations == customizations and not item.children.exists():
                    item.quantity += quantity
                    item.save(update_fields=["quantity"])
                    basket.save(update_fields=["updated_at"])
                    return item

        item = BasketItem.objects.create(
            basket=basket,
            parent=parent,
            product=product,
            variation=variation,
            quantity=quantity,
            unit_price=unit_price,
            customization_price=customization_price,
            customizations=customizations,
            special_instructions=special_instructions,
        )
        basket.save(update_fields=["updated_at"])
    return item


def update_item(customer, item_id, quantity=None, special_instructions=None):
    basket = get_basket(customer)
    item = _get_item(basket, item_id)
    fields = []
    if quantity is not None:
        quantity = int(quantity)
        if quantity < 1:
            raise OrderValidationError("La quantité doit être au moins 1.")
        item.quantity = quantity
        fields.append("quantity")
    if special_instructions is not None:
        item.special_instructions = special_instructions.strip()
        fields.append("special_instructions")
    if fields:
        item.save(update_fields=fields)
        basket.save(update_fields=["updated_at"])
    return item


def remove_item(customer, item_id):
    basket = get_basket(customer)
    item = _get_item(basket, item_id)
    # les sous-articles partent avec leur parent (CASCADE)
    item.delete()
    basket.save(update_fields=["updated_at"])


def clear_basket(customer):
    basket = get_basket(customer)
    basket.items.all().delete()
    basket.save(update_fields=["updated_at"])
    return basket


def _line(item):
    return {
        "product_id": item.product_id,
        "variation_id": item.variation_id,
        "quantity": item.quantity,
        "unit_price": item.effective_unit_price,
        "customizations": item.customizations,
        "special_instructions": item.special_instructions,
    }


def basket_lines(basket):
    """Lignes au format attendu par ``orders.services.orders``."""
    items = list(basket.items.select_related("product", "variation").order_by("id"))
    children = {}
    for item in items:
        if item.parent_id:
            children.setdefault(item.parent_id, []).append(item)
    lines = []
    for item in items:
        if item.parent_id:
            continue
        line = _line(item)
        line["children"] = [_line(child) for child in children.get(item.id, [])]
        lines.append(line)
    return lines


def summary(customer, order_type="TAKEAWAY", promo_code=None, points_to_redeem=0, tip=ZERO):
    """Aperçu du panier : aucune remise consommée, aucun point débité."""
    basket = get_basket(customer)
    lines = basket_lines(basket)
    data = {
        "items_count": sum(line["quantity"] for line in lines),
        "pricing": None,
    }
    if lines:
        data["pricing"] = quote_order(
            customer,
            order_type,
            lines,
            tip=Decimal(tip or 0),
            promo_code=promo_code,
            points_to_redeem=points_to_redeem,
        )
    return data


def checkout(customer, order_type="TAKEAWAY", changed_by=None, **order_fields):
    """Transforme le panier en commande puis le vide, dans la même transaction."""
    with transaction.atomic():
        basket = Basket.objects.select_for_update().filter(customer=customer).first()
        lines = basket_lines(basket) if basket else []
        if not lines:
            raise OrderValidationError("Le panier est vide.")
        order = create_order(
            customer=customer,
            order_type=order_type,
            lines=lines,
            changed_by=changed_by or customer,
            **order_fields,
        )
        basket.items.all().delete()
        basket.save(update_fields=["updated_at"])

    LOGGER.info("basket_checkout", extra={"customer_id": customer.pk, "order_id": order.id})
    return order
