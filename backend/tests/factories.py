import factory
from django.contrib.auth import get_user_model

from catalog.models import Product, ProductVariation
from loyalty.models import CustomerDiscountRule, PointEarningRule, PromoCode
from reservations.models import Table

User = get_user_model()


class UserFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = User

    username = factory.Sequence(lambda n: f"user{n}")
    email = factory.LazyAttribute(lambda o: f"{o.username}@example.com")
    password = factory.PostGenerationMethodCall("set_password", "password123")


class StaffFactory(UserFactory):
    username = factory.Sequence(lambda n: f"staff{n}")
    is_staff = True


class ProductFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Product

    name = factory.Sequence(lambda n: f"Plat {n}")
    category = "MAIN"
    base_price = "10.00"


class ProductVariationFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = ProductVariation

    product = factory.SubFactory(ProductFactory)
    name = factory.Sequence(lambda n: f"Taille {n}")
    price_modifier = "2.00"


class PointEarningRuleFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = PointEarningRule

    name = factory.Sequence(lambda n: f"Palier {n}")
    min_order_amount = "0.00"
    max_order_amount = None
    points_awarded = 10
    priority = 1


class CustomerDiscountRuleFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = CustomerDiscountRule

    customer = factory.SubFactory(UserFactory)
    name = factory.Sequence(lambda n: f"Remise fidèle {n}")
    discount_type = "PERCENTAGE"
    value = "10.00"


class PromoCodeFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = PromoCode

    code = factory.Sequence(lambda n: f"PROMO{n}")
    discount_type = "PERCENTAGE"
    value = "10.00"


class TableFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Table

    number = factory.Sequence(lambda n: f"T{n}")
    max_guests = 4
