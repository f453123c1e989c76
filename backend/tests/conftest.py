import pytest


@pytest.fixture(autouse=True)
def engine_settings(settings):
    # pas d'attente entre deux essais, 1 point = 0,10 €
    settings.ORDERS_CONCURRENCY_BACKOFF = 0
    settings.ORDERS_DEFAULT_TAX_RATE = 0
    settings.LOYALTY_POINT_VALUE = "0.10"
    return settings
