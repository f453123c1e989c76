import logging
import time

from django.conf import settings
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from restaurant.metrics import track_conflict

from .errors import ConcurrentModification

LOGGER = logging.getLogger(__name__)


class StaleVersionError(Exception):
    def __init__(self, model_label, pk, version):
        super().__init__(f"{model_label}#{pk} version {version} is stale")
        self.model_label = model_label
        self.pk = pk
        self.version = version


def save_versioned(instance, fields):
    """UPDATE conditionnel sur ``version`` : la ligne n'est écrite que si personne
    ne l'a modifiée depuis la lecture. Lève StaleVersionError sinon."""
    model = type(instance)
    current = instance.version
    values = {name: getattr(instance, name) for name in fields if name != "version"}
    if any(f.name == "updated_at" for f in model._meta.concrete_fields):
        instance.updated_at = timezone.now()
        values["updated_at"] = instance.updated_at
    values["version"] = F("version") + 1

    updated = model.objects.filter(pk=instance.pk, version=current).update(**values)
    if updated != 1:
        raise StaleVersionError(model._meta.label, instance.pk, current)
    instance.version = current + 1
    return instance


def run_with_retry(fn, scope, attempts=None, backoff=None):
    """Exécute ``fn`` dans une transaction et la rejoue sur conflit de version.

    ``fn`` doit relire ses agrégats à chaque appel.
    """
    attempts = attempts or getattr(settings, "ORDERS_CONCURRENCY_RETRIES", 3)
    if backoff is None:
        backoff = getattr(settings, "ORDERS_CONCURRENCY_BACKOFF", 0.05)

    for attempt in range(1, attempts + 1):
        try:
            with transaction.atomic():
                return fn()
        except StaleVersionError as exc:
            track_conflict(scope)
            LOGGER.warning(
                "stale_version",
                extra={"scope": scope, "attempt": attempt, "model": exc.model_label, "pk": exc.pk},
            )
            if attempt == attempts:
                break
            if backoff:
                time.sleep(backoff * (2 ** (attempt - 1)))

    LOGGER.error("concurrency_retries_exhausted", extra={"scope": scope, "attempts": attempts})
    raise ConcurrentModification(scope, attempts)
