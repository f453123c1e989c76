from django.http import HttpResponse
from prometheus_client import CONTENT_TYPE_LATEST, Counter, generate_latest

ORDERS_CREATED = Counter(
    "restaurant_orders_created_total",
    "Orders placed",
    ["order_type"],
)
ORDER_TRANSITIONS = Counter(
    "restaurant_order_transitions_total",
    "Accepted order status transitions",
    ["to_status"],
)
PAYMENT_EVENTS = Counter(
    "restaurant_payments_total",
    "Payment ledger mutations",
    ["method", "status"],
)
CONCURRENCY_CONFLICTS = Counter(
    "restaurant_concurrency_conflicts_total",
    "Optimistic concurrency conflicts (stale version)",
    ["scope"],
)
INVARIANT_BREACHES = Counter(
    "restaurant_invariant_breaches_total",
    "Aborted writes caused by inconsistent aggregates",
    ["check"],
)
POINTS_EVENTS = Counter(
    "restaurant_points_total",
    "Fidelity ledger entries",
    ["transaction_type"],
)


def metrics_view(request):
    payload = generate_latest()
    return HttpResponse(payload, content_type=CONTENT_TYPE_LATEST)


def track_order_created(order_type):
    ORDERS_CREATED.labels(order_type=order_type or "unknown").inc()


def track_transition(to_status):
    ORDER_TRANSITIONS.labels(to_status=to_status or "unknown").inc()


def track_payment(method, status):
    PAYMENT_EVENTS.labels(method=method or "unknown", status=status or "unknown").inc()


def track_conflict(scope):
    CONCURRENCY_CONFLICTS.labels(scope=scope or "unknown").inc()


def track_invariant_breach(check):
    INVARIANT_BREACHES.labels(check=check or "unknown").inc()


def track_points(transaction_type):
    POINTS_EVENTS.labels(transaction_type=transaction_type or "unknown").inc()
