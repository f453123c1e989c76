from rest_framework import status


class OrderError(Exception):
    """Base des erreurs métier du moteur de commandes.

    ``code`` et ``status_code`` sont repris tels quels par
    ``utils.drf_exceptions.custom_exception_handler``.
    """

    code = "order_error"
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Opération impossible sur cette commande."

    def __init__(self, detail=None, items=None):
        self.detail = detail or self.default_detail
        self.items = items
        super().__init__(self.detail)


class OrderValidationError(OrderError):
    code = "validation_error"
    default_detail = "Données de commande invalides."


class ProductNotFound(OrderError):
    code = "product_not_found"
    default_detail = "Produit introuvable ou indisponible."

    def __init__(self, items):
        super().__init__(items=items)


class InvalidTransition(OrderError):
    code = "invalid_transition"
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Changement de statut non autorisé."

    def __init__(self, from_status, to_status, detail=None):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            detail or f"Transition {from_status} -> {to_status} non autorisée.",
            items=[{"from": from_status, "to": to_status}],
        )


class InvalidPaymentTransition(InvalidTransition):
    code = "invalid_payment_transition"


class OrderNotPayable(OrderError):
    code = "order_not_payable"
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Commande non encaissable."


class PaymentStateError(OrderError):
    code = "invalid_payment_state"
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Paiement dans un état incompatible."


class RefundExceedsPayment(OrderError):
    code = "refund_exceeds_payment"
    default_detail = "Le remboursement dépasse le montant encore remboursable."


class OverpaymentRejected(OrderError):
    code = "overpayment_rejected"
    default_detail = "Le paiement dépasse le montant restant dû."


class ConcurrentModification(OrderError):
    code = "concurrent_modification"
    status_code = status.HTTP_409_CONFLICT
    default_detail = "La ressource a été modifiée en parallèle. Réessaie dans quelques instants."

    def __init__(self, scope, attempts):
        self.scope = scope
        self.attempts = attempts
        super().__init__()


class OrderInvariantError(OrderError):
    code = "inconsistent_state"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Erreur interne. Réessaie dans quelques instants."

    def __init__(self, check, context):
        self.check = check
        self.context = context
        super().__init__()
