from rest_framework import status


class LoyaltyError(Exception):
    code = "loyalty_error"
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Opération de fidélité impossible."

    def __init__(self, detail=None, items=None):
        self.detail = detail or self.default_detail
        self.items = items
        super().__init__(self.detail)


class LoyaltyValidationError(LoyaltyError):
    code = "validation_error"


class InsufficientPoints(LoyaltyError):
    code = "insufficient_points"
    default_detail = "Solde de points insuffisant."

    def __init__(self, requested, available):
        self.requested = requested
        self.available = available
        super().__init__(items=[{"requested": requested, "available": available}])


class PointsAlreadyAwarded(LoyaltyError):
    code = "points_already_awarded"
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Points déjà attribués pour cette commande."

    def __init__(self, order_id):
        self.order_id = order_id
        super().__init__(items=[{"order_id": order_id}])


class InvalidPromoCode(LoyaltyError):
    code = "invalid_promo"
    default_detail = "Code promo invalide."

    def __init__(self, promo_code, reason):
        self.promo_code = promo_code
        self.reason = reason
        super().__init__(items=[{"promo_code": promo_code, "reason": reason}])


class DiscountNoLongerAvailable(LoyaltyError):
    code = "discount_unavailable"
    status_code = status.HTTP_409_CONFLICT
    default_detail = "La remise n'est plus disponible. Recalcule le panier."
