"""
Taxonomie des erreurs du tunnel de commande.
Chaque erreur porte un status HTTP, un message court (affichable) et un code machine.
Le détail complet (prix attendus, réponses passerelle) reste dans les logs serveur.
"""
from typing import Any, Dict, Optional


class CheckoutError(Exception):
    status_code = 400
    code = "checkout_error"

    def __init__(self, message: str, *, code: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        if status_code:
            self.status_code = status_code

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message, "code": self.code}


class InputValidationError(CheckoutError):
    """Champ client manquant ou mal formé (corrigeable dans le formulaire)."""
    code = "invalid_input"

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        if self.field:
            data["field"] = self.field
        return data


class PriceValidationError(CheckoutError):
    """Montant ou prix déclaré incohérent avec le catalogue."""
    code = "price_mismatch"

    def __init__(self, message: str, item: Optional[str] = None):
        super().__init__(message)
        self.item = item

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        if self.item:
            data["item"] = self.item
        return data


class AmountOutOfBoundsError(CheckoutError):
    code = "amount_out_of_bounds"


class RateLimitExceeded(CheckoutError):
    status_code = 429
    code = "rate_limited"

    def __init__(self, message: str = "Trop de requêtes, veuillez réessayer dans une minute"):
        super().__init__(message)


class GatewayError(CheckoutError):
    """Échec côté passerelle: message assaini + suggestion du canal email."""
    status_code = 502
    code = "gateway_error"

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["fallback"] = "email"
        return data


class GatewayUnavailable(GatewayError):
    status_code = 503
    code = "gateway_unavailable"


class PersistenceError(CheckoutError):
    """Écriture en base impossible: 503 pour que l'émetteur (PayPlug) rejoue la notification."""
    status_code = 503
    code = "storage_unavailable"
