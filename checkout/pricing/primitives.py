"""
Primitives de prix pures (pas de DB, pas de HTTP).
Toutes les fonctions lisent une forme normalisée (montants en euros entiers, méthode de livraison)
et une PricingConfig; elles ne connaissent ni le panier ni les paramètres d'URL.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, List, Optional, Tuple, Union

from .config import PricingConfig

SHIPPING_COLISSIMO = "colissimo"
SHIPPING_RETRAIT = "retrait"
SHIPPING_METHODS = (SHIPPING_COLISSIMO, SHIPPING_RETRAIT)

# Facteur de sous-unité de l'euro
MINOR_UNIT_FACTOR = 100

# Limites du partenaire de financement (euros), indépendantes de la configuration publique
ONEY_GATEWAY_MIN = 100
ONEY_GATEWAY_MAX = 3000


def shipping_cost(method: Optional[str], config: PricingConfig) -> int:
    """Frais fixes Colissimo (configurables), 0 pour le retrait atelier ou l'absence de choix."""
    if method == SHIPPING_COLISSIMO:
        return int(config.frais_expedition_colissimo)
    return 0


def total_with_shipping(items_total: Any, method: Optional[str], config: PricingConfig) -> int:
    return int(items_total or 0) + shipping_cost(method, config)


def deposit_amount(total: Any, deposit_rate: Any) -> int:
    """Acompte = round(total * taux), arrondi commercial (0.5 -> supérieur). 1365 * 0.30 -> 410."""
    value = Decimal(str(total or 0)) * Decimal(str(deposit_rate or 0))
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def installment_split(total: Any, n: int) -> List[int]:
    """
    Découpe total en n échéances entières.
    base = floor(total / n); le reste (total - base * n) est entièrement porté par la première
    échéance. sum(échéances) == total et seule la première peut différer.
    """
    if n < 1:
        raise ValueError("Le nombre d'échéances doit être >= 1")
    total = int(total or 0)
    if total < 0:
        raise ValueError("Le montant à échelonner doit être positif")
    base = total // n
    remainder = total - base * n
    return [base + remainder] + [base] * (n - 1)


def installment_schedule(total: Any, n: int) -> List[Union[int, float]]:
    """Échéancier affichable: en euros entiers si le total l'est, sinon découpé au centime."""
    cents = to_minor_units(total)
    if cents % MINOR_UNIT_FACTOR == 0:
        return installment_split(cents // MINOR_UNIT_FACTOR, n)
    return [c / MINOR_UNIT_FACTOR for c in installment_split(cents, n)]


def installment_bounds(config: PricingConfig) -> Tuple[float, float]:
    """Bornes effectives (euros): intersection de la configuration et des limites du partenaire."""
    return max(config.oney_min, ONEY_GATEWAY_MIN), min(config.oney_max, ONEY_GATEWAY_MAX)


def is_installment_eligible(total: Any, config: PricingConfig) -> bool:
    """Paiement en plusieurs fois proposé uniquement entre les bornes effectives."""
    try:
        value = float(total)
    except (TypeError, ValueError):
        return False
    low, high = installment_bounds(config)
    return low <= value <= high


def to_minor_units(amount: Any, factor: int = MINOR_UNIT_FACTOR) -> int:
    """Euros -> centimes entiers (jamais de fraction de centime envoyée à la passerelle)."""
    value = Decimal(str(amount or 0)) * factor
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(amount_cents: Any, factor: int = MINOR_UNIT_FACTOR) -> Decimal:
    return Decimal(int(amount_cents or 0)) / factor


def _group_thousands(value: str) -> str:
    # Espace fine insécable comme séparateur de milliers (format fr-FR)
    return value.replace(",", "\u202f")


def format_price(amount: Any) -> str:
    """Prix affiché à l'euro: 1510 -> '1 510 €'; un montant avec centimes les garde: 34.9 -> '34,90 €'."""
    cents = to_minor_units(amount)
    if cents % MINOR_UNIT_FACTOR:
        return format_amount(cents)
    value = cents // MINOR_UNIT_FACTOR
    return f"{_group_thousands(f'{value:,}')}\u00a0€"


def format_amount(amount_cents: Any) -> str:
    """Montant en centimes formaté avec décimales: 151000 -> '1 510,00 €'."""
    euros = Decimal(int(amount_cents or 0)) / MINOR_UNIT_FACTOR
    text = f"{euros:,.2f}".replace(".", "#")
    return f"{_group_thousands(text).replace('#', ',')}\u00a0€"
