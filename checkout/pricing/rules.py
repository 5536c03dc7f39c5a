"""
Formules de prix partagées entre l'affichage de la commande et la validation anti-fraude.

Ce module est l'unique source des règles d'arrondi: le récapitulatif de commande
(checkout.orders) et le validateur serveur (checkout.payments.validator) l'importent tous
les deux, de sorte qu'un prix affiché et un prix revalidé ne peuvent pas diverger.
Toute modification doit incrémenter PRICING_RULES_VERSION.
"""
from decimal import Decimal, ROUND_FLOOR
from typing import Any, Optional

PRICING_RULES_VERSION = "2"

# Arrondi commercial: tranche de 5 € inférieure
PRICE_STEP = 5

# Plage de notes supportée par le configurateur
MIN_NOTES = 9
MAX_NOTES = 17


def _to_decimal(value: Any) -> Decimal:
    return Decimal(str(value or 0))


def round_down_to_step(value: Any, step: int = PRICE_STEP) -> int:
    """floor(value / step) * step, calculé en Decimal pour éviter les artefacts flottants."""
    quotient = (_to_decimal(value) / Decimal(step)).to_integral_value(rounding=ROUND_FLOOR)
    return int(quotient) * step


def discounted_price(price: Any, promo_percent: Any = None) -> int:
    """
    Prix d'un instrument en stock après remise.
    - Sans remise (None, 0, négative): prix catalogue tronqué à l'euro.
    - Avec remise: floor(prix * (1 - remise/100) / 5) * 5.
    Ex: 1200 € avec 10 % -> 1080 €.
    """
    try:
        percent = _to_decimal(promo_percent)
    except Exception:
        percent = Decimal(0)
    base = _to_decimal(price)
    if percent <= 0:
        return int(base.to_integral_value(rounding=ROUND_FLOOR))
    return round_down_to_step(base * (Decimal(100) - percent) / Decimal(100))


def is_supported_note_count(note_count: Any) -> bool:
    return isinstance(note_count, int) and not isinstance(note_count, bool) and MIN_NOTES <= note_count <= MAX_NOTES


def custom_price_floor(note_count: Optional[int], per_note_price: Any, size_malus: Any = 0) -> int:
    """
    Prix plancher d'une configuration sur mesure: notes * prix_par_note + malus_taille,
    arrondi à la tranche de 5 inférieure.

    Un nombre de notes absent ou hors plage [9, 17] ne désactive jamais le contrôle:
    on retombe sur le plancher absolu (9 notes, sans malus).
    """
    if not is_supported_note_count(note_count):
        return round_down_to_step(Decimal(MIN_NOTES) * _to_decimal(per_note_price))
    return round_down_to_step(Decimal(note_count) * _to_decimal(per_note_price) + _to_decimal(size_malus))
