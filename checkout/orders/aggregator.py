"""
Agrégation de la commande: une seule vue normalisée quel que soit le point d'entrée.

- Panier non vide en session: mode panier, prioritaire sur tous les paramètres d'URL.
- Sinon: paramètres d'URL historiques (commande unitaire), avec bornes et valeurs par défaut.
- ?from=panier avec un panier vide: aucun ordre (l'appelant redirige vers la boutique).

Les primitives de prix ne lisent que le CartSnapshot produit par normalize().
"""
import logging
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import ValidationError

from checkout.orders.cart import SessionCart
from checkout.orders.models import CartOrder, CartSnapshot, LegacyOrder, OrderData, OrderItem, OrderOption, OrderSource
from checkout.pricing import (
    MINOR_UNIT_FACTOR,
    PricingConfig,
    deposit_amount,
    from_minor_units,
    installment_schedule,
    is_installment_eligible,
    shipping_cost,
    to_minor_units,
)

logger = logging.getLogger(__name__)

DEFAULT_PRICE = 1400
MIN_URL_PRICE = 1
MAX_URL_PRICE = 20000
INSTALLMENT_COUNTS = (3, 4)


def _int_param(value: Any, default: Optional[int] = None, low: Optional[int] = None, high: Optional[int] = None) -> Optional[int]:
    """Entier borné ou valeur par défaut (jamais d'exception)."""
    try:
        number = int(str(value).strip())
    except (TypeError, ValueError):
        return default
    if (low is not None and number < low) or (high is not None and number > high):
        return default
    return number


def _str_param(params: Mapping[str, Any], key: str, default: str = "") -> str:
    value = params.get(key)
    if value is None:
        return default
    value = str(value).strip()
    return value or default


# module checkout.orders.aggregator
def order_from_params(params: Mapping[str, Any]) -> OrderData:
    """
    Commande unitaire depuis les paramètres d'URL:
    product, price, notes, nb_notes, gamme, taille, tonalite, materiau, instrument,
    housse / housse_nom / housse_prix, livraison.
    Prix hors [1, 20000] ou illisible: 1400.
    """
    instrument_id = _str_param(params, "instrument") or None
    housse = None
    housse_id = _str_param(params, "housse")
    if housse_id:
        housse = OrderOption(
            id=housse_id,
            nom=_str_param(params, "housse_nom", "Housse"),
            price=_int_param(params.get("housse_prix"), 0, 0, MAX_URL_PRICE),
        )
    shipping = _str_param(params, "livraison") or None
    data = {
        "product_name": _str_param(params, "product", "D Kurd 9 notes"),
        "price": _int_param(params.get("price"), DEFAULT_PRICE, MIN_URL_PRICE, MAX_URL_PRICE),
        "source": "stock" if instrument_id else "custom",
        "instrument_id": instrument_id,
        "notes": _str_param(params, "notes"),
        "note_count": _int_param(params.get("nb_notes")),
        "gamme": _str_param(params, "gamme"),
        "taille": _str_param(params, "taille", "53"),
        "tonalite": _str_param(params, "tonalite"),
        "materiau": _str_param(params, "materiau"),
        "shipping_method": shipping,
        "housse": housse,
    }
    try:
        return OrderData(**data)
    except ValidationError:
        logger.warning("orders.aggregator invalid url params, using defaults: %s", dict(params))
        return OrderData()


def resolve_order_source(params: Mapping[str, Any], cart: SessionCart) -> Optional[OrderSource]:
    """
    Choisit le point d'entrée.
    Retourne None uniquement pour ?from=panier avec un panier vide.
    """
    snapshot = cart.snapshot()
    if not snapshot.is_empty:
        return CartOrder(cart=snapshot)
    if _str_param(params, "from") == "panier":
        return None
    return LegacyOrder(order=order_from_params(params))


def normalize(source: OrderSource) -> CartSnapshot:
    if isinstance(source, CartOrder):
        return source.cart
    return CartSnapshot.from_items([source.order.to_item()])


def product_label(snapshot: CartSnapshot) -> str:
    """Libellé court de la commande (description passerelle, récapitulatif)."""
    if not snapshot.items:
        return ""
    if len(snapshot.items) == 1:
        return snapshot.items[0].nom
    return f"{snapshot.items[0].nom} + {len(snapshot.items) - 1} article(s)"


def _euros(amount: Any) -> Union[int, float]:
    """Montant arrondi au centime; entier quand il n'a pas de centimes (affichage et JSON)."""
    cents = to_minor_units(amount)
    if cents % MINOR_UNIT_FACTOR:
        return cents / MINOR_UNIT_FACTOR
    return cents // MINOR_UNIT_FACTOR


def _item_cents(item: OrderItem) -> int:
    return to_minor_units(item.unit_price) * item.quantity + sum(to_minor_units(o.price) for o in item.options)


def compute_summary(snapshot: CartSnapshot, shipping_method: Optional[str], config: PricingConfig) -> Dict[str, Any]:
    """
    Récapitulatif affiché: sous-total, port, total, acompte, solde et échéanciers 3x/4x.
    Toutes les valeurs dérivent du snapshot et de la configuration tarifaire; les sommes
    sont faites au centime, comme côté validation serveur.
    """
    items_total = _euros(from_minor_units(sum(_item_cents(i) for i in snapshot.items)))
    shipping = shipping_cost(shipping_method, config)
    total = _euros(Decimal(str(items_total)) + shipping)
    deposit = deposit_amount(total, config.deposit_rate)
    eligible = is_installment_eligible(total, config)
    schedules: Dict[int, List[Union[int, float]]] = {}
    if eligible:
        schedules = {n: installment_schedule(total, n) for n in INSTALLMENT_COUNTS}
    return {
        "items": [i.to_dict() for i in snapshot.items],
        "item_count": snapshot.item_count,
        "source": snapshot.source,
        "product_name": product_label(snapshot),
        "items_total": items_total,
        "shipping_method": shipping_method,
        "shipping": shipping,
        "total": total,
        "deposit": deposit,
        "deposit_percent": config.taux_acompte,
        "remaining": _euros(Decimal(str(total)) - deposit),
        "installment_eligible": eligible,
        "installments": schedules,
    }
