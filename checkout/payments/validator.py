"""
Validation anti-fraude des prix, côté serveur, contre le catalogue.

Chaque ligne (et chaque option de chaque ligne) est revalidée indépendamment:
- instrument en stock: prix catalogue remisé (même arrondi que l'affichage), statut vendable
- sur mesure: prix plancher notes * prix_par_note + malus_taille, arrondi à 5 inférieur
- accessoire / option: prix catalogue, enregistrement actif obligatoire
Une seule ligne invalide rejette toute la requête, avec un message qui nomme l'article.
Le détail (attendu / déclaré) reste dans les logs.
"""
import logging
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, List, Optional

from pydantic import ValidationError

import checkout.catalog.repository as catalog
from checkout import config as app_config
from checkout.errors import InputValidationError, PriceValidationError
from checkout.orders.models import ItemDetails, OrderItem, OrderOption, source_of
from checkout.payments.schemas import PaymentCreateRequest
from checkout.pricing import (
    SHIPPING_METHODS,
    SHIPPING_RETRAIT,
    PricingConfig,
    custom_price_floor,
    deposit_amount,
    discounted_price,
    from_minor_units,
    shipping_cost,
    to_minor_units,
)

logger = logging.getLogger(__name__)

SELLABLE_INSTRUMENT_STATUSES = {"en_ligne", "disponible"}
ACTIVE_ACCESSORY_STATUS = "actif"
MAX_ACCESSORY_QUANTITY = 10
PAYMENT_TYPES = ("full", "acompte", "installments")


@dataclass
class ValidatedLine:
    item: OrderItem
    unit_price: Any
    quantity: int
    options_total: Any = 0

    @property
    def total_cents(self) -> int:
        return to_minor_units(self.unit_price) * self.quantity + to_minor_units(self.options_total)

    @property
    def total(self) -> Decimal:
        return from_minor_units(self.total_cents)


@dataclass
class ValidatedOrder:
    """Totaux cumulés en centimes, ligne par ligne; jamais d'arrondi à l'euro avant la passerelle."""
    lines: List[ValidatedLine] = field(default_factory=list)
    shipping_method: str = SHIPPING_RETRAIT
    shipping: int = 0
    payment_type: str = "full"
    expected_amount: Any = 0

    @property
    def items_total_cents(self) -> int:
        return sum(line.total_cents for line in self.lines)

    @property
    def total_cents(self) -> int:
        return self.items_total_cents + to_minor_units(self.shipping)

    @property
    def items_total(self) -> Decimal:
        return from_minor_units(self.items_total_cents)

    @property
    def total(self) -> Decimal:
        return from_minor_units(self.total_cents)

    @property
    def expected_cents(self) -> int:
        return to_minor_units(self.expected_amount)

    @property
    def source(self) -> str:
        return source_of([line.item for line in self.lines])


def _label(item: OrderItem) -> str:
    return item.nom or item.source_id or item.id


def _reject(item_label: str, reason: str, **detail) -> PriceValidationError:
    logger.warning("payments.validator rejected item=%s reason=%s detail=%s", item_label, reason, detail)
    return PriceValidationError(f"Prix invalide pour « {item_label} »", item=item_label)


# module checkout.payments.validator
def validate_instrument(item: OrderItem) -> float:
    label = _label(item)
    instrument = catalog.fetch_instrument(item.source_id)
    if not instrument:
        logger.warning("payments.validator instrument not found id=%s", item.source_id)
        raise PriceValidationError(f"Article introuvable : « {label} »", item=label)
    if instrument.get("statut") not in SELLABLE_INSTRUMENT_STATUSES:
        logger.warning("payments.validator instrument not sellable id=%s statut=%s", item.source_id, instrument.get("statut"))
        raise PriceValidationError(f"« {label} » n'est plus disponible à la vente", item=label)
    if item.quantity != 1:
        raise InputValidationError(f"Quantité invalide pour « {label} »", field="quantity")
    expected = discounted_price(instrument.get("prix_vente"), instrument.get("promo_percent"))
    declared = item.unit_price
    if declared and declared < expected - app_config.STOCK_PRICE_TOLERANCE:
        raise _reject(label, "stock_price_below_catalog", declared=declared, expected=expected)
    return float(expected)


def validate_custom(item: OrderItem, pricing: PricingConfig) -> float:
    """Plancher recalculé; un nombre de notes absent ou hors plage retombe sur le plancher absolu."""
    label = _label(item)
    malus = catalog.fetch_size_malus(item.details.taille)
    floor = custom_price_floor(item.details.note_count, pricing.prix_par_note, malus)
    declared = item.unit_price
    if not declared:
        return float(floor)
    if declared < floor - app_config.CUSTOM_PRICE_TOLERANCE:
        raise _reject(label, "custom_price_below_floor", declared=declared, floor=floor,
                      note_count=item.details.note_count, taille=item.details.taille, malus=malus)
    return float(declared)


def validate_accessoire(item: OrderItem) -> float:
    label = _label(item)
    if not 1 <= item.quantity <= MAX_ACCESSORY_QUANTITY:
        raise InputValidationError(f"Quantité invalide pour « {label} »", field="quantity")
    return _catalog_accessory_price(item.source_id, label, item.unit_price)


def validate_option(option: OrderOption, parent: OrderItem) -> float:
    label = option.nom or option.type
    return _catalog_accessory_price(option.id, f"{label} ({_label(parent)})", option.price)


def _catalog_accessory_price(accessoire_id: Optional[str], label: str, declared: float) -> float:
    record = catalog.fetch_accessoire(accessoire_id) if accessoire_id else None
    if not record or record.get("statut") != ACTIVE_ACCESSORY_STATUS:
        logger.warning("payments.validator accessory missing or inactive id=%s", accessoire_id)
        raise PriceValidationError(f"Article introuvable : « {label} »", item=label)
    expected = float(record.get("prix") or 0)
    if declared and declared < expected - app_config.STOCK_PRICE_TOLERANCE:
        raise _reject(label, "accessory_price_below_catalog", declared=declared, expected=expected)
    return expected


def validate_item(item: OrderItem, pricing: PricingConfig) -> ValidatedLine:
    if item.type == "instrument":
        unit = validate_instrument(item)
    elif item.type == "accessoire":
        unit = validate_accessoire(item)
    else:
        unit = validate_custom(item, pricing)
    options_total = sum((Decimal(str(validate_option(opt, item))) for opt in item.options), Decimal(0))
    return ValidatedLine(item=item, unit_price=unit, quantity=item.quantity, options_total=options_total)


def _positive_number(value: Any) -> Optional[Decimal]:
    try:
        number = Decimal(str(value))
    except (ArithmeticError, TypeError, ValueError):
        return None
    return number if number.is_finite() and number > 0 else None


def legacy_housse(extra: dict) -> Optional[OrderOption]:
    """Housse d'un appel historique: objet {id, nom, prix} ou identifiant seul (housseId)."""
    housse = extra.get("housse")
    if isinstance(housse, dict) and housse.get("id"):
        try:
            return OrderOption.model_validate({**housse, "type": "housse"})
        except ValidationError:
            raise InputValidationError("Housse invalide", field="housse")
    housse_id = housse if isinstance(housse, str) and housse else extra.get("housseId")
    if not housse_id:
        return None
    return OrderOption(type="housse", id=str(housse_id), nom=str(extra.get("housseNom") or "Housse"),
                       price=float(_positive_number(extra.get("houssePrix") or extra.get("houssePrice")) or 0))


def legacy_declared_price(body: PaymentCreateRequest, pricing: PricingConfig, housse: Optional[OrderOption]) -> float:
    """
    Prix déclaré de la ligne unique d'un appel historique.
    Ordre: prix explicite des métadonnées, sinon déduit du montant (acompte / taux pour 'acompte'),
    port et housse retirés. 0 si rien n'est exploitable (la ligne est alors valorisée au plancher).
    """
    extra = body.extra_metadata()
    for key in ("unitPrice", "price", "prix", "totalPrice"):
        explicit = _positive_number(extra.get(key))
        if explicit is not None:
            return float(explicit)
    cents = _positive_number(body.amount)
    if cents is None:
        return 0
    total = from_minor_units(int(cents))
    if body.payment_type == "acompte":
        rate = _positive_number(pricing.deposit_rate)
        if rate is None:
            return 0
        total = (total / rate).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    total -= shipping_cost(resolve_shipping_method(body.metadata.shipping_method), pricing)
    if housse is not None:
        housse_price = _positive_number(housse.price)
        if housse_price is None:
            record = catalog.fetch_accessoire(housse.id) if housse.id else None
            housse_price = _positive_number((record or {}).get("prix")) or Decimal(0)
        total -= housse_price
    return float(total) if total > 0 else 0


def items_from_request(body: PaymentCreateRequest, pricing: PricingConfig) -> List[OrderItem]:
    """
    Lignes à valider. Sans liste d'articles (appel historique), une ligne est reconstruite
    depuis les métadonnées: instrumentId -> instrument en stock, sinon configuration sur mesure.
    """
    meta = body.metadata
    if meta.items:
        return list(meta.items)
    extra = body.extra_metadata()
    details = ItemDetails(gamme=meta.gamme, taille=meta.taille, note_count=extra.get("noteCount"))
    housse = legacy_housse(extra)
    options = [housse] if housse else []
    if meta.instrument_id:
        return [OrderItem(id="legacy", type="instrument", source_id=meta.instrument_id,
                          nom=body.description or "Instrument", details=details, options=options)]
    return [OrderItem(id="legacy", type="custom", nom=body.description or "Handpan sur mesure",
                      unit_price=legacy_declared_price(body, pricing, housse), details=details, options=options)]


def resolve_shipping_method(value: Optional[str]) -> str:
    if not value:
        return SHIPPING_RETRAIT
    if value not in SHIPPING_METHODS:
        raise InputValidationError("Mode de livraison invalide", field="shippingMethod")
    return value


def validate_order(body: PaymentCreateRequest, pricing: PricingConfig) -> ValidatedOrder:
    """
    Revalide toutes les lignes puis le montant déclaré (centimes) contre le montant attendu
    pour le mode de paiement. Le montant envoyé à la passerelle est toujours expected_cents.
    """
    if body.payment_type not in PAYMENT_TYPES:
        raise InputValidationError("Type de paiement invalide", field="paymentType")
    shipping_method = resolve_shipping_method(body.metadata.shipping_method)
    items = items_from_request(body, pricing)
    if not items:
        raise InputValidationError("Commande vide", field="items")

    order = ValidatedOrder(
        lines=[validate_item(item, pricing) for item in items],
        shipping_method=shipping_method,
        shipping=shipping_cost(shipping_method, pricing),
        payment_type=body.payment_type,
    )
    if body.payment_type == "acompte":
        order.expected_amount = deposit_amount(order.total, pricing.deposit_rate)
    else:
        order.expected_amount = order.total

    try:
        declared_cents = int(body.amount)
    except (TypeError, ValueError):
        raise InputValidationError("Montant invalide", field="amount")
    if declared_cents < order.expected_cents - app_config.AMOUNT_TOLERANCE_CENTS:
        logger.warning(
            "payments.validator amount below expected declared=%s expected=%s type=%s",
            declared_cents, order.expected_cents, body.payment_type,
        )
        raise PriceValidationError("Montant de la commande invalide")
    if declared_cents != order.expected_cents:
        logger.info("payments.validator declared=%s replaced by expected=%s", declared_cents, order.expected_cents)
    return order
