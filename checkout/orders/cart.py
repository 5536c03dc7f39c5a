"""
Panier multi-articles stocké dans la session signée (équivalent du sessionStorage navigateur).
Le panier ne connaît pas les prix de référence: il transporte les prix affichés, revalidés côté
serveur au moment du paiement.
"""
import logging
import uuid
from typing import Any, List, MutableMapping, Optional

from pydantic import ValidationError

from checkout.errors import InputValidationError
from checkout.orders.models import CartSnapshot, ItemDetails, OrderItem, OrderOption, source_of

logger = logging.getLogger(__name__)

CART_SESSION_KEY = "mistral_cart"
MAX_CART_ITEMS = 20
MAX_ACCESSORY_QUANTITY = 10


def _new_item_id() -> str:
    return f"cart_{uuid.uuid4().hex[:12]}"


# module checkout.orders.cart
class SessionCart:
    """Opérations panier sur un mapping de session (request.session)."""

    def __init__(self, session: MutableMapping[str, Any]):
        self._session = session

    def items(self) -> List[OrderItem]:
        raw = self._session.get(CART_SESSION_KEY) or []
        items: List[OrderItem] = []
        for entry in raw if isinstance(raw, list) else []:
            try:
                items.append(OrderItem.model_validate(entry))
            except ValidationError:
                logger.warning("orders.cart dropping malformed cart line: %s", entry)
        return items

    def _save(self, items: List[OrderItem]) -> None:
        self._session[CART_SESSION_KEY] = [i.model_dump(by_alias=True, mode="json", exclude_none=True) for i in items]

    def _ensure_room(self, items: List[OrderItem]) -> None:
        if len(items) >= MAX_CART_ITEMS:
            raise InputValidationError(f"Le panier est limité à {MAX_CART_ITEMS} articles")

    def get(self, item_id: str) -> Optional[OrderItem]:
        return next((i for i in self.items() if i.id == item_id), None)

    def add_instrument(self, instrument: dict, housse: Optional[dict] = None) -> OrderItem:
        """
        Ajoute un instrument en stock. Un instrument est unique: s'il est déjà présent
        (même sourceId), la ligne existante est retournée sans doublon.
        """
        items = self.items()
        source_id = str(instrument.get("id") or "")
        if not source_id:
            raise InputValidationError("Instrument inconnu", field="id")
        existing = next((i for i in items if i.type == "instrument" and i.source_id == source_id), None)
        if existing:
            return existing
        self._ensure_room(items)
        item = OrderItem(
            id=_new_item_id(),
            type="instrument",
            source_id=source_id,
            nom=instrument.get("nom") or "Handpan",
            unit_price=float(instrument.get("prix") or 0),
            quantity=1,
            details=ItemDetails(
                gamme=instrument.get("gamme"),
                taille=instrument.get("taille"),
                tonalite=instrument.get("tonalite"),
                materiau=instrument.get("materiau"),
                note_count=instrument.get("nombre_notes") or instrument.get("noteCount"),
            ),
            options=[OrderOption.model_validate(housse)] if housse else [],
        )
        items.append(item)
        self._save(items)
        return item

    def add_accessoire(self, accessoire: dict, quantity: int = 1) -> OrderItem:
        """Ajoute un accessoire; même accessoire déjà présent = quantité incrémentée (max 10)."""
        items = self.items()
        source_id = str(accessoire.get("id") or "")
        if not source_id:
            raise InputValidationError("Accessoire inconnu", field="id")
        quantity = max(1, int(quantity or 1))
        for idx, existing in enumerate(items):
            if existing.type == "accessoire" and existing.source_id == source_id:
                qty = min(existing.quantity + quantity, MAX_ACCESSORY_QUANTITY)
                items[idx] = existing.model_copy(update={"quantity": qty})
                self._save(items)
                return items[idx]
        self._ensure_room(items)
        item = OrderItem(
            id=_new_item_id(),
            type="accessoire",
            source_id=source_id,
            nom=accessoire.get("nom") or "Accessoire",
            unit_price=float(accessoire.get("prix") or 0),
            quantity=min(quantity, MAX_ACCESSORY_QUANTITY),
        )
        items.append(item)
        self._save(items)
        return item

    def add_custom(self, config: dict, housse: Optional[dict] = None) -> OrderItem:
        """Ajoute une configuration sur mesure (toujours une nouvelle ligne)."""
        items = self.items()
        self._ensure_room(items)
        note_count = config.get("noteCount") or config.get("nombre_notes")
        item = OrderItem(
            id=_new_item_id(),
            type="custom",
            nom=config.get("nom") or f"Handpan {config.get('gamme') or ''} {note_count or ''} notes".replace("  ", " ").strip(),
            unit_price=float(config.get("prix") or 0),
            quantity=1,
            details=ItemDetails(
                gamme=config.get("gamme"),
                taille=config.get("taille"),
                tonalite=config.get("tonalite"),
                materiau=config.get("materiau"),
                note_count=note_count,
            ),
            options=[OrderOption.model_validate(housse)] if housse else [],
        )
        items.append(item)
        self._save(items)
        return item

    def remove_item(self, item_id: str) -> bool:
        items = self.items()
        kept = [i for i in items if i.id != item_id]
        if len(kept) == len(items):
            return False
        self._save(kept)
        return True

    def update_quantity(self, item_id: str, quantity: int) -> Optional[OrderItem]:
        """
        Modifie la quantité d'un accessoire (les instruments restent à 1).
        Quantité < 1: la ligne est supprimée.
        """
        items = self.items()
        for idx, item in enumerate(items):
            if item.id != item_id:
                continue
            if item.type != "accessoire":
                raise InputValidationError("Seuls les accessoires ont une quantité modifiable", field="quantity")
            if quantity < 1:
                del items[idx]
                self._save(items)
                return None
            items[idx] = item.model_copy(update={"quantity": min(int(quantity), MAX_ACCESSORY_QUANTITY)})
            self._save(items)
            return items[idx]
        return None

    def update_item_option(self, item_id: str, option: Optional[dict]) -> Optional[OrderItem]:
        """Remplace l'option du même type (ex: housse) d'une ligne; option=None retire toutes les options."""
        items = self.items()
        for idx, item in enumerate(items):
            if item.id != item_id:
                continue
            if option is None:
                options: List[OrderOption] = []
            else:
                new_opt = OrderOption.model_validate(option)
                options = [o for o in item.options if o.type != new_opt.type] + [new_opt]
            items[idx] = item.model_copy(update={"options": options})
            self._save(items)
            return items[idx]
        return None

    def clear(self) -> None:
        self._session.pop(CART_SESSION_KEY, None)

    def is_empty(self) -> bool:
        return not self.items()

    def item_count(self) -> int:
        return sum(i.quantity for i in self.items())

    def item_total(self, item_id: str) -> float:
        item = self.get(item_id)
        return item.total if item else 0

    def total(self) -> float:
        return sum(i.total for i in self.items())

    def source(self) -> str:
        return source_of(self.items())

    def snapshot(self) -> CartSnapshot:
        return CartSnapshot.from_items(self.items())
