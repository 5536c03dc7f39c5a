"""
Modèles de commande côté tunnel (panier, commande unitaire, commande en attente).

- OrderItem / OrderOption: une ligne de panier et ses options (housse...).
- OrderData: commande unitaire issue des paramètres d'URL (mode historique).
- CartSnapshot: vue dérivée et normalisée du panier; seule forme lue par les primitives de prix.
- LegacyOrder | CartOrder: union discriminée des deux points d'entrée.
- PendingOrder: instantané conservé en session pendant l'aller-retour vers la passerelle.
Sérialisation: camelCase (by_alias) pour rester compatible avec le format stocké côté navigateur.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, computed_field, model_validator

ItemType = Literal["instrument", "accessoire", "custom"]
OrderSourceKind = Literal["stock", "custom", "mixed"]


class _Model(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", coerce_numbers_to_str=True)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class OrderOption(_Model):
    type: str = "housse"
    id: Optional[str] = None
    nom: str = ""
    price: float = Field(0, validation_alias=AliasChoices("price", "prix"), ge=0)


class ItemDetails(_Model):
    gamme: Optional[str] = None
    taille: Optional[str] = None
    tonalite: Optional[str] = None
    materiau: Optional[str] = None
    note_count: Optional[int] = Field(None, alias="noteCount")


class OrderItem(_Model):
    id: str
    type: ItemType
    source_id: Optional[str] = Field(None, alias="sourceId")
    nom: str = ""
    unit_price: float = Field(0, alias="unitPrice", ge=0)
    quantity: int = Field(1, ge=1)
    details: ItemDetails = Field(default_factory=ItemDetails)
    options: List[OrderOption] = Field(default_factory=list)

    @computed_field(alias="lineTotal")
    @property
    def line_total(self) -> float:
        """unitPrice * quantity, hors options."""
        return self.unit_price * self.quantity

    @property
    def options_total(self) -> float:
        return sum(o.price for o in self.options)

    @property
    def total(self) -> float:
        return self.line_total + self.options_total


class OrderData(_Model):
    """Commande unitaire (mode paramètres d'URL). Exactement une des deux sources est vraie."""
    product_name: str = Field("D Kurd 9 notes", alias="productName")
    price: int = 1400
    source: Literal["stock", "custom"] = "custom"
    instrument_id: Optional[str] = Field(None, alias="instrumentId")
    notes: str = ""
    note_count: Optional[int] = Field(None, alias="noteCount")
    gamme: str = ""
    taille: str = "53"
    tonalite: str = ""
    materiau: str = ""
    shipping_method: Optional[str] = Field(None, alias="shippingMethod")
    housse: Optional[OrderOption] = None

    @model_validator(mode="after")
    def _check_source(self) -> "OrderData":
        if self.source == "stock" and not self.instrument_id:
            raise ValueError("Une commande en stock exige instrumentId")
        if self.source == "custom" and self.instrument_id:
            raise ValueError("Une commande sur mesure ne référence pas d'instrument en stock")
        return self

    def to_item(self) -> OrderItem:
        """Projette la commande unitaire sur une ligne de panier normalisée."""
        return OrderItem(
            id="legacy",
            type="instrument" if self.source == "stock" else "custom",
            source_id=self.instrument_id,
            nom=self.product_name,
            unit_price=self.price,
            quantity=1,
            details=ItemDetails(
                gamme=self.gamme or None,
                taille=self.taille or None,
                tonalite=self.tonalite or None,
                materiau=self.materiau or None,
                note_count=self.note_count,
            ),
            options=[self.housse] if self.housse else [],
        )


class CartSnapshot(_Model):
    items: List[OrderItem] = Field(default_factory=list)
    total_price: float = Field(0, alias="totalPrice")
    item_count: int = Field(0, alias="itemCount")
    source: OrderSourceKind = "custom"

    @classmethod
    def from_items(cls, items: List[OrderItem]) -> "CartSnapshot":
        """Recalcule total, nombre d'articles et source; jamais édité à la main."""
        return cls(
            items=list(items),
            total_price=sum(i.total for i in items),
            item_count=sum(i.quantity for i in items),
            source=source_of(items),
        )

    @property
    def is_empty(self) -> bool:
        return not self.items


def source_of(items: List[OrderItem]) -> OrderSourceKind:
    """'stock' si uniquement instruments/accessoires, 'custom' si uniquement sur mesure, sinon 'mixed'."""
    has_custom = any(i.type == "custom" for i in items)
    has_stock = any(i.type != "custom" for i in items)
    if has_custom and has_stock:
        return "mixed"
    return "custom" if has_custom or not items else "stock"


class LegacyOrder(_Model):
    kind: Literal["legacy"] = "legacy"
    order: OrderData


class CartOrder(_Model):
    kind: Literal["cart"] = "cart"
    cart: CartSnapshot


OrderSource = Union[LegacyOrder, CartOrder]


class PendingOrder(_Model):
    reference: str
    customer: Dict[str, Any] = Field(default_factory=dict)
    items: List[OrderItem] = Field(default_factory=list, alias="cartItems")
    product_name: str = Field("", alias="productName")
    payment_type: str = Field("full", alias="paymentType")
    installments: Optional[int] = None
    paid_amount: float = Field(0, alias="paidAmount")
    total: float = 0
    shipping_method: Optional[str] = Field(None, alias="shippingMethod")
    shipping_cost: float = Field(0, alias="shippingCost")
    created_at: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat(), alias="createdAt")
