"""
Schémas d'entrée du service de paiement (corps JSON de POST /api/v1/payments/create).
Volontairement permissifs: les règles métier (email, bornes, adresse Oney) sont appliquées
par le service pour produire des messages par champ.
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from checkout.orders.models import OrderItem


class _Schema(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", coerce_numbers_to_str=True)


class Address(_Schema):
    line1: str = ""
    postal_code: str = Field("", alias="postalCode")
    city: str = ""
    country: str = "FR"

    @field_validator("line1", "postal_code", "city", "country", mode="before")
    @classmethod
    def _strip(cls, v):
        return "" if v is None else str(v).strip()


class Customer(_Schema):
    email: str = ""
    first_name: str = Field("", alias="firstName")
    last_name: str = Field("", alias="lastName")
    phone: str = ""
    address: Optional[Address] = None

    @field_validator("email", "first_name", "last_name", "phone", mode="before")
    @classmethod
    def _strip(cls, v):
        return "" if v is None else str(v).strip()


class PaymentMetadata(_Schema):
    """Écho de la commande; 'items' est la liste des lignes à revalider."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    source: Optional[str] = None
    shipping_method: Optional[str] = Field(None, alias="shippingMethod")
    items: List[OrderItem] = Field(default_factory=list)
    instrument_id: Optional[str] = Field(None, alias="instrumentId")
    gamme: Optional[str] = None
    taille: Optional[str] = None


class PaymentCreateRequest(_Schema):
    amount: Any = None
    customer: Customer = Field(default_factory=Customer)
    payment_type: str = Field("full", alias="paymentType")
    order_reference: Optional[str] = Field(None, alias="orderReference")
    description: Optional[str] = None
    metadata: PaymentMetadata = Field(default_factory=PaymentMetadata)
    return_url: Optional[str] = Field(None, alias="returnUrl")
    cancel_url: Optional[str] = Field(None, alias="cancelUrl")
    installments: Optional[int] = None
    integrated: bool = False

    def extra_metadata(self) -> Dict[str, Any]:
        return dict(self.metadata.model_extra or {})
