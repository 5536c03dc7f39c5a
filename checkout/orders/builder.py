"""
Construction de la requête de paiement (indépendante du mode de paiement).
Produit le même objet JSON que celui accepté par POST /api/v1/payments/create:
{ amount (centimes), customer, paymentType, description, metadata, installments?, integrated? }
"""
from typing import Any, Dict, Mapping, Optional

from checkout.orders.aggregator import product_label
from checkout.orders.models import CartSnapshot
from checkout.pricing import to_minor_units

PAYMENT_LABELS = {
    "full": "Paiement",
    "acompte": "Acompte",
    "installments": "Paiement en {n}x",
}


def _field(form: Mapping[str, Any], *keys: str) -> str:
    for key in keys:
        value = form.get(key)
        if value is not None and str(value).strip():
            return str(value).strip()
    return ""


# module checkout.orders.builder
def customer_from_form(form: Mapping[str, Any]) -> Dict[str, Any]:
    """Champs du formulaire (noms français ou camelCase) -> bloc customer."""
    customer: Dict[str, Any] = {
        "email": _field(form, "email").lower(),
        "firstName": _field(form, "firstname", "prenom", "firstName"),
        "lastName": _field(form, "lastname", "nom", "lastName"),
        "phone": _field(form, "phone", "telephone"),
    }
    address = {
        "line1": _field(form, "address", "adresse", "line1"),
        "postalCode": _field(form, "postalCode", "code_postal", "postal_code"),
        "city": _field(form, "city", "ville"),
        "country": _field(form, "country", "pays") or "FR",
    }
    if address["line1"] or address["postalCode"] or address["city"]:
        customer["address"] = address
    return customer


def build_metadata(snapshot: CartSnapshot, shipping_method: Optional[str]) -> Dict[str, Any]:
    """Écho de la commande permettant de la reconstruire depuis la notification."""
    metadata: Dict[str, Any] = {
        "source": snapshot.source,
        "shippingMethod": shipping_method or "retrait",
        "items": [i.to_dict() for i in snapshot.items],
        "itemCount": snapshot.item_count,
        "totalPrice": snapshot.total_price,
    }
    if len(snapshot.items) == 1:
        first = snapshot.items[0]
        if first.source_id:
            metadata["instrumentId"] = first.source_id
        if first.details.gamme:
            metadata["gamme"] = first.details.gamme
        if first.details.taille:
            metadata["taille"] = first.details.taille
    return metadata


def build_payment_request(
    *,
    customer: Dict[str, Any],
    snapshot: CartSnapshot,
    shipping_method: Optional[str],
    payment_type: str,
    amount: Any,
    installments: Optional[int] = None,
    integrated: bool = False,
    order_reference: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Assemble l'objet commande envoyé au service de paiement.
    - amount: montant affiché (euros) du mode choisi, converti en centimes
    - installments: 3 ou 4, uniquement pour paymentType='installments'
    """
    label = PAYMENT_LABELS.get(payment_type, "Paiement").format(n=installments or "")
    request: Dict[str, Any] = {
        "amount": to_minor_units(amount),
        "customer": customer,
        "paymentType": payment_type,
        "description": f"{label} - {product_label(snapshot) or 'Commande Mistral Pans'}",
        "metadata": build_metadata(snapshot, shipping_method),
    }
    if order_reference:
        request["orderReference"] = order_reference
    if payment_type == "installments":
        request["installments"] = installments
    if integrated:
        request["integrated"] = True
    return request
