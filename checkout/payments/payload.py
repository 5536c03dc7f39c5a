"""
Construction du payload PayPlug (POST /v1/payments).
Variantes:
- paiement comptant / acompte: champ 'amount' (centimes)
- formulaire intégré: integration='INTEGRATED_PAYMENT' (pas de redirection hébergée)
- Oney 3x/4x: payment_method 'oney_x{n}_with_fees', authorized_amount, auto_capture et payment_context.cart
"""
import json
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from checkout.payments.schemas import Customer
from checkout.payments.validator import ValidatedOrder
from checkout.pricing import SHIPPING_COLISSIMO, to_minor_units

BRAND = "Mistral Pans"
CURRENCY = "EUR"
METADATA_MAX_KEYS = 10
METADATA_ITEMS_MAX_CHARS = 500
STOCK_DELIVERY_DAYS = 7
CUSTOM_DELIVERY_DAYS = 90


def sanitize(value: Any, max_length: int = 100) -> str:
    """Supprime '<' et '>', trim, tronque."""
    if value is None:
        return ""
    return str(value).replace("<", "").replace(">", "").strip()[:max_length]


def _compact(block: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in block.items() if v not in (None, "")}


# module checkout.payments.payload
def delivery_type(shipping_method: Optional[str]) -> str:
    """Colissimo -> NEW (adresse de livraison), retrait atelier -> SHIP_TO_STORE."""
    return "NEW" if shipping_method == SHIPPING_COLISSIMO else "SHIP_TO_STORE"


def billing_block(customer: Customer) -> Dict[str, Any]:
    address = customer.address
    return _compact({
        "first_name": sanitize(customer.first_name, 100),
        "last_name": sanitize(customer.last_name, 100),
        "email": customer.email.strip().lower(),
        "mobile_phone_number": sanitize(customer.phone, 20),
        "address1": sanitize(address.line1, 255) if address else None,
        "postcode": sanitize(address.postal_code, 16) if address else None,
        "city": sanitize(address.city, 100) if address else None,
        "country": (address.country if address and address.country else "FR"),
        "language": "fr",
    })


def shipping_block(customer: Customer, shipping_method: Optional[str]) -> Dict[str, Any]:
    block = billing_block(customer)
    block["delivery_type"] = delivery_type(shipping_method)
    block.pop("language", None)
    return block


def build_metadata(
    reference: str,
    payment_type: str,
    order: ValidatedOrder,
    description: Optional[str] = None,
    extra: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Métadonnées compactes (10 clés max côté PayPlug) permettant de reconstruire la commande
    depuis la notification. Les articles sont sérialisés en JSON tronqué.
    """
    items = [
        {"t": line.item.type, "id": line.item.source_id, "n": line.item.nom[:40], "q": line.quantity,
         "p": to_minor_units(line.unit_price)}
        for line in order.lines
    ]
    metadata: Dict[str, Any] = {
        "order_reference": reference,
        "payment_type": payment_type,
        "source": order.source,
        "shipping_method": order.shipping_method,
        "total_cents": order.total_cents,
        "items": json.dumps(items, ensure_ascii=False, separators=(",", ":"))[:METADATA_ITEMS_MAX_CHARS],
    }
    if description:
        metadata["description"] = sanitize(description, 500)
    for key in ("order_id", "customer_id"):
        value = (extra or {}).get(key) or (extra or {}).get(_camel(key))
        if value and len(metadata) < METADATA_MAX_KEYS:
            metadata[key] = sanitize(value, 100)
    return metadata


def _camel(key: str) -> str:
    head, *rest = key.split("_")
    return head + "".join(part.capitalize() for part in rest)


def oney_cart(order: ValidatedOrder, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
    """Une entrée par ligne, exigée par le partenaire de financement."""
    now = now or datetime.now(timezone.utc)
    carrier = order.shipping_method == SHIPPING_COLISSIMO
    cart: List[Dict[str, Any]] = []
    for line in order.lines:
        days = CUSTOM_DELIVERY_DAYS if line.item.type == "custom" else STOCK_DELIVERY_DAYS
        cart.append({
            "brand": BRAND,
            "expected_delivery_date": (now + timedelta(days=days)).strftime("%Y-%m-%d"),
            "delivery_label": "Colissimo" if carrier else "Retrait atelier",
            "delivery_type": "carrier" if carrier else "storepickup",
            "merchant_item_id": sanitize(line.item.source_id or line.item.id, 50),
            "name": sanitize(line.item.nom, 100) or "Article",
            "price": line.total_cents // max(line.quantity, 1),
            "quantity": line.quantity,
            "total_amount": line.total_cents,
        })
    return cart


def build_payplug_payload(
    *,
    order: ValidatedOrder,
    customer: Customer,
    reference: str,
    return_url: str,
    cancel_url: str,
    notification_url: str,
    description: Optional[str] = None,
    installments: Optional[int] = None,
    integrated: bool = False,
    extra_metadata: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    amount = order.expected_cents
    payload: Dict[str, Any] = {
        "currency": CURRENCY,
        "billing": billing_block(customer),
        "shipping": shipping_block(customer, order.shipping_method),
        "hosted_payment": {"return_url": return_url, "cancel_url": cancel_url},
        "notification_url": notification_url,
        "metadata": build_metadata(reference, order.payment_type, order, description, extra_metadata),
    }
    if order.payment_type == "installments" and installments:
        payload["payment_method"] = f"oney_x{installments}_with_fees"
        payload["authorized_amount"] = amount
        payload["auto_capture"] = True
        payload["payment_context"] = {"cart": oney_cart(order)}
    else:
        payload["amount"] = amount
        if integrated:
            payload["integration"] = "INTEGRATED_PAYMENT"
    return payload
