"""
Orchestration de la création de paiement (hors rate limiting, appliqué par la route).

Étapes, dans l'ordre:
  1) Lecture du corps (schémas permissifs)
  2) Revalidation des prix contre le catalogue (validator.validate_order)
  3) Bornes de montant (globales, puis spécifiques Oney)
  4) Validation client (email, nom; téléphone + adresse complète pour Oney)
  5) Référence de commande (fournie ou générée)
  6) Payload PayPlug (comptant/acompte, intégré, Oney)
  7) Appel passerelle
  8) Enveloppe de réponse
Aucune écriture côté serveur avant l'appel passerelle: un échec peut être rejoué sans effet de bord.
"""
import logging
import re
from typing import Any, Dict, Optional

from pydantic import ValidationError

from checkout import config as app_config
from checkout.errors import AmountOutOfBoundsError, InputValidationError
from checkout.payments import payplug_client
from checkout.payments.payload import build_payplug_payload
from checkout.payments.reference import clean_reference, generate_order_reference
from checkout.payments.schemas import Customer, PaymentCreateRequest
from checkout.payments.validator import ValidatedOrder, validate_order
from checkout.pricing import (
    DEFAULT_PRICING,
    PricingConfig,
    format_amount,
    format_price,
    installment_bounds,
    load_pricing_config,
    to_minor_units,
)

logger = logging.getLogger(__name__)

MIN_AMOUNT_CENTS = 99
MAX_AMOUNT_CENTS = 2_000_000
INSTALLMENT_COUNTS = (3, 4)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def is_valid_email(email: Optional[str]) -> bool:
    return bool(email) and len(email) <= 254 and bool(EMAIL_RE.match(email))


def parse_request(body: Dict[str, Any]) -> PaymentCreateRequest:
    if not isinstance(body, dict):
        raise InputValidationError("Requête invalide")
    try:
        return PaymentCreateRequest.model_validate(body)
    except ValidationError as e:
        first = (e.errors() or [{}])[0]
        loc = ".".join(str(p) for p in first.get("loc", ()))
        logger.info("payments.service invalid body: %s", e.errors())
        raise InputValidationError("Requête invalide", field=loc or None)


def check_amount_bounds(order: ValidatedOrder, installments: Optional[int], pricing: PricingConfig = DEFAULT_PRICING) -> None:
    """Bornes globales, puis bornes Oney partagées avec l'affichage (installment_bounds)."""
    amount = order.expected_cents
    if not MIN_AMOUNT_CENTS <= amount <= MAX_AMOUNT_CENTS:
        raise AmountOutOfBoundsError("Montant hors des limites autorisées")
    if order.payment_type == "installments":
        if installments not in INSTALLMENT_COUNTS:
            raise InputValidationError("Le paiement en plusieurs fois ne supporte que 3 ou 4 échéances", field="installments")
        low, high = installment_bounds(pricing)
        if not to_minor_units(low) <= amount <= to_minor_units(high):
            raise AmountOutOfBoundsError(
                f"Montant non éligible au paiement en plusieurs fois ({format_price(low)} à {format_price(high)})"
            )


def validate_customer(customer: Customer, payment_type: str) -> None:
    """Messages par champ; Oney exige en plus un téléphone et une adresse postale complète."""
    if not is_valid_email(customer.email):
        raise InputValidationError("Email client invalide", field="email")
    if not customer.first_name:
        raise InputValidationError("Prénom requis", field="firstName")
    if not customer.last_name:
        raise InputValidationError("Nom requis", field="lastName")
    if payment_type != "installments":
        return
    if not customer.phone:
        raise InputValidationError("Téléphone requis pour le paiement en plusieurs fois", field="phone")
    address = customer.address
    for attr, key, label in (("line1", "address", "Adresse"), ("postal_code", "postalCode", "Code postal"), ("city", "city", "Ville")):
        if not address or not getattr(address, attr):
            raise InputValidationError(f"{label} requis(e) pour le paiement en plusieurs fois", field=key)


def _trusted_url(candidate: Optional[str], default: str) -> str:
    """URLs de retour acceptées uniquement sur le domaine de la boutique."""
    if candidate and candidate.startswith(app_config.BASE_URL):
        return candidate
    return default


def return_urls(reference: str, body: PaymentCreateRequest) -> Dict[str, str]:
    base = f"{app_config.BASE_URL}{app_config.CHECKOUT_PATH}"
    return {
        "return_url": _trusted_url(body.return_url, f"{base}?status=success&ref={reference}"),
        "cancel_url": _trusted_url(body.cancel_url, f"{base}?status=cancelled&ref={reference}"),
        "notification_url": f"{app_config.BASE_URL}{app_config.NOTIFICATION_PATH}",
    }


# module checkout.payments.service
def create_payment(body: Dict[str, Any], client_ip: str = "unknown", pricing: Optional[PricingConfig] = None) -> Dict[str, Any]:
    """
    Crée un paiement PayPlug à partir du corps JSON de la requête.
    Retour: {success, paymentId, paymentUrl, reference, amount, amountFormatted, expiresAt, integrated}
    Erreurs: CheckoutError (InputValidationError, PriceValidationError, AmountOutOfBoundsError, GatewayError)
    """
    request = parse_request(body)
    pricing = pricing or load_pricing_config()

    order = validate_order(request, pricing)
    check_amount_bounds(order, request.installments, pricing)
    validate_customer(request.customer, request.payment_type)

    reference = clean_reference(request.order_reference) or generate_order_reference()
    integrated = bool(request.integrated and app_config.PAYPLUG_INTEGRATED and request.payment_type != "installments")
    payload = build_payplug_payload(
        order=order,
        customer=request.customer,
        reference=reference,
        description=request.description,
        installments=request.installments,
        integrated=integrated,
        extra_metadata=request.extra_metadata(),
        **return_urls(reference, request),
    )

    payment = payplug_client.create_payment(payload)
    hosted = payment.get("hosted_payment") or {}
    logger.info(
        "payments.service created id=%s reference=%s amount=%s type=%s ip=%s",
        payment.get("id"), reference, order.expected_cents, request.payment_type, client_ip,
    )
    return {
        "success": True,
        "paymentId": payment.get("id"),
        "paymentUrl": hosted.get("payment_url"),
        "reference": reference,
        "amount": order.expected_cents,
        "amountFormatted": format_amount(order.expected_cents),
        "expiresAt": hosted.get("expires_at"),
        "integrated": integrated,
    }
