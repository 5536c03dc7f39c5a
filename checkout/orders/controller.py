"""
Contrôleur du tunnel de commande: relie l'agrégation, les primitives de prix et le service de paiement
pour chaque mode (comptant, acompte, paiement en plusieurs fois, rendez-vous atelier).

- L'état de la commande en cours est porté par un objet CheckoutSession explicite (jamais de globales).
- La capacité de paiement (hébergé, intégré, ou repli email) est résolue une fois au démarrage.
- Les handlers ne lèvent jamais vers la page: ils retournent {"success": bool, ...}.
- Le panier n'est vidé et la commande en attente n'est écrite qu'après une création de paiement réussie.
"""
import logging
import urllib.parse
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, MutableMapping, Optional

from pydantic import ValidationError

from checkout import config as app_config
from checkout.errors import CheckoutError, GatewayError, InputValidationError
from checkout.orders import aggregator
from checkout.orders.builder import build_payment_request, customer_from_form
from checkout.orders.cart import SessionCart
from checkout.orders.models import CartSnapshot, LegacyOrder, OrderData, PendingOrder
from checkout.orders.pending import PendingOrderStore
from checkout.pricing import SHIPPING_METHODS, DEFAULT_PRICING, PricingConfig
from checkout.utils.notifier import APPOINTMENT_REQUEST, ORDER_REQUEST, LoggingNotifier, Notifier, safe_send

logger = logging.getLogger(__name__)

SHIPPING_SESSION_KEY = "mistral_shipping"
LEGACY_ORDER_SESSION_KEY = "mistral_legacy_order"
HONEYPOT_FIELD = "website"
PAYMENT_MODES = ("full", "acompte", "installments")
DEFAULT_INSTALLMENTS = 3


class PaymentCapability(str, Enum):
    HOSTED = "hosted"
    INTEGRATED = "integrated"
    EMAIL = "email"


def resolve_capability() -> PaymentCapability:
    """Résolue au démarrage: sans clé PayPlug, le tunnel bascule sur la commande par email."""
    from checkout.payments import payplug_client

    if not payplug_client.is_configured():
        return PaymentCapability.EMAIL
    if app_config.PAYPLUG_INTEGRATED:
        return PaymentCapability.INTEGRATED
    return PaymentCapability.HOSTED


def remember_legacy_order(session: MutableMapping[str, Any], order: OrderData) -> None:
    """La commande unitaire (paramètres d'URL) est conservée pour les soumissions de formulaire."""
    session[LEGACY_ORDER_SESSION_KEY] = order.to_dict()


def _legacy_from_session(session: Mapping[str, Any]) -> Optional[OrderData]:
    raw = session.get(LEGACY_ORDER_SESSION_KEY)
    if not raw:
        return None
    try:
        return OrderData.model_validate(raw)
    except ValidationError:
        logger.warning("orders.controller malformed legacy order in session")
        return None


@dataclass
class CheckoutSession:
    session: MutableMapping[str, Any]
    pricing: PricingConfig = DEFAULT_PRICING
    capability: PaymentCapability = PaymentCapability.HOSTED
    notifier: Notifier = field(default_factory=LoggingNotifier)
    selected_installments: int = DEFAULT_INSTALLMENTS

    def __post_init__(self):
        self.cart = SessionCart(self.session)
        self.pending = PendingOrderStore(self.session)

    @classmethod
    def from_request(cls, request) -> "CheckoutSession":
        state = request.app.state
        return cls(
            session=request.session,
            pricing=getattr(state, "pricing", None) or DEFAULT_PRICING,
            capability=getattr(state, "payment_capability", None) or PaymentCapability.HOSTED,
            notifier=getattr(state, "notifier", None) or LoggingNotifier(),
        )

    @property
    def shipping_method(self) -> Optional[str]:
        value = self.session.get(SHIPPING_SESSION_KEY)
        return value if value in SHIPPING_METHODS else None

    def set_shipping_method(self, method: Optional[str]) -> None:
        if method is None:
            self.session.pop(SHIPPING_SESSION_KEY, None)
            return
        if method not in SHIPPING_METHODS:
            raise InputValidationError("Mode de livraison invalide", field="shippingMethod")
        self.session[SHIPPING_SESSION_KEY] = method

    def snapshot(self) -> CartSnapshot:
        """Panier non vide prioritaire, sinon dernière commande unitaire vue, sinon vide."""
        if not self.cart.is_empty():
            return self.cart.snapshot()
        legacy = _legacy_from_session(self.session)
        if legacy:
            return aggregator.normalize(LegacyOrder(order=legacy))
        return CartSnapshot()

    def summary(self) -> Dict[str, Any]:
        return aggregator.compute_summary(self.snapshot(), self.shipping_method, self.pricing)


def _required(form: Mapping[str, Any], key: str, message: str) -> str:
    value = str(form.get(key) or "").strip()
    if not value:
        raise InputValidationError(message, field=key)
    return value


def validate_form(form: Mapping[str, Any], require_shipping: bool = True, session: Optional[CheckoutSession] = None) -> None:
    _required(form, "firstname", "Prénom requis")
    _required(form, "lastname", "Nom requis")
    _required(form, "email", "Email requis")
    _required(form, "phone", "Téléphone requis")
    if not form.get("cgv"):
        raise InputValidationError("Veuillez accepter les conditions générales de vente", field="cgv")
    if require_shipping and session is not None and not session.shipping_method:
        raise InputValidationError("Veuillez choisir un mode de livraison", field="shippingMethod")


def mailto_link(summary: Dict[str, Any], customer: Dict[str, Any], mode: str) -> str:
    subject = f"Commande - {summary.get('product_name') or 'Handpan'}"
    body = "\n".join([
        f"Nom : {customer.get('firstName', '')} {customer.get('lastName', '')}",
        f"Email : {customer.get('email', '')}",
        f"Téléphone : {customer.get('phone', '')}",
        f"Commande : {summary.get('product_name', '')}",
        f"Total : {summary.get('total', 0)} €",
        f"Mode de paiement souhaité : {mode}",
    ])
    query = urllib.parse.urlencode({"subject": subject, "body": body}, quote_via=urllib.parse.quote)
    return f"mailto:{app_config.ORDER_CONTACT_EMAIL}?{query}"


def email_fallback(checkout: CheckoutSession, summary: Dict[str, Any], customer: Dict[str, Any], mode: str,
                   error: Optional[str] = None) -> Dict[str, Any]:
    """Commande manuelle par email (passerelle indisponible ou en échec)."""
    safe_send(checkout.notifier, ORDER_REQUEST, {**customer, "mode": mode, "summary": summary})
    return {
        "success": error is None,
        "error": error,
        "fallback": "email",
        "mailto": mailto_link(summary, customer, mode),
        "message": "Votre demande a été transmise, nous vous recontactons pour finaliser la commande.",
    }


def _amount_for_mode(summary: Dict[str, Any], mode: str) -> float:
    return summary["deposit"] if mode == "acompte" else summary["total"]


def _installments(form: Mapping[str, Any], checkout: CheckoutSession) -> int:
    try:
        n = int(form.get("installments") or checkout.selected_installments)
    except (TypeError, ValueError):
        n = checkout.selected_installments
    if n not in aggregator.INSTALLMENT_COUNTS:
        raise InputValidationError("Le paiement en plusieurs fois ne supporte que 3 ou 4 échéances", field="installments")
    checkout.selected_installments = n
    return n


# module checkout.orders.controller
def submit_payment(checkout: CheckoutSession, form: Mapping[str, Any], mode: str, client_ip: str = "unknown") -> Dict[str, Any]:
    """
    Handler commun aux modes comptant / acompte / plusieurs fois.
    Retour succès: {success, paymentUrl, paymentId, reference, amountFormatted, integrated}
    Retour échec: {success: False, error, field?, item?, fallback?}
    """
    if form.get(HONEYPOT_FIELD):
        logger.info("orders.controller honeypot filled, submission dropped ip=%s", client_ip)
        return {"success": True, "message": "Demande reçue"}
    if mode not in PAYMENT_MODES:
        return {"success": False, "error": "Mode de paiement inconnu"}

    summary: Dict[str, Any] = {}
    customer: Dict[str, Any] = {}
    try:
        validate_form(form, session=checkout)
        snapshot = checkout.snapshot()
        if snapshot.is_empty:
            raise InputValidationError("Votre commande est vide")
        summary = aggregator.compute_summary(snapshot, checkout.shipping_method, checkout.pricing)
        customer = customer_from_form(form)
        installments = None
        if mode == "installments":
            if not summary["installment_eligible"]:
                raise InputValidationError("Montant non éligible au paiement en plusieurs fois", field="installments")
            installments = _installments(form, checkout)

        if checkout.capability == PaymentCapability.EMAIL:
            return email_fallback(checkout, summary, customer, mode)

        request_body = build_payment_request(
            customer=customer,
            snapshot=snapshot,
            shipping_method=checkout.shipping_method,
            payment_type=mode,
            amount=_amount_for_mode(summary, mode),
            installments=installments,
            integrated=checkout.capability == PaymentCapability.INTEGRATED,
        )
        # Importer le module pour bénéficier des monkeypatchs de tests
        from checkout.payments import service as payments_service
        result = payments_service.create_payment(request_body, client_ip=client_ip, pricing=checkout.pricing)
    except GatewayError as e:
        logger.warning("orders.controller gateway failure mode=%s: %s", mode, e.message)
        return email_fallback(checkout, summary, customer, mode, error=e.message)
    except CheckoutError as e:
        return {"success": False, **e.to_dict()}
    except Exception:
        logger.exception("orders.controller submit_payment failed mode=%s", mode)
        return {"success": False, "error": "Une erreur est survenue, veuillez réessayer"}

    paid = result["amount"] / 100
    checkout.pending.save(PendingOrder(
        reference=result["reference"],
        customer=customer,
        items=snapshot.items,
        product_name=summary["product_name"],
        payment_type=mode,
        installments=installments,
        paid_amount=paid,
        total=summary["total"],
        shipping_method=checkout.shipping_method,
        shipping_cost=summary["shipping"],
    ))
    checkout.cart.clear()
    return {
        "success": True,
        "paymentUrl": result.get("paymentUrl"),
        "paymentId": result.get("paymentId"),
        "reference": result["reference"],
        "amountFormatted": result.get("amountFormatted"),
        "integrated": bool(result.get("integrated")),
    }


def submit_appointment(checkout: CheckoutSession, form: Mapping[str, Any], client_ip: str = "unknown") -> Dict[str, Any]:
    """Rendez-vous atelier: aucune transaction, demande transmise au Notifier."""
    if form.get(HONEYPOT_FIELD):
        logger.info("orders.controller honeypot filled (rdv), submission dropped ip=%s", client_ip)
        return {"success": True, "message": "Demande reçue"}
    try:
        _required(form, "firstname", "Prénom requis")
        _required(form, "lastname", "Nom requis")
        _required(form, "email", "Email requis")
    except InputValidationError as e:
        return {"success": False, **e.to_dict()}
    summary = checkout.summary()
    payload = {
        **customer_from_form(form),
        "product": summary.get("product_name"),
        "total": summary.get("total"),
        "preferred_date": str(form.get("date") or "").strip(),
        "message": str(form.get("message") or "").strip()[:2000],
    }
    if not safe_send(checkout.notifier, APPOINTMENT_REQUEST, payload):
        return {"success": False, "error": "Envoi impossible, contactez-nous par email", "fallback": "email"}
    return {"success": True, "message": "Demande de rendez-vous envoyée, nous vous recontactons rapidement."}
