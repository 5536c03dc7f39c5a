"""
Interprétation du retour de la passerelle (?status=success|cancelled|error&ref=...&failure=...).
Vue indicative uniquement: l'état payé faisant foi est écrit par la notification PayPlug.
"""
import logging
from typing import Any, Dict, Mapping, Optional

from checkout.orders.pending import PendingOrderStore
from checkout.pricing import format_price, installment_schedule

logger = logging.getLogger(__name__)

STATUS_SUCCESS = "success"
STATUS_CANCELLED = "cancelled"
STATUS_ERROR = "error"

FAILURE_MESSAGES = {
    "processing_error": "Erreur de traitement de la carte. Veuillez réessayer.",
    "card_declined": "Carte refusée. Vérifiez vos informations ou essayez une autre carte.",
    "insufficient_funds": "Fonds insuffisants sur la carte.",
    "3ds_declined": "Authentification 3D Secure refusée.",
    "incorrect_number": "Numéro de carte incorrect.",
    "fraud_suspected": "Paiement refusé (suspicion de fraude).",
    "method_unsupported": "Méthode de paiement non supportée.",
    "timeout": "Le délai de paiement a expiré. Veuillez réessayer.",
    "aborted": "Le paiement a été annulé.",
}
GENERIC_FAILURE_MESSAGE = "Une erreur est survenue lors du paiement. Contactez-nous si le problème persiste."
CANCELLED_MESSAGE = "Paiement annulé. Votre commande n'a pas été validée. Vous pouvez réessayer ci-dessous."


def failure_message(code: Optional[str]) -> str:
    return FAILURE_MESSAGES.get(code or "", GENERIC_FAILURE_MESSAGE)


def _next_steps(payment_type: str, total: float, paid: float, installments: Optional[int]) -> Dict[str, Any]:
    if payment_type == "acompte":
        remaining = max(0, total - paid)
        return {
            "title": "Acompte reçu",
            "lines": [
                f"Acompte versé : {format_price(paid)}",
                f"Solde restant : {format_price(remaining)}, à régler avant la livraison.",
                "Nous vous contactons pour le suivi de fabrication.",
            ],
        }
    if payment_type == "installments" and installments:
        schedule = installment_schedule(total, installments)
        return {
            "title": f"Paiement en {installments}x accepté",
            "lines": [f"Échéance {i + 1} : {format_price(v)}" for i, v in enumerate(schedule)],
        }
    return {
        "title": "Paiement confirmé",
        "lines": [f"Montant réglé : {format_price(paid)}", "Un email de confirmation vous a été envoyé."],
    }


# module checkout.orders.reconciler
def reconcile_return(params: Mapping[str, Any], pending: PendingOrderStore) -> Optional[Dict[str, Any]]:
    """
    Retourne le contexte d'affichage du retour de paiement, ou None si aucun statut.
    - success: lit puis supprime la commande en attente
    - cancelled: la commande en attente est conservée (nouvelle tentative possible)
    - error: message localisé selon le code 'failure'
    """
    status = str(params.get("status") or "").strip()
    reference = str(params.get("ref") or "").strip() or None
    if not status:
        return None

    if status == STATUS_SUCCESS:
        order = pending.load()
        if order is None:
            logger.info("orders.reconciler success without pending order ref=%s", reference)
            return {"status": STATUS_SUCCESS, "reference": reference, "order": None,
                    "steps": {"title": "Paiement reçu", "lines": ["Un email de confirmation vous a été envoyé."]}}
        pending.delete()
        return {
            "status": STATUS_SUCCESS,
            "reference": order.reference or reference,
            "order": order.to_dict(),
            "steps": _next_steps(order.payment_type, order.total, order.paid_amount, order.installments),
        }

    if status == STATUS_CANCELLED:
        return {"status": STATUS_CANCELLED, "reference": reference, "message": CANCELLED_MESSAGE, "retry": True}

    code = str(params.get("failure") or "").strip() or None
    return {"status": STATUS_ERROR, "reference": reference, "code": code, "message": failure_message(code), "retry": True}
