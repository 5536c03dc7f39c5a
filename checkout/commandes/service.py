"""Couche service des commandes: réconciliation des notifications PayPlug et suivi de commande.
Rôles:
- Relire le paiement auprès de PayPlug (le corps de la notification n'est jamais cru)
- Enregistrer un paiement confirmé (table paiements) et faire avancer le statut de la commande
- Exposer un suivi public (référence + email) avec libellés lisibles et étapes
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import logging

from checkout.commandes import repository
from checkout.payments import payplug_client
from checkout.utils.notifier import PAYMENT_CONFIRMATION, LoggingNotifier, Notifier, safe_send

logger = logging.getLogger(__name__)

STATUS_LABELS = {
    "en_attente": "En attente",
    "en_fabrication": "En fabrication",
    "accordage": "Accordage",
    "pret": "Prêt",
    "expedie": "Expédié",
    "livre": "Livré",
    "annule": "Annulé",
}

PAYMENT_STATUS_LABELS = {
    "en_attente": "En attente",
    "partiel": "Acompte versé",
    "paye": "Payé",
}

STOCK_STEPS = [
    ("en_attente", "Commande reçue"),
    ("pret", "Prêt à expédier"),
    ("expedie", "Expédié"),
    ("livre", "Livré"),
]
CUSTOM_STEPS = [
    ("en_attente", "Commande reçue"),
    ("en_fabrication", "En fabrication"),
    ("accordage", "Accordage"),
    ("pret", "Prêt"),
    ("expedie", "Expédié"),
    ("livre", "Livré"),
]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def commande_update_for(payment_type: Optional[str]) -> Dict[str, Any]:
    """acompte -> statut 'acompte_paye'; comptant / plusieurs fois -> 'paye'."""
    if payment_type == "acompte":
        return {"statut": "acompte_paye", "statut_paiement": "partiel", "acompte_paye": True, "date_acompte": _now()}
    return {"statut": "paye", "statut_paiement": "paye", "solde_paye": True, "date_paiement": _now()}


def _record_paid(payment: Dict[str, Any], metadata: Dict[str, Any]) -> Dict[str, Any]:
    billing = payment.get("billing") or {}
    hosted = payment.get("hosted_payment") or {}
    return {
        "payplug_id": payment.get("id"),
        "reference": metadata.get("order_reference"),
        "amount": payment.get("amount"),
        "currency": payment.get("currency") or "EUR",
        "payment_type": metadata.get("payment_type"),
        "customer_email": billing.get("email"),
        "customer_name": f"{billing.get('first_name') or ''} {billing.get('last_name') or ''}".strip(),
        "status": "paid",
        "paid_at": hosted.get("paid_at") or _now(),
        "metadata": metadata,
    }


# module checkout.commandes.service
def handle_payment_notification(payment_id: str, notifier: Optional[Notifier] = None) -> Dict[str, Any]:
    """
    Traite une notification PayPlug.
    - Paiement relu via get_payment (GatewayError si PayPlug ne le confirme pas)
    - Payé: enregistrement (une seule fois par payplug_id, contrainte unique), mise à jour commande,
      email de confirmation au premier enregistrement seulement
    - Écriture en base impossible: PersistenceError (503), PayPlug rejoue la notification
    - Remboursé / échoué / en attente: accusé de réception
    """
    payment = payplug_client.get_payment(payment_id)
    metadata = payment.get("metadata") or {}
    reference = metadata.get("order_reference")
    payment_type = metadata.get("payment_type")

    if payment.get("is_paid"):
        # Mise à jour idempotente, appliquée aussi sur doublon
        inserted = repository.insert_paiement(_record_paid(payment, metadata))
        repository.update_commande(
            commande_update_for(payment_type),
            order_id=metadata.get("order_id"),
            reference=reference,
        )
        if not inserted:
            logger.info("commandes.webhook duplicate notification id=%s reference=%s", payment_id, reference)
            return {"success": True, "message": "Paiement déjà traité", "reference": reference}
        billing = payment.get("billing") or {}
        safe_send(notifier or LoggingNotifier(), PAYMENT_CONFIRMATION, {
            "email": billing.get("email"),
            "prenom": billing.get("first_name"),
            "nom": billing.get("last_name"),
            "amount": (payment.get("amount") or 0) / 100,
            "reference": reference,
            "type": payment_type,
        })
        logger.info("commandes.webhook paid id=%s reference=%s amount=%s", payment_id, reference, payment.get("amount"))
        return {"success": True, "message": "Paiement traité", "reference": reference}

    if payment.get("is_refunded"):
        logger.info("commandes.webhook refunded id=%s reference=%s", payment_id, reference)
        return {"success": True, "message": "Remboursement traité", "reference": reference}

    failure = payment.get("failure")
    if failure:
        code = failure.get("code") if isinstance(failure, dict) else str(failure)
        logger.info("commandes.webhook failed id=%s reference=%s code=%s", payment_id, reference, code)
        return {"success": True, "message": "Échec de paiement enregistré", "reference": reference, "failure": code}

    return {"success": True, "message": "Notification reçue", "reference": reference}


def build_timeline(order: Dict[str, Any]) -> List[Dict[str, str]]:
    steps = STOCK_STEPS if order.get("source") == "stock" else CUSTOM_STEPS
    keys = [k for k, _ in steps]
    current = keys.index(order.get("statut")) if order.get("statut") in keys else -1
    timeline = []
    for idx, (key, label) in enumerate(steps):
        status = "done" if idx < current else "current" if idx == current else "pending"
        timeline.append({"key": key, "label": label, "status": status})
    return timeline


def public_order_status(order: Dict[str, Any]) -> Dict[str, Any]:
    """Données publiques uniquement (pas d'identifiants internes)."""
    total = order.get("montant_total") or 0
    paid = order.get("montant_paye") or 0
    return {
        "reference": order.get("reference"),
        "productName": order.get("product_name"),
        "source": order.get("source"),
        "sourceLabel": "Instrument en stock" if order.get("source") == "stock" else "Instrument sur mesure",
        "montantTotal": total,
        "montantPaye": paid,
        "resteAPayer": max(0, total - paid),
        "statut": order.get("statut"),
        "statutLabel": STATUS_LABELS.get(order.get("statut"), order.get("statut")),
        "statutPaiement": order.get("statut_paiement"),
        "statutPaiementLabel": PAYMENT_STATUS_LABELS.get(order.get("statut_paiement"), order.get("statut_paiement")),
        "trackingNumber": order.get("tracking_number"),
        "estimatedDelivery": order.get("estimated_delivery"),
        "createdAt": order.get("created_at"),
        "paidAt": order.get("paid_at"),
        "timeline": build_timeline(order),
    }


def lookup_order_status(reference: str, email: str) -> Optional[Dict[str, Any]]:
    order = repository.fetch_commande_by_reference(reference, email)
    return public_order_status(order) if order else None
