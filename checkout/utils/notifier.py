"""
Collaborateur externe d'envoi (emails de confirmation, demandes de commande/rendez-vous).
Le rendu et l'envoi réels sont hors périmètre: l'implémentation par défaut se contente de logger.
"""
import logging
from typing import Any, Dict

logger = logging.getLogger(__name__)

ORDER_REQUEST = "order_request"
APPOINTMENT_REQUEST = "appointment_request"
PAYMENT_CONFIRMATION = "payment_confirmation"


class Notifier:
    def send(self, kind: str, payload: Dict[str, Any]) -> bool:
        raise NotImplementedError


class LoggingNotifier(Notifier):
    def send(self, kind: str, payload: Dict[str, Any]) -> bool:
        logger.info("notifier kind=%s to=%s reference=%s", kind, payload.get("email"), payload.get("reference"))
        return True


def safe_send(notifier: Notifier, kind: str, payload: Dict[str, Any]) -> bool:
    """Un échec d'envoi ne doit jamais annuler l'opération métier: log + False."""
    try:
        return bool(notifier.send(kind, payload))
    except Exception:
        logger.exception("notifier.send failed kind=%s", kind)
        return False
