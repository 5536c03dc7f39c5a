"""
Adaptateur PayPlug: centralise les appels et la configuration du SDK PayPlug.
Les réponses d'erreur brutes (identifiants internes, détails) sont loggées, jamais renvoyées.
"""
import logging
from typing import Any, Dict

import payplug
import requests
from payplug.exceptions import PayplugError

from checkout import config as app_config
from checkout.errors import GatewayError, GatewayUnavailable

logger = logging.getLogger(__name__)

GATEWAY_ERROR_MESSAGE = "Le paiement n'a pas pu être initialisé"


def _to_dict(resource: Any) -> Any:
    """Ressource SDK (objets imbriqués) -> dict simple, attributs privés exclus."""
    if isinstance(resource, dict):
        return {k: _to_dict(v) for k, v in resource.items()}
    if isinstance(resource, (list, tuple)):
        return [_to_dict(v) for v in resource]
    if hasattr(resource, "__dict__"):
        return {k: _to_dict(v) for k, v in vars(resource).items() if not k.startswith("_")}
    return resource


# module checkout.payments.payplug_client
def is_configured() -> bool:
    return bool(app_config.PAYPLUG_SECRET_KEY)


def require_payplug():
    """
    Prépare et retourne le module payplug prêt à l'emploi (clé secrète + version d'API).
    Lève GatewayUnavailable si la clé secrète n'est pas configurée.
    """
    if not is_configured():
        logger.error("payplug: PAYPLUG_SECRET_KEY non configurée")
        raise GatewayUnavailable("Paiement en ligne momentanément indisponible")
    payplug.set_secret_key(app_config.PAYPLUG_SECRET_KEY)
    payplug.set_api_version(app_config.PAYPLUG_API_VERSION)
    return payplug


def create_payment(payload: Dict[str, Any]) -> Dict[str, Any]:
    """
    Crée un paiement PayPlug.
    Retour: dict paiement (ex: {"id": "pay_...", "hosted_payment": {"payment_url": "...", "expires_at": ...}})
    """
    sdk = require_payplug()
    try:
        payment = sdk.Payment.create(**payload)
    except (PayplugError, requests.RequestException) as e:
        logger.error("payplug create_payment failed: %s", e)
        raise GatewayError(GATEWAY_ERROR_MESSAGE) from e
    return _to_dict(payment)


def get_payment(payment_id: str) -> Dict[str, Any]:
    """Récupère un paiement par identifiant (source de vérité pour les notifications)."""
    sdk = require_payplug()
    try:
        payment = sdk.Payment.retrieve(payment_id)
    except (PayplugError, requests.RequestException) as e:
        logger.error("payplug get_payment failed id=%s: %s", payment_id, e)
        raise GatewayError(GATEWAY_ERROR_MESSAGE) from e
    return _to_dict(payment)
