import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from checkout.errors import InputValidationError
from checkout.utils.client_ip import get_client_ip
from checkout.utils.rate_limit import rate_limit

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/payments", tags=["Payments API"])


async def _json_body(request: Request) -> Dict[str, Any]:
    try:
        body = await request.json()
    except ValueError:
        raise InputValidationError("Corps JSON invalide")
    if not isinstance(body, dict):
        raise InputValidationError("Corps JSON invalide")
    return body


# module checkout.payments.views
@router.post(
    "/create",
    dependencies=[Depends(rate_limit("payplug-create-payment", max_requests=10, fail_closed=True))],
)
async def create_payment(request: Request):
    """
    Crée un paiement PayPlug (comptant, acompte, Oney 3x/4x, formulaire intégré).
    - Entrée JSON: { amount, customer, paymentType, orderReference?, description?, metadata,
      returnUrl?, cancelUrl?, installments?, integrated? } (amount en centimes)
    - Sécurité: rate limit 10 req / 60s par IP, fail-closed
    - Les prix sont revalidés contre le catalogue avant tout appel passerelle
    - Erreurs: {"error", "code"[, "field"|"item"]} via le handler CheckoutError
    """
    # Importer le module pour bénéficier des monkeypatchs de tests
    from checkout.payments import service as payments_service

    body = await _json_body(request)
    result = payments_service.create_payment(
        body, client_ip=get_client_ip(request), pricing=getattr(request.app.state, "pricing", None)
    )
    return JSONResponse(result)


@router.post(
    "/webhook",
    include_in_schema=False,
    dependencies=[Depends(rate_limit("payplug-webhook", max_requests=60, fail_closed=True))],
)
async def payplug_webhook(request: Request):
    """
    Notification PayPlug. Le corps n'est jamais cru: le paiement est relu auprès de la passerelle
    par son identifiant avant toute écriture (paiements, statut de commande).
    - Réponses: {"success": true, "message": ..., "reference": ...}
    - Erreurs: 400 si identifiant manquant, 502 si la passerelle ne confirme pas
    """
    from checkout.commandes import service as commandes_service

    body = await _json_body(request)
    payment_id = str(body.get("id") or "").strip()
    if not payment_id:
        raise InputValidationError("Payment ID manquant", field="id")
    notifier = getattr(request.app.state, "notifier", None)
    result = commandes_service.handle_payment_notification(payment_id, notifier=notifier)
    return JSONResponse(result)
