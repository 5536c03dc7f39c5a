# module checkout.commandes.views

"""Suivi de commande public.
- POST /api/v1/orders/status: référence + email (double vérification, sans compte client)
Sécurité:
- rate limit 10 req / 60s par IP; endpoint informatif donc fail-open si le backend est indisponible
"""
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from checkout.commandes import service as commandes_service
from checkout.errors import InputValidationError
from checkout.payments.payload import sanitize
from checkout.payments.service import is_valid_email
from checkout.utils.rate_limit import rate_limit

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/orders", tags=["Commandes API"])


@router.post("/status", dependencies=[Depends(rate_limit("order-status", max_requests=10, fail_closed=False))])
async def order_status(request: Request):
    """Statut d'une commande.
    - Entrée JSON: {"reference": "MP2610-XXXXXX", "email": "client@example.com"}
    - 404 si aucune commande ne correspond au couple référence + email
    """
    try:
        data = await request.json()
    except ValueError:
        raise InputValidationError("Corps JSON invalide")
    if not isinstance(data, dict):
        raise InputValidationError("Corps JSON invalide")
    reference = sanitize(data.get("reference"), 20)
    email = str(data.get("email") or "").strip().lower()
    if not reference:
        raise InputValidationError("Référence de commande requise", field="reference")
    if not is_valid_email(email):
        raise InputValidationError("Adresse email invalide", field="email")

    order = commandes_service.lookup_order_status(reference, email)
    if not order:
        return JSONResponse({"error": "Aucune commande trouvée avec cette référence et cet email"}, status_code=404)
    return JSONResponse({"success": True, "order": order})
