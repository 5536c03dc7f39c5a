from typing import Any, Dict, Optional
import logging

from postgrest.exceptions import APIError

import checkout.infra.supabase_client as supabase_client
from checkout.errors import PersistenceError

logger = logging.getLogger(__name__)

STATUS_COLUMNS = (
    "reference, source, product_name, specifications, montant_total, montant_paye, payment_type, "
    "statut, statut_paiement, created_at, paid_at, tracking_number, estimated_delivery"
)

# Violation de contrainte unique (PostgreSQL)
UNIQUE_VIOLATION = "23505"


def _error_code(e: APIError) -> Optional[str]:
    code = getattr(e, "code", None)
    if not code and e.args and isinstance(e.args[0], dict):
        code = e.args[0].get("code")
    return str(code) if code else None


# module checkout.commandes.repository
def insert_paiement(record: Dict[str, Any]) -> bool:
    """
    Enregistre un paiement confirmé. L'idempotence repose sur la contrainte unique paiements.payplug_id:
    - True: ligne créée
    - False: payplug_id déjà présent (notification rejouée ou concurrente)
    - PersistenceError: toute autre erreur
    """
    try:
        supabase_client.get_service_supabase().table("paiements").insert(record).execute()
        return True
    except APIError as e:
        if _error_code(e) == UNIQUE_VIOLATION:
            logger.info("commandes.repository.insert_paiement duplicate payplug_id=%s", record.get("payplug_id"))
            return False
        logger.exception("commandes.repository.insert_paiement failed reference=%s", record.get("reference"))
        raise PersistenceError("Enregistrement du paiement impossible")
    except Exception:
        logger.exception("commandes.repository.insert_paiement failed reference=%s", record.get("reference"))
        raise PersistenceError("Enregistrement du paiement impossible")


def update_commande(data: Dict[str, Any], *, order_id: Optional[str] = None, reference: Optional[str] = None) -> bool:
    """Met à jour la commande par id (prioritaire) ou par référence. False si aucune clé; PersistenceError si l'écriture échoue."""
    if not order_id and not reference:
        logger.warning("commandes.repository.update_commande without order_id nor reference")
        return False
    column, value = ("id", order_id) if order_id else ("reference", reference)
    try:
        supabase_client.get_service_supabase().table("commandes").update(data).eq(column, value).execute()
        return True
    except Exception:
        logger.exception("commandes.repository.update_commande failed %s=%s", column, value)
        raise PersistenceError("Mise à jour de la commande impossible")


def fetch_commande_by_reference(reference: str, email: str) -> Optional[dict]:
    """Double vérification référence + email (pas de compte client)."""
    try:
        res = (
            supabase_client.get_service_supabase()
            .table("commandes")
            .select(STATUS_COLUMNS)
            .eq("reference", reference)
            .eq("customer_email", email)
            .limit(1)
            .execute()
        )
        rows = res.data or []
        return rows[0] if rows else None
    except Exception:
        logger.exception("commandes.repository.fetch_commande_by_reference failed reference=%s", reference)
        return None
