"""
Accès en lecture seule au catalogue (système de référence des prix).
- instruments: prix_vente, promo_percent, statut
- accessoires: prix, statut (les housses sont des accessoires)
- tailles: prix_malus par code
- configuration: clé 'tarifs_publics' (prix par note, taux d'acompte, frais de port)
En cas d'erreur réseau/DB, les fonctions loggent et retournent None: l'appelant traite
l'absence d'enregistrement comme un refus.
"""
from typing import Any, Dict, Optional
import logging
import checkout.infra.supabase_client as supabase_client

logger = logging.getLogger(__name__)

INSTRUMENT_COLUMNS = "id, nom, prix_vente, promo_percent, statut, taille, gamme"
ACCESSOIRE_COLUMNS = "id, nom, prix, statut, categorie"

# module checkout.catalog.repository
def _first_row(table: str, columns: str, column: str, value: str) -> Optional[dict]:
    res = (
        supabase_client.get_supabase()
        .table(table)
        .select(columns)
        .eq(column, value)
        .limit(1)
        .execute()
    )
    rows = res.data or []
    return rows[0] if isinstance(rows, list) and rows else None

def fetch_instrument(instrument_id: str) -> Optional[dict]:
    """Retourne l'instrument (prix catalogue, remise, statut) ou None."""
    if not instrument_id:
        return None
    try:
        return _first_row("instruments", INSTRUMENT_COLUMNS, "id", str(instrument_id))
    except Exception:
        logger.exception("catalog.repository.fetch_instrument failed id=%s", instrument_id)
        return None

def fetch_accessoire(accessoire_id: str) -> Optional[dict]:
    """Retourne l'accessoire (housse, support...) ou None."""
    if not accessoire_id:
        return None
    try:
        return _first_row("accessoires", ACCESSOIRE_COLUMNS, "id", str(accessoire_id))
    except Exception:
        logger.exception("catalog.repository.fetch_accessoire failed id=%s", accessoire_id)
        return None

def fetch_size_malus(code: Optional[str]) -> float:
    """
    Malus de prix (en euros) d'une taille, par code ('45', '50', '53').
    Code inconnu ou erreur: 0 (le plancher reste une borne basse).
    """
    if not code:
        return 0.0
    try:
        row = _first_row("tailles", "code, prix_malus", "code", str(code))
        return float((row or {}).get("prix_malus") or 0)
    except Exception:
        logger.exception("catalog.repository.fetch_size_malus failed code=%s", code)
        return 0.0

def fetch_tarifs_publics() -> Optional[Dict[str, Any]]:
    """Valeur JSON de configuration.tarifs_publics, ou None si absente/injoignable."""
    try:
        row = _first_row("configuration", "key, value", "key", "tarifs_publics")
        value = (row or {}).get("value")
        return value if isinstance(value, dict) else None
    except Exception:
        logger.exception("catalog.repository.fetch_tarifs_publics failed")
        return None
