"""
Configuration tarifaire (lue dans le catalogue, clé 'tarifs_publics').
- Chargée au démarrage (lifespan) pour l'affichage, afin qu'aucun rendu n'utilise des valeurs périmées.
- La même instance sert à la création de paiement (bornes Oney, port, acompte): aucun écart affichage/serveur.
  Relue dans le catalogue uniquement quand l'appelant n'en fournit pas.
"""
import logging
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)


class PricingConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    prix_par_note: float = Field(115, alias="prixParNote", gt=0)
    taux_acompte: float = Field(30, alias="tauxAcompte", ge=0, le=100)
    frais_expedition_colissimo: float = Field(50, alias="fraisExpeditionColissimo", ge=0)
    oney_min: float = Field(100, alias="oneyMin", ge=0)
    oney_max: float = Field(3000, alias="oneyMax", ge=0)

    @property
    def deposit_rate(self) -> float:
        """Taux d'acompte sous forme de fraction (30 -> 0.30)."""
        return self.taux_acompte / 100


DEFAULT_PRICING = PricingConfig()


def pricing_from_dict(data: Optional[Dict[str, Any]]) -> PricingConfig:
    """
    Construit une PricingConfig depuis la valeur JSON stockée.
    - Clés absentes: valeurs par défaut.
    - Valeur invalide: log + valeurs par défaut (jamais d'exception vers l'appelant).
    """
    if not data:
        return DEFAULT_PRICING
    cleaned = {k: v for k, v in data.items() if v is not None}
    try:
        return PricingConfig.model_validate(cleaned)
    except ValidationError:
        logger.warning("pricing.config invalid tarifs_publics, using defaults: %s", cleaned)
        return DEFAULT_PRICING


def load_pricing_config() -> PricingConfig:
    """Lit 'tarifs_publics' dans le catalogue et retombe sur les valeurs par défaut."""
    from checkout.catalog import repository as catalog

    return pricing_from_dict(catalog.fetch_tarifs_publics())
