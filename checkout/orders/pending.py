"""
Commande en attente: pont entre la création du paiement et le retour de la passerelle.
Stockée en session; écrite uniquement après une création de paiement réussie, consommée
au retour 'success', conservée en cas d'annulation, expirée après PENDING_TTL.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, MutableMapping, Optional

from pydantic import ValidationError

from checkout.orders.models import PendingOrder

logger = logging.getLogger(__name__)

PENDING_SESSION_KEY = "mistral_pending_order"
PENDING_TTL = timedelta(hours=24)


class PendingOrderStore:
    def __init__(self, session: MutableMapping[str, Any], ttl: timedelta = PENDING_TTL):
        self._session = session
        self._ttl = ttl

    def save(self, order: PendingOrder) -> None:
        self._session[PENDING_SESSION_KEY] = order.to_dict()

    def load(self, now: Optional[datetime] = None) -> Optional[PendingOrder]:
        """Commande en attente valide, ou None (absente, illisible ou expirée: purgée)."""
        raw = self._session.get(PENDING_SESSION_KEY)
        if not raw:
            return None
        try:
            order = PendingOrder.model_validate(raw)
            created = datetime.fromisoformat(order.created_at)
        except (ValidationError, TypeError, ValueError):
            logger.warning("orders.pending malformed pending order dropped")
            self.delete()
            return None
        if created.tzinfo is None:
            created = created.replace(tzinfo=timezone.utc)
        if (now or datetime.now(timezone.utc)) - created > self._ttl:
            logger.info("orders.pending expired reference=%s", order.reference)
            self.delete()
            return None
        return order

    def delete(self) -> None:
        self._session.pop(PENDING_SESSION_KEY, None)
