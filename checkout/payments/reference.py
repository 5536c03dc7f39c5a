import secrets
import string
from datetime import datetime, timezone
from typing import Optional

REFERENCE_PREFIX = "MP"
_ALPHABET = string.ascii_uppercase + string.digits
_SUFFIX_LENGTH = 6


# module checkout.payments.reference
def generate_order_reference(now: Optional[datetime] = None) -> str:
    """
    Référence lisible et non devinable: MP + AAMM + '-' + 6 caractères aléatoires (secrets).
    Ex: MP2610-7QK2ZD
    """
    now = now or datetime.now(timezone.utc)
    suffix = "".join(secrets.choice(_ALPHABET) for _ in range(_SUFFIX_LENGTH))
    return f"{REFERENCE_PREFIX}{now:%y%m}-{suffix}"


def clean_reference(value: Optional[str]) -> Optional[str]:
    """Référence fournie par l'appelant: caractères sûrs uniquement, 40 max."""
    if not value:
        return None
    cleaned = "".join(c for c in str(value).strip() if c.isalnum() or c in "-_")
    return cleaned[:40] or None
