"""
Rate limiting persistant par (IP, endpoint), partagé par tous les endpoints sensibles.

Chaque backend effectue un incrément atomique (jamais de lecture puis écriture séparées):
- supabase: RPC `check_rate_limit` (upsert atomique sur la table rate_limits)
- redis: transaction SET NX PX + INCR (la clé expire à la fin de la fenêtre)
- memory: compteur local protégé par un verrou (dev/tests, non partagé entre process)

Politique en cas d'indisponibilité du backend:
- fail_closed=True (paiement, notifications): la requête est refusée
- fail_closed=False (consultation de statut): la requête passe
"""
from typing import Any, Callable, Dict, NamedTuple, Optional, Tuple
import logging
import threading
import time
from fastapi import Request

from checkout.errors import RateLimitExceeded
from checkout.utils.client_ip import get_client_ip

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_MS = 60_000


class RateLimitResult(NamedTuple):
    allowed: bool
    remaining: int


class RateLimitBackendError(Exception):
    """Backend de comptage injoignable ou réponse inexploitable."""


class SupabaseRateLimitStore:
    """
    Délègue à la RPC Postgres check_rate_limit(p_ip, p_function, p_max_requests, p_window_ms)
    qui insère (count=1), incrémente (même fenêtre) ou réinitialise (fenêtre expirée) en un seul upsert.
    """
    name = "supabase"

    def __init__(self, client_factory: Optional[Callable[[], Any]] = None):
        if client_factory is None:
            import checkout.infra.supabase_client as supabase_client
            client_factory = supabase_client.get_service_supabase
        self._client_factory = client_factory

    def hit(self, ip: str, function_name: str, max_requests: int, window_ms: int) -> Tuple[bool, int]:
        try:
            res = (
                self._client_factory()
                .rpc("check_rate_limit", {
                    "p_ip": ip,
                    "p_function": function_name,
                    "p_max_requests": max_requests,
                    "p_window_ms": window_ms,
                })
                .execute()
            )
        except Exception as e:
            raise RateLimitBackendError(str(e)) from e
        # La RPC retourne un tableau ou un objet selon la config
        data = res.data
        row = data[0] if isinstance(data, list) and data else data
        if not isinstance(row, dict) or "allowed" not in row:
            raise RateLimitBackendError(f"Réponse RPC inattendue: {data!r}")
        return bool(row["allowed"]), int(row.get("current_count") or 0)


class RedisRateLimitStore:
    """Fenêtre fixe démarrant à la première requête: SET key 0 NX PX window puis INCR, en transaction."""
    name = "redis"

    def __init__(self, client: Any, prefix: str = "rl"):
        self._client = client
        self._prefix = prefix

    def hit(self, ip: str, function_name: str, max_requests: int, window_ms: int) -> Tuple[bool, int]:
        key = f"{self._prefix}:{function_name}:{ip}"
        try:
            pipe = self._client.pipeline(transaction=True)
            pipe.set(key, 0, px=window_ms, nx=True)
            pipe.incr(key)
            _, count = pipe.execute()
        except Exception as e:
            raise RateLimitBackendError(str(e)) from e
        count = int(count)
        return count <= max_requests, count


class MemoryRateLimitStore:
    """Équivalent local de la RPC: {(ip, fonction): (window_start, request_count)}."""
    name = "memory"

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._lock = threading.Lock()
        self._records: Dict[Tuple[str, str], Tuple[float, int]] = {}

    def hit(self, ip: str, function_name: str, max_requests: int, window_ms: int) -> Tuple[bool, int]:
        now_ms = self._clock() * 1000
        key = (ip, function_name)
        with self._lock:
            window_start, count = self._records.get(key, (now_ms, 0))
            if now_ms - window_start >= window_ms:
                window_start, count = now_ms, 0
            count += 1
            self._records[key] = (window_start, count)
        return count <= max_requests, count


def build_store(backend: str, redis_url: Optional[str] = None):
    """Construit le store selon RATE_LIMIT_BACKEND ('supabase' | 'redis' | 'memory')."""
    if backend == "memory":
        return MemoryRateLimitStore()
    if backend == "redis":
        import redis
        return RedisRateLimitStore(redis.from_url(redis_url, encoding="utf-8", decode_responses=True))
    return SupabaseRateLimitStore()


def check_and_increment(
    store: Any,
    ip: str,
    endpoint_name: str,
    max_requests: int,
    window_ms: int = DEFAULT_WINDOW_MS,
    fail_closed: bool = False,
) -> RateLimitResult:
    """
    Incrémente le compteur (ip, endpoint) et indique si la requête est autorisée.
    - Backend absent ou en erreur: refus si fail_closed, sinon autorisation.
    - remaining = max(0, max_requests - compteur courant).
    """
    fallback = RateLimitResult(False, 0) if fail_closed else RateLimitResult(True, max_requests)
    if store is None:
        logger.warning("rate_limit store not configured endpoint=%s (%s)", endpoint_name, "fail-closed" if fail_closed else "fail-open")
        return fallback
    try:
        allowed, count = store.hit(ip or "unknown", endpoint_name, max_requests, window_ms)
    except RateLimitBackendError as e:
        logger.warning("rate_limit backend error endpoint=%s: %s (%s)", endpoint_name, e, "fail-closed" if fail_closed else "fail-open")
        return fallback
    return RateLimitResult(allowed, max(0, max_requests - count))


def rate_limit(endpoint_name: str, max_requests: int, window_ms: int = DEFAULT_WINDOW_MS, fail_closed: bool = False):
    """
    Dépendance FastAPI: applique check_and_increment avant le handler.
    Lève RateLimitExceeded (429, message générique sans compteur) si la limite est atteinte.
    """
    async def _dep(request: Request) -> RateLimitResult:
        store = getattr(request.app.state, "rate_limit_store", None)
        ip = get_client_ip(request)
        result = check_and_increment(store, ip, endpoint_name, max_requests, window_ms, fail_closed)
        if not result.allowed:
            logger.info("rate_limit denied endpoint=%s ip=%s", endpoint_name, ip)
            raise RateLimitExceeded()
        return result
    return _dep


def rate_limit_health_info(request: Request) -> Dict[str, Any]:
    store = getattr(request.app.state, "rate_limit_store", None)
    info: Dict[str, Any] = {
        "ready": store is not None,
        "backend": getattr(store, "name", None),
    }
    if info["backend"] == "redis":
        try:
            from urllib.parse import urlparse
            from checkout.config import RATE_LIMIT_REDIS_URL
            p = urlparse(RATE_LIMIT_REDIS_URL)
            info["redis"] = {"scheme": p.scheme, "host": p.hostname, "port": p.port}
        except ValueError:
            pass
    return info
