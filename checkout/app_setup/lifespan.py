"""
Lifespan FastAPI: initialisation/arrêt des ressources partagées.
- Construit le store du rate limiting (supabase, redis ou memory) selon RATE_LIMIT_BACKEND
- Charge la configuration tarifaire avant tout rendu (pas de valeurs par défaut périmées à l'affichage)
- Résout une fois la capacité de paiement (hébergé, intégré, repli email)
- Installe le Notifier par défaut (logs)
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI

from checkout import config as app_config
from checkout.orders.controller import resolve_capability
from checkout.pricing import DEFAULT_PRICING, load_pricing_config
from checkout.utils.notifier import LoggingNotifier
from checkout.utils.rate_limit import build_store


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Un backend de rate limiting injoignable au démarrage laisse app.state.rate_limit_store à None:
    les endpoints fail-closed refusent alors les requêtes, les autres passent.
    """
    logger = logging.getLogger("uvicorn.error")
    try:
        app.state.rate_limit_store = build_store(app_config.RATE_LIMIT_BACKEND, app_config.RATE_LIMIT_REDIS_URL)
        logger.info("Rate limiting enabled backend=%s", app_config.RATE_LIMIT_BACKEND)
    except Exception as e:
        app.state.rate_limit_store = None
        logger.warning(f"Rate limiting store unavailable: {e}")

    try:
        app.state.pricing = load_pricing_config()
    except Exception as e:
        app.state.pricing = DEFAULT_PRICING
        logger.warning(f"Pricing config unavailable, using defaults: {e}")
    logger.info("Pricing loaded prix_par_note=%s taux_acompte=%s", app.state.pricing.prix_par_note, app.state.pricing.taux_acompte)

    app.state.payment_capability = resolve_capability()
    logger.info("Payment capability=%s", app.state.payment_capability.value)

    if getattr(app.state, "notifier", None) is None:
        app.state.notifier = LoggingNotifier()

    yield
