"""
Registre central des routers (web, API v1, health).
- Web: tunnel de commande (/commander)
- API v1: panier, paiements (création + notification), suivi de commande
- Health: health_router
"""
from fastapi import FastAPI
from checkout.orders.views import web_router as orders_web_router, api_router as cart_api_router
from checkout.payments import views as payments_views
from checkout.commandes import views as commandes_views
from checkout.health.router import router as health_router

def register_routers(app: FastAPI) -> None:
    """
    Agrège tous les routers de l'application.
    L'ordre n'a pas d'impact sauf conflits de chemins (évités par préfixes).
    """
    # Pages web (HTML + formulaires)
    app.include_router(orders_web_router)
    # API v1
    app.include_router(cart_api_router)
    app.include_router(payments_views.router)
    app.include_router(commandes_views.router)
    # Health & monitoring
    app.include_router(health_router)
