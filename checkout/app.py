# module checkout.app
from fastapi import FastAPI

from checkout.app_setup.middlewares import register_basic_middlewares, register_security_middleware, register_force_https_middleware
from checkout.app_setup.exceptions import register_exception_handlers
from checkout.app_setup.routers import register_routers
from checkout.app_setup.lifespan import lifespan as app_lifespan


def create_app() -> FastAPI:
    """
    Crée et configure l'instance FastAPI du tunnel de commande.
    Étapes et ordre (important pour la sécurité et le comportement):
      1) register_basic_middlewares: session, CORS, TrustedHost, ProxyHeaders.
      2) register_security_middleware: en-têtes de sécurité + CSP.
      3) register_exception_handlers: CheckoutError -> JSON {"error", "code"}, HTTPException -> {"detail"}.
      4) register_routers: commande (web), panier, paiements, suivi, health.
      5) register_force_https_middleware: ajouté en dernier pour s'exécuter en premier (redirection HTTPS).
    Retourne:
      - FastAPI: l'application prête à être servie (ASGI).
    """
    app = FastAPI(title="Mistral Pans Checkout API", lifespan=app_lifespan)
    register_basic_middlewares(app)
    register_security_middleware(app)
    register_exception_handlers(app)
    register_routers(app)
    # Ajouter le middleware HTTPS en dernier pour qu'il s'exécute en premier
    register_force_https_middleware(app)
    return app

# App globale
app = create_app()
