"""
ASGI entrypoint du service de commande: `checkout.asgi:app`.
La configuration (middlewares, routers, lifespan) est centralisée dans checkout.app.
"""

from checkout.app import app

__all__ = ["app"]
