"""
Lancement local du service de commande.

Usage:
    python -m checkout

Variables d'environnement:
- PORT: port d'écoute (par défaut 8000)
- UVICORN_RELOAD: reload auto en dev ("1"/"true"/"yes")
- LOG_LEVEL: niveau de logs uvicorn (ex: "info", "debug")
- RATE_LIMIT_BACKEND: "memory" pratique en local sans Supabase ni Redis
"""
import os
import uvicorn

if __name__ == "__main__":
    uvicorn.run(
        "checkout.asgi:app",
        host=os.environ.get("HOST", "127.0.0.1"),
        port=int(os.environ.get("PORT", 8000)),
        reload=os.environ.get("UVICORN_RELOAD", "").lower() in ("1", "true", "yes"),
        log_level=os.environ.get("LOG_LEVEL", "info"),
        proxy_headers=True,
    )
