# checkout.config
from pathlib import Path
import os
from dotenv import load_dotenv

# Calculer le chemin du projet puis charger .env de manière explicite
BASE_DIR = Path(__file__).resolve().parent.parent
ENV_PATH = BASE_DIR / ".env"
load_dotenv(dotenv_path=ENV_PATH, override=True)

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"

"""
Configuration centrale du service de commande.

- Charge le fichier .env à la racine du projet (BASE_DIR/.env)
- Normalise et expose les secrets/URLs (Supabase, PayPlug), sécurité cookies, CORS/hosts
- Expose les tolérances de prix et le backend du rate limiting
- Fournit les URLs de retour/annulation/notification du paiement
"""

def _clean_env(v: str) -> str:
    """
    Nettoie une valeur d'environnement:
    - supprime les espaces et guillemets (simples, doubles) et backticks
    - retourne toujours une chaîne (jamais None)
    """
    return (v or "").strip().strip("'").strip('"').strip("`")

def _int_env(name: str, default: int) -> int:
    try:
        return int(_clean_env(os.getenv(name)) or default)
    except ValueError:
        return default

def _flag_env(name: str, default: str = "false") -> bool:
    return _clean_env(os.getenv(name) or default).lower() in ("1", "true", "yes")

# Supabase: URL et clés (anon pour le catalogue public, service pour rate limit et paiements)
SUPABASE_URL = _clean_env(os.getenv("SUPABASE_URL") or "")
SUPABASE_ANON = _clean_env(os.getenv("SUPABASE_ANON_KEY") or os.getenv("SUPABASE_KEY") or "")
SUPABASE_SERVICE_KEY = _clean_env(os.getenv("SUPABASE_SERVICE_KEY") or "")

if SUPABASE_URL and not SUPABASE_URL.startswith("http"):
    SUPABASE_URL = "https://" + SUPABASE_URL
if SUPABASE_URL.endswith("/"):
    SUPABASE_URL = SUPABASE_URL.rstrip("/")

# PayPlug: clé secrète et version d'API
PAYPLUG_SECRET_KEY = _clean_env(os.getenv("PAYPLUG_SECRET_KEY") or "")
PAYPLUG_API_VERSION = _clean_env(os.getenv("PAYPLUG_API_VERSION") or "2019-08-06")
# Formulaire de carte intégré (Integrated Payment) en plus du mode hébergé
PAYPLUG_INTEGRATED = _flag_env("PAYPLUG_INTEGRATED")

# Contexte de déploiement: "production" restreint les origines CORS
CONTEXT = _clean_env(os.getenv("CONTEXT") or "dev").lower()
IS_PRODUCTION = CONTEXT == "production"

BASE_URL = _clean_env(os.getenv("BASE_URL") or "http://localhost:8000").rstrip("/")

PRODUCTION_ORIGINS = ["https://mistralpans.fr", "https://www.mistralpans.fr"]
DEV_ORIGINS = ["http://localhost:8000", "http://127.0.0.1:8000"]

_cors_env = [o.strip() for o in os.getenv("CORS_ORIGINS", "").split(",") if o.strip()]
CORS_ORIGINS = _cors_env or (PRODUCTION_ORIGINS if IS_PRODUCTION else PRODUCTION_ORIGINS + DEV_ORIGINS)
ALLOWED_HOSTS = [h.strip() for h in os.getenv("ALLOWED_HOSTS", "localhost,127.0.0.1,testserver,mistralpans.fr,www.mistralpans.fr").split(",") if h.strip()]

# Cookies / session (panier et commande en attente)
COOKIE_SECURE = (os.getenv("COOKIE_SECURE", "false").lower() == "true")
SESSION_SECRET_KEY = _clean_env(os.getenv("SESSION_SECRET_KEY") or "replace_me_with_a_long_random_secret")

# Rate limiting: "supabase" (RPC check_rate_limit), "redis" ou "memory"
RATE_LIMIT_BACKEND = _clean_env(os.getenv("RATE_LIMIT_BACKEND") or "supabase").lower()
RATE_LIMIT_REDIS_URL = _clean_env(os.getenv("RATE_LIMIT_REDIS_URL") or "redis://127.0.0.1:6379/0")

# Tolérances de comparaison prix déclaré / prix recalculé (en euros, montant en centimes)
STOCK_PRICE_TOLERANCE = _int_env("STOCK_PRICE_TOLERANCE", 1)
CUSTOM_PRICE_TOLERANCE = _int_env("CUSTOM_PRICE_TOLERANCE", 1)
AMOUNT_TOLERANCE_CENTS = _int_env("AMOUNT_TOLERANCE_CENTS", 100)

# Chemins de retour du paiement (relatifs à BASE_URL)
CHECKOUT_PATH = os.getenv("CHECKOUT_PATH", "/commander")
CATALOG_PATH = os.getenv("CATALOG_PATH", "/boutique")
NOTIFICATION_PATH = os.getenv("NOTIFICATION_PATH", "/api/v1/payments/webhook")

# Canal de repli (commande par email) si le paiement en ligne est indisponible
ORDER_CONTACT_EMAIL = _clean_env(os.getenv("ORDER_CONTACT_EMAIL") or "contact@mistralpans.fr")
