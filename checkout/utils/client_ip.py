from fastapi import Request

UNKNOWN_IP = "unknown"

def get_client_ip(request: Request) -> str:
    """
    Adresse IP du client pour le rate limiting.
    Priorité:
      1. x-forwarded-for (premier IP de la chaîne, ajouté par le CDN/proxy)
      2. en-tête client-ip de la plateforme
      3. adresse de la connexion (request.client.host), utile hors plateforme
         (dev local, tests) pour ne pas regrouper tous les clients
      4. 'unknown' (toutes les requêtes partagent alors le même compteur)
    """
    forwarded = (request.headers.get("x-forwarded-for") or "").split(",")[0].strip()
    if forwarded:
        return forwarded
    platform_ip = (request.headers.get("client-ip") or "").strip()
    if platform_ip:
        return platform_ip
    if request.client and request.client.host:
        return request.client.host
    return UNKNOWN_IP
