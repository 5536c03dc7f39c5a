import os

# Rate limiting en mémoire et clé PayPlug factice (aucun appel réseau pendant les tests)
os.environ["RATE_LIMIT_BACKEND"] = "memory"
os.environ["PAYPLUG_SECRET_KEY"] = "sk_test_dummy"
os.environ["PAYPLUG_INTEGRATED"] = "false"

import pytest
from typing import Any, Dict, Generator, List, Optional
from fastapi.testclient import TestClient
from unittest.mock import MagicMock

from checkout.app import app as fastapi_app
from checkout.errors import GatewayError
from checkout.utils.notifier import Notifier

# Marquage automatique selon le dossier
def pytest_collection_modifyitems(config, items):
    for item in items:
        nodeid = item.nodeid.replace("\\", "/")
        if "/tests/unit/" in nodeid or nodeid.startswith("tests/unit/"):
            item.add_marker(pytest.mark.unit)
        elif "/tests/integration/" in nodeid or nodeid.startswith("tests/integration/"):
            item.add_marker(pytest.mark.integration)
        elif "/tests/functional/" in nodeid or nodeid.startswith("tests/functional/"):
            item.add_marker(pytest.mark.functional)


INSTRUMENTS = {
    "inst-1": {"id": "inst-1", "nom": "Handpan D Kurd 9", "prix_vente": 1400, "promo_percent": None,
               "statut": "en_ligne", "taille": "53", "gamme": "D Kurd"},
    "inst-promo": {"id": "inst-promo", "nom": "Handpan Celtic 10", "prix_vente": 1200, "promo_percent": 10,
                   "statut": "disponible", "taille": "50", "gamme": "Celtic"},
    "inst-vendu": {"id": "inst-vendu", "nom": "Handpan Amara 9", "prix_vente": 1300, "promo_percent": None,
                   "statut": "vendu", "taille": "53", "gamme": "Amara"},
}

ACCESSOIRES = {
    "housse-1": {"id": "housse-1", "nom": "Housse Hardcase", "prix": 60, "statut": "actif", "categorie": "housse"},
    "support-1": {"id": "support-1", "nom": "Support bois", "prix": 35, "statut": "actif", "categorie": "support"},
    "old-1": {"id": "old-1", "nom": "Housse ancienne", "prix": 20, "statut": "inactif", "categorie": "housse"},
    "huile-1": {"id": "huile-1", "nom": "Huile de protection", "prix": 34.9, "statut": "actif", "categorie": "entretien"},
}

TAILLES_MALUS = {"45": 0, "50": 50, "53": 100}


class RecordingNotifier(Notifier):
    def __init__(self):
        self.sent: List[Dict[str, Any]] = []

    def send(self, kind: str, payload: Dict[str, Any]) -> bool:
        self.sent.append({"kind": kind, "payload": payload})
        return True

    def kinds(self) -> List[str]:
        return [s["kind"] for s in self.sent]


class FakeGateway:
    """Remplace payplug_client.create_payment: enregistre les payloads, répond comme PayPlug."""

    def __init__(self):
        self.payloads: List[Dict[str, Any]] = []
        self.error: Optional[Exception] = None

    def __call__(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        if self.error is not None:
            raise self.error
        self.payloads.append(payload)
        n = len(self.payloads)
        return {
            "id": f"pay_test_{n}",
            "hosted_payment": {"payment_url": f"https://secure.payplug.com/pay/test_{n}", "expires_at": 1893456000},
        }

    def fail(self, message: str = "Le paiement n'a pas pu être initialisé"):
        self.error = GatewayError(message)

    @property
    def last(self) -> Dict[str, Any]:
        return self.payloads[-1]


@pytest.fixture(scope="session")
def app():
    return fastapi_app

@pytest.fixture()
def client(app) -> Generator[TestClient, None, None]:
    # Le context manager déclenche le lifespan (store de rate limit neuf à chaque test)
    with TestClient(app) as c:
        yield c

@pytest.fixture
def notifier(app, client):
    previous = getattr(app.state, "notifier", None)
    recorder = RecordingNotifier()
    app.state.notifier = recorder
    try:
        yield recorder
    finally:
        app.state.notifier = previous

@pytest.fixture(autouse=True)
def gateway(monkeypatch) -> FakeGateway:
    fake = FakeGateway()
    monkeypatch.setattr("checkout.payments.payplug_client.create_payment", fake, raising=True)
    return fake


# Mock du catalogue et de Supabase pour tous les tests
@pytest.fixture(scope="function", autouse=True)
def mock_db_dependency(monkeypatch):
    """
    Aucun accès Supabase: clients remplacés par des MagicMock, catalogue servi depuis les dicts ci-dessus.
    """
    monkeypatch.setattr("checkout.infra.supabase_client.get_supabase", lambda: MagicMock())
    monkeypatch.setattr("checkout.infra.supabase_client.get_service_supabase", lambda: MagicMock())

    monkeypatch.setattr("checkout.catalog.repository.fetch_instrument", lambda i: dict(INSTRUMENTS[i]) if i in INSTRUMENTS else None)
    monkeypatch.setattr("checkout.catalog.repository.fetch_accessoire", lambda i: dict(ACCESSOIRES[i]) if i in ACCESSOIRES else None)
    monkeypatch.setattr("checkout.catalog.repository.fetch_size_malus", lambda code: float(TAILLES_MALUS.get(code or "", 0)))
    monkeypatch.setattr("checkout.catalog.repository.fetch_tarifs_publics", lambda: None)

    # Patch les fonctions de commandes/repository
    monkeypatch.setattr("checkout.commandes.repository.insert_paiement", lambda record: True)
    monkeypatch.setattr("checkout.commandes.repository.update_commande", lambda data, order_id=None, reference=None: True)
    monkeypatch.setattr("checkout.commandes.repository.fetch_commande_by_reference", lambda reference, email: None)


@pytest.fixture
def customer() -> Dict[str, Any]:
    return {"email": "ana@example.com", "firstName": "Ana", "lastName": "Diaz", "phone": "0601020304"}

@pytest.fixture
def oney_customer(customer) -> Dict[str, Any]:
    return {**customer, "address": {"line1": "12 rue des Lilas", "postalCode": "75011", "city": "Paris", "country": "FR"}}

@pytest.fixture
def checkout_form() -> Dict[str, str]:
    return {"firstname": "Ana", "lastname": "Diaz", "email": "ana@example.com", "phone": "0601020304", "cgv": "1"}
