import pytest

from checkout.commandes import repository
from checkout.errors import GatewayError, PersistenceError
from checkout.utils.notifier import PAYMENT_CONFIRMATION


def _payment(**kwargs):
    payment = {
        "id": "pay_123",
        "is_paid": True,
        "amount": 151000,
        "currency": "EUR",
        "billing": {"email": "ana@example.com", "first_name": "Ana", "last_name": "Diaz"},
        "hosted_payment": {"paid_at": 1893456000},
        "metadata": {"order_reference": "MP2610-ABC123", "payment_type": "full", "order_id": "cmd-1"},
    }
    payment.update(kwargs)
    return payment


@pytest.fixture
def db(monkeypatch):
    calls = {"inserted": [], "updated": [], "existing": set()}

    def _insert(record):
        # Contrainte unique sur payplug_id
        if record["payplug_id"] in calls["existing"]:
            return False
        calls["inserted"].append(record)
        calls["existing"].add(record["payplug_id"])
        return True

    def _update(data, order_id=None, reference=None):
        calls["updated"].append({"data": data, "order_id": order_id, "reference": reference})
        return True

    monkeypatch.setattr("checkout.commandes.repository.insert_paiement", _insert)
    monkeypatch.setattr("checkout.commandes.repository.update_commande", _update)
    return calls


def _get_payment(monkeypatch, payment):
    seen = []

    def _fake(payment_id):
        seen.append(payment_id)
        return payment

    monkeypatch.setattr("checkout.payments.payplug_client.get_payment", _fake)
    return seen


def test_paid_notification_records_once(client, monkeypatch, db, notifier):
    seen = _get_payment(monkeypatch, _payment())

    resp = client.post("/api/v1/payments/webhook", json={"id": "pay_123", "is_paid": True})
    assert resp.status_code == 200
    assert resp.json() == {"success": True, "message": "Paiement traité", "reference": "MP2610-ABC123"}
    assert seen == ["pay_123"]
    assert db["inserted"][0]["amount"] == 151000
    assert db["updated"][0]["data"]["statut"] == "paye"
    assert db["updated"][0]["order_id"] == "cmd-1"
    assert notifier.kinds() == [PAYMENT_CONFIRMATION]

    # Rejeu de la même notification: aucun nouvel enregistrement
    resp = client.post("/api/v1/payments/webhook", json={"id": "pay_123"})
    assert resp.json()["message"] == "Paiement déjà traité"
    assert len(db["inserted"]) == 1
    assert notifier.kinds() == [PAYMENT_CONFIRMATION]

def test_acompte_notification_marks_partial(client, monkeypatch, db, notifier):
    _get_payment(monkeypatch, _payment(metadata={"order_reference": "MP2610-ACPT01", "payment_type": "acompte"}))
    client.post("/api/v1/payments/webhook", json={"id": "pay_123"})
    update = db["updated"][0]
    assert update["data"]["statut"] == "acompte_paye"
    assert update["data"]["statut_paiement"] == "partiel"
    assert update["reference"] == "MP2610-ACPT01"

def test_body_is_never_trusted(client, monkeypatch, db):
    _get_payment(monkeypatch, _payment(is_paid=False))
    resp = client.post("/api/v1/payments/webhook", json={"id": "pay_123", "is_paid": True})
    assert resp.json()["message"] == "Notification reçue"
    assert db["inserted"] == []

def test_failed_and_refunded_notifications(client, monkeypatch, db):
    _get_payment(monkeypatch, _payment(is_paid=False, failure={"code": "card_declined", "message": "..."}))
    assert client.post("/api/v1/payments/webhook", json={"id": "pay_123"}).json()["failure"] == "card_declined"
    _get_payment(monkeypatch, _payment(is_paid=False, is_refunded=True))
    assert client.post("/api/v1/payments/webhook", json={"id": "pay_123"}).json()["message"] == "Remboursement traité"
    assert db["inserted"] == []

def test_missing_payment_id(client):
    resp = client.post("/api/v1/payments/webhook", json={"object": "payment"})
    assert resp.status_code == 400
    assert resp.json()["field"] == "id"

def test_unknown_payment_is_gateway_error(client, monkeypatch, db):
    def _raise(payment_id):
        raise GatewayError("Le paiement n'a pas pu être initialisé")

    monkeypatch.setattr("checkout.payments.payplug_client.get_payment", _raise)
    resp = client.post("/api/v1/payments/webhook", json={"id": "pay_inconnu"})
    assert resp.status_code == 502
    assert db["inserted"] == []

def test_storage_failure_is_reported_for_retry(client, monkeypatch, db, notifier):
    _get_payment(monkeypatch, _payment())

    def _insert_down(record):
        raise PersistenceError("Enregistrement du paiement impossible")

    monkeypatch.setattr("checkout.commandes.repository.insert_paiement", _insert_down)
    resp = client.post("/api/v1/payments/webhook", json={"id": "pay_123"})
    assert resp.status_code == 503
    assert resp.json()["code"] == "storage_unavailable"
    assert db["updated"] == []
    assert notifier.kinds() == []

def test_order_update_failure_then_retry_completes(client, monkeypatch, db, notifier):
    _get_payment(monkeypatch, _payment())
    working_update = repository.update_commande

    def _update_down(data, order_id=None, reference=None):
        raise PersistenceError("Mise à jour de la commande impossible")

    monkeypatch.setattr("checkout.commandes.repository.update_commande", _update_down)
    resp = client.post("/api/v1/payments/webhook", json={"id": "pay_123"})
    assert resp.status_code == 503
    assert len(db["inserted"]) == 1

    # PayPlug rejoue: le paiement existe déjà, la commande est tout de même mise à jour
    monkeypatch.setattr("checkout.commandes.repository.update_commande", working_update)
    resp = client.post("/api/v1/payments/webhook", json={"id": "pay_123"})
    assert resp.status_code == 200
    assert resp.json()["message"] == "Paiement déjà traité"
    assert len(db["inserted"]) == 1
    assert db["updated"][0]["data"]["statut"] == "paye"
