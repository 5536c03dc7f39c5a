from unittest.mock import MagicMock

import pytest
from postgrest.exceptions import APIError

from checkout.commandes.repository import insert_paiement, update_commande
from checkout.errors import PersistenceError


def _client(monkeypatch, side_effect=None):
    client = MagicMock()
    if side_effect is not None:
        client.table.return_value.insert.return_value.execute.side_effect = side_effect
        client.table.return_value.update.return_value.eq.return_value.execute.side_effect = side_effect
    monkeypatch.setattr("checkout.infra.supabase_client.get_service_supabase", lambda: client)
    return client


def test_insert_paiement_created(monkeypatch):
    client = _client(monkeypatch)
    assert insert_paiement({"payplug_id": "pay_1", "reference": "MP2610-ABC123"}) is True
    client.table.assert_called_with("paiements")

def test_insert_paiement_duplicate_is_not_an_error(monkeypatch):
    _client(monkeypatch, APIError({"code": "23505", "message": "duplicate key value violates unique constraint"}))
    assert insert_paiement({"payplug_id": "pay_1"}) is False

def test_insert_paiement_other_database_error_raises(monkeypatch):
    _client(monkeypatch, APIError({"code": "42501", "message": "permission denied"}))
    with pytest.raises(PersistenceError) as exc:
        insert_paiement({"payplug_id": "pay_1"})
    assert exc.value.status_code == 503

def test_insert_paiement_network_error_raises(monkeypatch):
    _client(monkeypatch, ConnectionError("supabase injoignable"))
    with pytest.raises(PersistenceError):
        insert_paiement({"payplug_id": "pay_1"})

def test_update_commande_by_id_or_reference(monkeypatch):
    client = _client(monkeypatch)
    assert update_commande({"statut": "paye"}, order_id="cmd-1", reference="MP2610-ABC123") is True
    client.table.return_value.update.return_value.eq.assert_called_with("id", "cmd-1")
    assert update_commande({"statut": "paye"}) is False

def test_update_commande_failure_raises(monkeypatch):
    _client(monkeypatch, ConnectionError("supabase injoignable"))
    with pytest.raises(PersistenceError):
        update_commande({"statut": "paye"}, reference="MP2610-ABC123")
