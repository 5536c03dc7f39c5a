from datetime import datetime, timedelta, timezone

import pytest

from checkout.orders.models import OrderItem, PendingOrder
from checkout.orders.pending import PENDING_SESSION_KEY, PendingOrderStore
from checkout.orders.reconciler import CANCELLED_MESSAGE, FAILURE_MESSAGES, GENERIC_FAILURE_MESSAGE, reconcile_return


def _pending(**kwargs):
    data = dict(
        reference="MP2610-ABC123",
        customer={"email": "ana@example.com"},
        items=[OrderItem(id="cart_i1", type="instrument", source_id="inst-1", nom="Handpan D Kurd 9", unit_price=1400)],
        product_name="Handpan D Kurd 9",
        payment_type="full",
        paid_amount=1400,
        total=1400,
    )
    data.update(kwargs)
    return PendingOrder(**data)


@pytest.fixture
def store():
    return PendingOrderStore({})


def test_save_and_load(store):
    store.save(_pending())
    loaded = store.load()
    assert loaded.reference == "MP2610-ABC123"
    assert loaded.items[0].source_id == "inst-1"

def test_expired_pending_is_purged():
    session = {}
    store = PendingOrderStore(session)
    now = datetime(2026, 10, 17, 12, 0, tzinfo=timezone.utc)
    store.save(_pending(created_at=(now - timedelta(hours=25)).isoformat()))
    assert store.load(now=now) is None
    assert PENDING_SESSION_KEY not in session

def test_naive_created_at_is_utc(store):
    now = datetime(2026, 10, 17, 12, 0, tzinfo=timezone.utc)
    store.save(_pending(created_at="2026-10-17T01:00:00"))
    assert store.load(now=now) is not None

def test_malformed_pending_is_purged():
    session = {PENDING_SESSION_KEY: {"reference": "MP1", "createdAt": "pas une date"}}
    assert PendingOrderStore(session).load() is None
    assert PENDING_SESSION_KEY not in session


def test_no_status_means_no_outcome(store):
    assert reconcile_return({}, store) is None

def test_success_consumes_pending(store):
    store.save(_pending())
    outcome = reconcile_return({"status": "success", "ref": "MP2610-ABC123"}, store)
    assert outcome["status"] == "success"
    assert outcome["order"]["reference"] == "MP2610-ABC123"
    assert outcome["steps"]["title"] == "Paiement confirmé"
    assert store.load() is None

def test_success_without_pending(store):
    outcome = reconcile_return({"status": "success", "ref": "MP2610-XYZ"}, store)
    assert outcome["order"] is None
    assert outcome["reference"] == "MP2610-XYZ"

def test_success_next_steps_per_mode(store):
    store.save(_pending(payment_type="acompte", paid_amount=410, total=1365))
    steps = reconcile_return({"status": "success"}, store)["steps"]
    assert steps["title"] == "Acompte reçu"
    assert "955" in steps["lines"][1]

    store.save(_pending(payment_type="installments", installments=3, paid_amount=1510, total=1510))
    steps = reconcile_return({"status": "success"}, store)["steps"]
    assert len(steps["lines"]) == 3
    assert "504" in steps["lines"][0]

def test_cancelled_keeps_pending(store):
    store.save(_pending())
    outcome = reconcile_return({"status": "cancelled", "ref": "MP2610-ABC123"}, store)
    assert outcome["message"] == CANCELLED_MESSAGE
    assert outcome["retry"] is True
    assert store.load() is not None

def test_error_messages(store):
    outcome = reconcile_return({"status": "error", "failure": "card_declined"}, store)
    assert outcome["message"] == FAILURE_MESSAGES["card_declined"]
    assert reconcile_return({"status": "error", "failure": "inconnu"}, store)["message"] == GENERIC_FAILURE_MESSAGE
    assert reconcile_return({"status": "error"}, store)["message"] == GENERIC_FAILURE_MESSAGE
