import re

from checkout.pricing import ONEY_GATEWAY_MIN

REFERENCE_RE = re.compile(r"^MP\d{4}-[A-Z0-9]{6}$")


def _body(customer, amount=151000, payment_type="full", items=None, shipping="colissimo", **extra):
    body = {
        "amount": amount,
        "paymentType": payment_type,
        "customer": customer,
        "description": "Paiement - Handpan D Kurd 9",
        "metadata": {
            "shippingMethod": shipping,
            "items": items if items is not None else [{
                "id": "cart_i1", "type": "instrument", "sourceId": "inst-1", "nom": "Handpan D Kurd 9",
                "unitPrice": 1400, "quantity": 1,
                "options": [{"type": "housse", "id": "housse-1", "nom": "Housse Hardcase", "price": 60}],
            }],
        },
    }
    body.update(extra)
    return body


def test_create_full_payment_stock_with_housse(client, gateway, customer):
    resp = client.post("/api/v1/payments/create", json=_body(customer))
    assert resp.status_code == 200
    data = resp.json()
    assert data["success"] is True
    assert data["amount"] == 151000
    assert REFERENCE_RE.match(data["reference"])
    assert data["paymentUrl"].startswith("https://secure.payplug.com/")
    assert gateway.last["amount"] == 151000
    assert gateway.last["metadata"]["total_cents"] == 151000
    assert gateway.last["metadata"]["payment_type"] == "full"
    assert gateway.last["shipping"]["delivery_type"] == "NEW"

def test_create_acompte_custom_11_notes(client, gateway, customer):
    items = [{"id": "cart_c1", "type": "custom", "nom": "Handpan sur mesure 11 notes", "unitPrice": 1365,
              "details": {"gamme": "D Kurd", "taille": "53", "noteCount": 11}}]
    resp = client.post("/api/v1/payments/create", json=_body(customer, 41000, "acompte", items=items, shipping="retrait"))
    assert resp.status_code == 200
    assert resp.json()["amount"] == 41000
    assert gateway.last["amount"] == 41000
    assert gateway.last["shipping"]["delivery_type"] == "SHIP_TO_STORE"

def test_tampered_price_is_rejected_before_gateway(client, gateway, customer):
    items = [{"id": "cart_i1", "type": "instrument", "sourceId": "inst-promo", "nom": "Handpan Celtic 10", "unitPrice": 1000}]
    resp = client.post("/api/v1/payments/create", json=_body(customer, 100000, items=items, shipping="retrait"))
    assert resp.status_code == 400
    data = resp.json()
    assert data["code"] == "price_mismatch"
    assert data["item"] == "Handpan Celtic 10"
    assert "1080" not in data["error"]
    assert gateway.payloads == []

def test_declared_amount_too_low_is_rejected(client, gateway, customer):
    resp = client.post("/api/v1/payments/create", json=_body(customer, 50000))
    assert resp.status_code == 400
    assert resp.json()["code"] == "price_mismatch"
    assert gateway.payloads == []

def test_oney_installments_payload(client, gateway, oney_customer):
    resp = client.post("/api/v1/payments/create", json=_body(oney_customer, payment_type="installments", installments=3))
    assert resp.status_code == 200
    payload = gateway.last
    assert payload["payment_method"] == "oney_x3_with_fees"
    assert payload["authorized_amount"] == 151000
    assert payload["auto_capture"] is True
    assert len(payload["payment_context"]["cart"]) == 1

def test_oney_requires_address(client, gateway, customer):
    resp = client.post("/api/v1/payments/create", json=_body(customer, payment_type="installments", installments=3))
    assert resp.status_code == 400
    assert resp.json()["field"] == "address"

def test_oney_out_of_bounds(client, gateway, oney_customer):
    items = [{"id": "cart_a1", "type": "accessoire", "sourceId": "support-1", "nom": "Support bois", "unitPrice": 35}]
    resp = client.post("/api/v1/payments/create",
                       json=_body(oney_customer, 3500, "installments", items=items, shipping="retrait", installments=3))
    assert 35 < ONEY_GATEWAY_MIN
    assert resp.status_code == 400
    assert resp.json()["code"] == "amount_out_of_bounds"

def test_invalid_email(client, gateway):
    resp = client.post("/api/v1/payments/create", json=_body({"email": "ana@", "firstName": "Ana", "lastName": "Diaz"}))
    assert resp.status_code == 400
    assert resp.json()["field"] == "email"

def test_invalid_json_body(client):
    resp = client.post("/api/v1/payments/create", content=b"pas du json", headers={"Content-Type": "application/json"})
    assert resp.status_code == 400
    assert resp.json()["code"] == "invalid_input"

def test_gateway_failure_suggests_email(client, gateway, customer):
    gateway.fail()
    resp = client.post("/api/v1/payments/create", json=_body(customer))
    assert resp.status_code == 502
    data = resp.json()
    assert data["fallback"] == "email"
    assert data["error"] == "Le paiement n'a pas pu être initialisé"

def test_create_payment_rate_limited(client, gateway):
    for _ in range(10):
        assert client.post("/api/v1/payments/create", json={}).status_code == 400
    resp = client.post("/api/v1/payments/create", json={})
    assert resp.status_code == 429
    assert "error" in resp.json()

def test_create_payment_fail_closed_without_store(app, client, customer):
    app.state.rate_limit_store = None
    resp = client.post("/api/v1/payments/create", json=_body(customer))
    assert resp.status_code == 429

def test_stock_instrument_plus_accessory_line(client, gateway, customer):
    items = [
        {"id": "cart_i1", "type": "instrument", "sourceId": "inst-1", "nom": "Handpan D Kurd 9", "unitPrice": 1400},
        {"id": "cart_a1", "type": "accessoire", "sourceId": "housse-1", "nom": "Housse Hardcase", "unitPrice": 60},
    ]
    resp = client.post("/api/v1/payments/create", json=_body(customer, items=items))
    assert resp.status_code == 200
    assert resp.json()["amount"] == 151000
    assert gateway.last["metadata"]["source"] == "stock"

def test_legacy_custom_request_charges_declared_price(client, gateway, customer):
    body = {
        "amount": 150000,
        "paymentType": "full",
        "customer": customer,
        "metadata": {"shippingMethod": "retrait", "taille": "53", "noteCount": 11},
    }
    resp = client.post("/api/v1/payments/create", json=body)
    assert resp.status_code == 200
    assert resp.json()["amount"] == 150000
    assert gateway.last["amount"] == 150000
    assert gateway.last["metadata"]["source"] == "custom"

def test_legacy_custom_request_below_floor_is_rejected(client, gateway, customer):
    body = {
        "amount": 100000,
        "paymentType": "full",
        "customer": customer,
        "metadata": {"shippingMethod": "retrait", "taille": "53", "noteCount": 11},
    }
    resp = client.post("/api/v1/payments/create", json=body)
    assert resp.status_code == 400
    assert resp.json()["code"] == "price_mismatch"
    assert gateway.payloads == []

def test_accessory_price_with_cents_is_charged_to_the_cent(client, gateway, customer):
    items = [{"id": "cart_a1", "type": "accessoire", "sourceId": "huile-1", "nom": "Huile de protection",
              "unitPrice": 34.9, "quantity": 3}]
    resp = client.post("/api/v1/payments/create", json=_body(customer, 10470, items=items, shipping="retrait"))
    assert resp.status_code == 200
    assert resp.json()["amount"] == 10470
    assert gateway.last["amount"] == 10470
    assert gateway.last["metadata"]["total_cents"] == 10470
