def test_add_instrument_uses_catalog_price(client):
    resp = client.post("/api/v1/panier/instruments", json={"id": "inst-promo", "prix": 10})
    assert resp.status_code == 200
    data = resp.json()
    assert data["item"]["unitPrice"] == 1080
    assert data["cart"]["itemCount"] == 1
    assert data["cart"]["source"] == "stock"

def test_add_instrument_with_housse(client):
    data = client.post("/api/v1/panier/instruments", json={"id": "inst-1", "housse": "housse-1"}).json()
    assert data["item"]["options"][0]["price"] == 60
    assert data["cart"]["totalPrice"] == 1460

def test_add_unavailable_instrument_or_housse(client):
    assert client.post("/api/v1/panier/instruments", json={"id": "inst-vendu"}).status_code == 404
    assert client.post("/api/v1/panier/instruments", json={"id": "inst-absent"}).status_code == 404
    resp = client.post("/api/v1/panier/instruments", json={"id": "inst-1", "housse": "old-1"})
    assert resp.status_code == 404
    assert resp.json() == {"detail": "Housse introuvable"}

def test_accessory_quantity_lifecycle(client):
    item = client.post("/api/v1/panier/accessoires", json={"id": "support-1", "quantity": 2}).json()["item"]
    assert item["quantity"] == 2
    data = client.patch(f"/api/v1/panier/items/{item['id']}", json={"quantity": 4}).json()
    assert data["cart"]["totalPrice"] == 140
    data = client.patch(f"/api/v1/panier/items/{item['id']}", json={"quantity": 0}).json()
    assert data["cart"]["items"] == []
    assert client.patch("/api/v1/panier/items/cart_inconnu", json={"quantity": 1}).status_code == 404

def test_quantity_not_editable_on_instrument(client):
    item = client.post("/api/v1/panier/instruments", json={"id": "inst-1"}).json()["item"]
    resp = client.patch(f"/api/v1/panier/items/{item['id']}", json={"quantity": 2})
    assert resp.status_code == 400
    assert resp.json()["field"] == "quantity"
    assert client.patch(f"/api/v1/panier/items/{item['id']}", json={"quantity": "x"}).status_code == 400

def test_custom_price_never_below_floor(client):
    data = client.post("/api/v1/panier/sur-mesure",
                       json={"gamme": "D Kurd", "noteCount": 11, "taille": "53", "prix": 900}).json()
    assert data["item"]["unitPrice"] == 1365
    assert data["item"]["details"]["noteCount"] == 11
    data = client.post("/api/v1/panier/sur-mesure", json={"gamme": "Amara", "noteCount": 9, "taille": "45", "prix": 1200}).json()
    assert data["item"]["unitPrice"] == 1200
    assert data["cart"]["itemCount"] == 2

def test_housse_set_and_removed(client):
    item = client.post("/api/v1/panier/instruments", json={"id": "inst-1"}).json()["item"]
    data = client.put(f"/api/v1/panier/items/{item['id']}/housse", json={"id": "housse-1"}).json()
    assert data["cart"]["totalPrice"] == 1460
    data = client.put(f"/api/v1/panier/items/{item['id']}/housse", json={"id": None}).json()
    assert data["cart"]["totalPrice"] == 1400

def test_delete_and_clear(client):
    item = client.post("/api/v1/panier/instruments", json={"id": "inst-1"}).json()["item"]
    client.post("/api/v1/panier/accessoires", json={"id": "support-1"})
    assert client.delete("/api/v1/panier/items/cart_inconnu").status_code == 404
    data = client.delete(f"/api/v1/panier/items/{item['id']}").json()
    assert data["cart"]["itemCount"] == 1
    data = client.delete("/api/v1/panier").json()
    assert data["cart"]["items"] == []

def test_get_cart_with_summary(client):
    client.post("/api/v1/panier/instruments", json={"id": "inst-1", "housse": "housse-1"})
    data = client.get("/api/v1/panier").json()
    assert data["summary"]["items_total"] == 1460
    assert data["summary"]["shipping"] == 0
    assert data["summary"]["deposit"] == 438
