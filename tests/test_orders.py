from conftest import bearer, register
from plantshop import models

CARD = {"payment_method": "card", "payment_status": "paid"}


def test_order_end_to_end_is_scoped_to_owner(client, make_product):
    fern = make_product(name="Fern", price=80)
    alice = bearer(register(client, "alice@example.com")["token"])
    bob = bearer(register(client, "bob@example.com")["token"])

    r = client.post("/orders", json={"items": [{"product_id": fern["id"], "quantity": 2}], "total": 160, "payment_details": CARD}, headers=alice)
    assert r.status_code == 201, r.text
    order = r.json()
    assert order["status"] == "pending"
    assert order["total"] == "160.00"
    assert order["items"][0]["unit_price"] == "80.00"

    r = client.get("/orders", headers=alice)
    assert r.status_code == 200
    orders = r.json()
    assert len(orders) == 1
    assert orders[0]["items"][0]["quantity"] == 2
    assert orders[0]["items"][0]["product"]["name"] == "Fern"

    r = client.get("/orders", headers=bob)
    assert r.status_code == 200
    assert r.json() == []


def test_orders_require_session(client):
    assert client.get("/orders").status_code == 401
    assert client.post("/orders", json={}).status_code == 401


def test_unknown_product_is_404_and_nothing_persisted(client, db_session, make_product):
    fern = make_product()
    user = bearer(register(client, "carol@example.com")["token"])

    items = [{"product_id": fern["id"], "quantity": 1}, {"product_id": 9999, "quantity": 1}]
    r = client.post("/orders", json={"items": items, "total": 75, "payment_details": CARD}, headers=user)
    assert r.status_code == 404
    assert r.json()["product_id"] == 9999
    assert db_session.query(models.Order).count() == 0


def test_invalid_order_payloads(client, make_product):
    fern = make_product()
    user = bearer(register(client, "dave@example.com")["token"])
    line = [{"product_id": fern["id"], "quantity": 1}]

    cases = [
        {"items": [], "total": 75, "payment_details": CARD},
        {"items": line, "payment_details": CARD},
        {"items": line, "total": 75},
        {"items": [{"product_id": fern["id"], "quantity": 0}], "total": 75, "payment_details": CARD},
        {"items": line, "total": 0, "payment_details": CARD},
        {"items": line, "total": "lots", "payment_details": CARD},
        {"items": [{"product_id": "abc", "quantity": 1}], "total": 75, "payment_details": CARD},
    ]
    for payload in cases:
        r = client.post("/orders", json=payload, headers=user)
        assert r.status_code == 400, payload


def test_total_is_recomputed_server_side(client, make_product):
    fern = make_product(price="10.25")
    user = bearer(register(client, "erin@example.com")["token"])
    r = client.post("/orders", json={"items": [{"product_id": fern["id"], "quantity": 3}], "total": 1, "payment_details": CARD}, headers=user)
    assert r.status_code == 201
    assert r.json()["total"] == "30.75"


def test_create_order_clears_cart_cookie(client, make_product):
    fern = make_product()
    user = bearer(register(client, "fay@example.com")["token"])
    r = client.post("/orders", json={"items": [{"product_id": fern["id"], "quantity": 1}], "total": 75, "payment_details": CARD}, headers=user)
    assert r.status_code == 201
    assert "cart=" in r.headers["set-cookie"]


def test_orders_listed_most_recent_first(client, make_product):
    fern = make_product()
    user = bearer(register(client, "gus@example.com")["token"])
    ids = []
    for qty in (1, 2, 3):
        r = client.post("/orders", json={"items": [{"product_id": fern["id"], "quantity": qty}], "total": 75 * qty, "payment_details": CARD}, headers=user)
        ids.append(r.json()["id"])
    listed = [o["id"] for o in client.get("/orders", headers=user).json()]
    assert listed == list(reversed(ids))


def test_delete_order(client, make_product):
    fern = make_product()
    owner = bearer(register(client, "hana@example.com")["token"])
    other = bearer(register(client, "ian@example.com")["token"])
    oid = client.post("/orders", json={"items": [{"product_id": fern["id"], "quantity": 1}], "total": 75, "payment_details": CARD}, headers=owner).json()["id"]

    # someone else's order looks exactly like a missing one
    r = client.delete(f"/orders/{oid}", headers=other)
    assert r.status_code == 404
    missing = client.delete("/orders/424242", headers=other)
    assert missing.status_code == 404
    assert r.json() == missing.json()

    r = client.delete(f"/orders/{oid}", headers=owner)
    assert r.status_code == 200
    assert client.get("/orders", headers=owner).json() == []
    assert client.delete(f"/orders/{oid}", headers=owner).status_code == 404


def test_order_history_survives_product_removal(client, admin_headers, make_product):
    fern = make_product()
    user = bearer(register(client, "jo@example.com")["token"])
    client.post("/orders", json={"items": [{"product_id": fern["id"], "quantity": 1}], "total": 75, "payment_details": CARD}, headers=user)

    assert client.delete(f"/products/{fern['id']}", headers=admin_headers).status_code == 200
    orders = client.get("/orders", headers=user).json()
    assert len(orders) == 1
    assert orders[0]["items"][0]["unit_price"] == "75.00"
    assert orders[0]["items"][0]["product"] is None
    assert orders[0]["items"][0]["product_id"] is None


def test_out_of_range_client_total_is_rejected_before_saving(client, db_session, make_product):
    fern = make_product()
    user = bearer(register(client, "eve@example.com")["token"])
    line = [{"product_id": fern["id"], "quantity": 1}]

    for total in ("1e30", 1e30, "-1e30", "Infinity"):
        r = client.post("/orders", json={"items": line, "total": total, "payment_details": CARD}, headers=user)
        assert r.status_code == 400, total
        assert r.json()["detail"] == "Total must be a valid positive number"
    assert db_session.query(models.Order).count() == 0


def test_order_total_too_large_for_store(client, db_session, make_product):
    fern = make_product()
    user = bearer(register(client, "fay@example.com")["token"])

    r = client.post(
        "/orders",
        json={"items": [{"product_id": fern["id"], "quantity": 10**12}], "total": 75, "payment_details": CARD},
        headers=user,
    )
    assert r.status_code == 400
    assert r.json()["detail"] == "Order total is too large"
    assert db_session.query(models.Order).count() == 0
