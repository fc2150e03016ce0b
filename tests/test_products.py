from decimal import Decimal

from conftest import PNG, bearer, register
from plantshop import crud


def test_list_products_is_public(client):
    r = client.get("/products")
    assert r.status_code == 200
    assert r.json() == []


def test_add_then_list_includes_new_product(client, make_product):
    # warm the cache so the add has something to invalidate
    assert client.get("/products").json() == []

    created = make_product(name="Fern", price=75)
    assert created["price"] == "75.00"

    names = [p["name"] for p in client.get("/products").json()]
    assert names == ["Fern"]


def test_reads_within_ttl_are_identical_even_if_store_changes(client, db_session, make_product):
    make_product(name="Cactus", price="12.50")
    first = client.get("/products")

    # change the store behind the service's back
    crud.create_product(db_session, "Monstera", "Big leaves", Decimal("40"), PNG)

    second = client.get("/products")
    assert first.content == second.content
    assert [p["name"] for p in second.json()] == ["Cactus"]


def test_price_boundaries(client, admin_headers):
    base = {"name": "Pothos", "description": "Trailing vine", "image": PNG}
    for bad in (0, -5, "0", "abc", "0.001", "1e30", 1e30, "Infinity"):
        r = client.post("/products", json={**base, "price": bad}, headers=admin_headers)
        assert r.status_code == 400, bad
        assert r.json()["detail"] == "Price must be a valid positive number"

    r = client.post("/products", json={**base, "price": 0.01}, headers=admin_headers)
    assert r.status_code == 201
    assert r.json()["price"] == "0.01"


def test_missing_fields_reported(client, admin_headers):
    r = client.post("/products", json={"name": "Aloe", "price": 10}, headers=admin_headers)
    assert r.status_code == 400
    body = r.json()
    assert body["detail"] == "All fields are required"
    assert body["missingFields"] == {"name": False, "description": True, "price": False, "image": True}


def test_malformed_image_rejected(client, admin_headers):
    for image in ("http://example.com/fern.png", "data:text/plain;base64,aGVsbG8=", "data:image/png;base64,"):
        r = client.post("/products", json={"name": "Aloe", "description": "Succulent", "price": 10, "image": image}, headers=admin_headers)
        assert r.status_code == 400, image


def test_markup_stripped_from_text_fields(client, make_product):
    created = make_product(name="<b>Snake plant</b>", description="<script>x</script>Hardy")
    assert created["name"] == "Snake plant"
    assert "<script>" not in created["description"]


def test_update_product(client, admin_headers, make_product):
    created = make_product(name="Fern", price=75)
    client.get("/products")

    r = client.put(f"/products/{created['id']}", json={"name": "Boston Fern", "description": "Lush", "price": "80.5"}, headers=admin_headers)
    assert r.status_code == 200
    updated = r.json()
    assert updated["name"] == "Boston Fern"
    assert updated["price"] == "80.50"
    # image omitted: unchanged
    assert updated["image"] == PNG

    listed = client.get("/products").json()
    assert listed[0]["name"] == "Boston Fern"


def test_update_product_errors(client, admin_headers, make_product):
    r = client.put("/products/999", json={"name": "X", "description": "Y", "price": 1}, headers=admin_headers)
    assert r.status_code == 404

    created = make_product()
    r = client.put(f"/products/{created['id']}", json={"name": "X", "description": "Y", "price": -1}, headers=admin_headers)
    assert r.status_code == 400
    r = client.put(f"/products/{created['id']}", json={"name": "X", "description": "Y", "price": 1, "image": "nope"}, headers=admin_headers)
    assert r.status_code == 400


def test_delete_product(client, admin_headers, make_product):
    created = make_product()
    assert len(client.get("/products").json()) == 1

    r = client.delete(f"/products/{created['id']}", headers=admin_headers)
    assert r.status_code == 200
    assert client.get("/products").json() == []

    r = client.delete(f"/products/{created['id']}", headers=admin_headers)
    assert r.status_code == 404


def test_regular_user_cannot_mutate_catalog(client, make_product):
    created = make_product()
    token = register(client, "buyer@example.com")["token"]
    r = client.put(f"/products/{created['id']}", json={"name": "X", "description": "Y", "price": 1}, headers=bearer(token))
    assert r.status_code == 403
