import fakeredis

from storefront.api.dependencies.carts import get_cart_repository
from storefront.api.schemas.cart import CartItem
from storefront.main import app
from storefront.services.cart_repository import CartRepository


def test_repository_accumulates_quantities(fake_redis):
    carts = CartRepository(fake_redis, ttl_seconds=60)
    carts.add_item(7, CartItem(product_id=3, tier=1, quantity=2))
    items = carts.add_item(7, CartItem(product_id=3, tier=1, quantity=1))

    assert [(i.product_id, i.tier, i.quantity) for i in items] == [(3, 1, 3)]
    assert 0 < fake_redis.ttl("carts:7") <= 60


def test_repository_keeps_customers_apart(fake_redis):
    carts = CartRepository(fake_redis, ttl_seconds=60)
    carts.add_item(1, CartItem(product_id=3, tier=1, quantity=1))
    assert carts.get(2) == []


def test_setting_zero_quantity_removes_line(fake_redis):
    carts = CartRepository(fake_redis, ttl_seconds=60)
    carts.add_item(1, CartItem(product_id=3, tier=2, quantity=4))
    carts.add_item(1, CartItem(product_id=2, tier=1, quantity=1))

    items = carts.set_quantity(1, 3, 2, 0)

    assert [(i.product_id, i.tier) for i in items] == [(2, 1)]


def test_cart_endpoints(client):
    response = client.post("/api/carts/5/items", json={"product_id": 9, "tier": 2, "quantity": 3})
    assert response.status_code == 200
    assert response.json() == {
        "customer_id": 5,
        "items": [{"product_id": 9, "tier": 2, "quantity": 3}],
    }

    response = client.put("/api/carts/5/items/9/2", json={"quantity": 1})
    assert response.json()["items"][0]["quantity"] == 1

    client.post("/api/carts/5/items", json={"product_id": 4, "tier": 1, "quantity": 1})
    response = client.delete("/api/carts/5/items/9/2")
    assert [item["product_id"] for item in response.json()["items"]] == [4]

    assert client.delete("/api/carts/5").status_code == 204
    assert client.get("/api/carts/5").json()["items"] == []


def test_cart_rejects_invalid_lines(client):
    bad_tier = {"product_id": 9, "tier": 4, "quantity": 1}
    assert client.post("/api/carts/5/items", json=bad_tier).status_code == 422
    assert client.get("/api/carts/0").status_code == 422


def test_cart_store_outage_returns_503(client):
    app.dependency_overrides[get_cart_repository] = lambda: CartRepository(
        fakeredis.FakeRedis(connected=False), 60
    )
    response = client.get("/api/carts/5")
    assert response.status_code == 503
