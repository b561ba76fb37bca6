import pytest
from fastapi.testclient import TestClient

from supercar_shop_server import http_server
from supercar_shop_server.shop import Shop


@pytest.fixture
def shop(settings):
    shop = Shop(settings.model_copy(update={"backend": "local"}))
    http_server.shop = shop
    yield shop
    http_server.shop = None
    shop.backend.close()


@pytest.fixture
def client(shop):
    # No context manager: the lifespan would replace the prepared shop
    return TestClient(http_server.app)


def login(client):
    response = client.post("/auth/login", json={"email": "user@shopapp.com", "password": "user123"})
    assert response.json()["success"]


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "backend": "local", "authenticated": False}


def test_product_pages(client):
    first = client.get("/products").json()
    assert len(first["items"]) == 6
    assert first["total_pages"] == 3
    assert first["has_more"]

    last = client.get("/products", params={"page": 3}).json()
    assert len(last["items"]) == 5
    assert not last["has_more"]

    bugatti = client.get("/products", params={"category": "Bugatti"}).json()
    assert [p["name"] for p in bugatti["items"]] == ["Bugatti Veyron", "Bugatti Chiron"]

    assert client.get("/products", params={"page": 0}).status_code == 400


def test_product_detail_and_categories(client):
    assert client.get("/products/7").json()["name"] == "Bugatti Chiron"
    response = client.get("/products/999")
    assert response.status_code == 404
    assert response.json()["detail"]["kind"] == "not_found"

    categories = client.get("/categories").json()
    assert categories["count"] == 6


def test_highlights(client):
    featured = client.get("/highlights/featured", params={"limit": 2}).json()
    assert featured["count"] == 2
    assert [p["name"] for p in featured["products"]] == ["Aston Martin DBS Superleggera", "Aston Martin DB11"]

    new = client.get("/highlights/new").json()
    assert new["count"] == 8
    assert all(p["is_new"] for p in new["products"])

    top = client.get("/highlights/top_sold", params={"limit": 1}).json()
    assert top["products"][0]["name"] == "Porsche 911 Turbo S"

    assert client.get("/highlights/cheapest").status_code == 400


def test_cart_requires_login(client):
    assert client.get("/cart").status_code == 401
    assert client.post("/cart/add", json={"product_id": "1"}).status_code == 401


def test_login_failure(client):
    response = client.post("/auth/login", json={"email": "user@shopapp.com", "password": "nope"})
    assert response.status_code == 200
    assert not response.json()["success"]


def test_cart_rules(client):
    login(client)

    body = client.post("/cart/add", json={"product_id": "1"}).json()
    assert body["cart"]["lines"][0]["quantity"] == 1
    assert body["selected_line_ids"] == [body["cart"]["lines"][0]["id"]]

    over_cap = client.post("/cart/add", json={"product_id": "1", "quantity": 2})
    assert over_cap.status_code == 409
    assert over_cap.json()["detail"]["kind"] == "quantity_limit_exceeded"

    # SF90: one in stock
    no_stock = client.post("/cart/add", json={"product_id": "2", "quantity": 2})
    assert no_stock.status_code == 409
    assert no_stock.json()["detail"] == {
        "kind": "out_of_stock",
        "product_id": "2",
        "available": 1,
        "requested": 2,
        "applied_quantity": 0,
    }

    removal = client.post("/cart/update", json={"product_id": "1", "quantity": 0})
    assert removal.status_code == 409
    assert removal.json()["detail"]["kind"] == "removal_confirmation_required"

    body = client.post("/cart/update", json={"product_id": "1", "quantity": 0, "confirm_removal": True}).json()
    assert body["cart"]["lines"] == []


def test_selection_and_checkout(client):
    login(client)
    client.post("/cart/add", json={"product_id": "1"})
    body = client.post("/cart/add", json={"product_id": "4"}).json()
    first_line = body["cart"]["lines"][0]["id"]

    toggled = client.post("/cart/selection/toggle", json={"line_id": first_line}).json()
    assert toggled["result"] == "deselected"
    assert not toggled["all_selected"]

    summary = client.get("/cart/checkout").json()
    assert summary["subtotal"] == 11_500_000_000
    assert summary["total"] == 11_500_000_000
    assert [w["product_id"] for w in summary["warnings"]] == ["4"]

    none_selected = client.post("/cart/selection/toggle", json={"line_id": body["cart"]["lines"][1]["id"]})
    assert none_selected.json()["selected_line_ids"] == []
    response = client.get("/cart/checkout")
    assert response.status_code == 409
    assert response.json()["detail"]["kind"] == "empty_selection"

    everything = client.post("/cart/selection/toggle-all").json()
    assert len(everything["selected_line_ids"]) == 2

    cleared = client.post("/cart/clear").json()
    assert cleared["cart"]["lines"] == []
    assert cleared["selected_line_ids"] == []


def test_reviews(client):
    assert client.post("/products/3/reviews", json={"rating": 5}).status_code == 401

    login(client)
    assert client.post("/products/3/reviews", json={"rating": 6}).status_code == 422
    body = client.post("/products/3/reviews", json={"rating": 4, "comment": "Smooth"}).json()
    assert body == {"success": True, "count": 1, "average_rating": 4.0}

    reviews = client.get("/products/3/reviews").json()
    assert reviews["reviews"][0]["author"] == "Test User"
    assert client.get("/products/5/reviews").json()["count"] == 0
