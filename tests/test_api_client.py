import json

import httpx
import pytest

from supercar_shop_server.api_client import ShopApiClient, category_matches, normalize_name
from supercar_shop_server.errors import NotFound, TransportError, Unauthenticated
from supercar_shop_server.models import AuthCredentials

BASE_URL = "https://shop.test/api"

PRODUCTS = [
    {"_id": "p1", "name": "Huracán", "price": 19000, "stock_quantity": 4, "status": True,
     "is_featured": 1, "is_new": 1,
     "category_id": {"_id": "c1", "name": "Lamborghini"}},
    {"_id": "p2", "name": "SF90", "price": 34000.0, "stock_quantity": 0, "status": True,
     "is_featured": True,
     "category_id": "c2", "category_name": "Ferrari"},
    {"_id": "p3", "name": "Countach", "price": 50000, "stock_quantity": 1, "status": False,
     "category_id": {"_id": "c1", "name": "Lamborghini"}},
]


def handler(request: httpx.Request) -> httpx.Response:
    path = request.url.path.removeprefix("/api")
    if path == "/user/sign-in":
        body = json.loads(request.content)
        if body["password"] != "secret":
            return httpx.Response(200, json={"status": "ERR", "message": "wrong password"})
        return httpx.Response(
            200, json={"status": "OK", "data": {"_id": "u1"}, "token": {"access_token": "tok"}}
        )
    if path == "/product" and request.method == "GET":
        return httpx.Response(
            200,
            json={"status": "OK", "data": {"products": PRODUCTS, "total": {"totalProduct": 3, "totalActive": 2}}},
        )
    if path == "/product/top-sold":
        limit = int(request.url.params["limit"])
        return httpx.Response(200, json={"status": "OK", "data": {"products": [PRODUCTS[1], PRODUCTS[0]][:limit]}})
    if path == "/product/p1":
        return httpx.Response(200, json={"status": "OK", "data": PRODUCTS[0]})
    if path == "/category":
        return httpx.Response(200, json={"status": "OK", "data": [{"_id": "c1", "name": "Lamborghini"}]})
    if path == "/cart":
        if request.headers.get("Authorization") != "Bearer tok":
            return httpx.Response(401, json={"message": "unauthorized"})
        return httpx.Response(
            200,
            json={
                "data": {
                    "items": [
                        {"cart_id": 7, "product_id": {"_id": "p1", "name": "Huracán", "price": 19000,
                                                      "stock_quantity": 4, "status": True},
                         "quantity": 2}
                    ]
                }
            },
        )
    if path.startswith("/cart/remove/"):
        return httpx.Response(404, json={"message": "not in cart"})
    if path == "/cart/add":
        return httpx.Response(500, json={"status": "ERR", "message": "boom"})
    if path == "/product-review/product/p1":
        return httpx.Response(
            200,
            json={
                "success": True,
                "data": [
                    {"_id": "r1", "product_id": "p1", "rating": 5, "review_content": "Loud",
                     "user_id": {"_id": "u9", "user_name": "Ana"}, "createdAt": "2024-05-01T10:00:00Z"}
                ],
            },
        )
    return httpx.Response(404, json={"message": "not found"})


@pytest.fixture
async def client(auth_manager):
    client = ShopApiClient(auth_manager, BASE_URL, transport=httpx.MockTransport(handler))
    yield client
    await client.close()


async def test_login_saves_session(client, auth_manager):
    assert await client.login(AuthCredentials(email="a@b.c", password="secret"))
    assert auth_manager.current_user_id == "u1"
    assert auth_manager.get_token() == "tok"


async def test_login_rejected(client, auth_manager):
    assert not await client.login(AuthCredentials(email="a@b.c", password="nope"))
    assert not auth_manager.is_authenticated()


async def test_list_products_parses_ids_and_categories(client):
    page = await client.list_products(1, 100)

    assert page.total == 2
    assert [p.id for p in page.items] == ["p1", "p2", "p3"]
    assert page.items[0].category_id == "c1"
    assert page.items[0].category_name == "Lamborghini"
    assert page.items[1].price == 34000
    assert page.items[2].status is False


async def test_category_filter_is_accent_insensitive(client):
    page = await client.list_by_category("  LAMBORGHÍNI ", 1, 100)
    assert [p.id for p in page.items] == ["p1", "p3"]


async def test_get_product(client):
    product = await client.get_product("p1")
    assert product.name == "Huracán"

    with pytest.raises(NotFound) as exc:
        await client.get_product("missing")
    assert exc.value.resource == "product"


async def test_list_categories(client):
    categories = await client.list_categories()
    assert [(c.id, c.name) for c in categories] == [("c1", "Lamborghini")]


async def test_highlight_lists(client):
    featured = await client.list_featured(10)
    assert [p.id for p in featured] == ["p1", "p2"]
    assert [p.id for p in await client.list_featured(1)] == ["p1"]
    assert [p.id for p in await client.list_new(10)] == ["p1"]

    top = await client.list_top_sold(1)
    assert [p.id for p in top] == ["p2"]
    assert top[0].is_featured and not top[0].is_new


async def test_cart_requires_token(client, auth_manager):
    with pytest.raises(Unauthenticated):
        await client.get_cart("u1")

    auth_manager.save_session(user_id="u1", token="tok")
    cart = await client.get_cart("u1")
    assert cart.lines[0].id == "7"
    assert cart.lines[0].product_id == "p1"
    assert cart.lines[0].subtotal == 38000


async def test_remove_missing_line_is_a_no_op(client, signed_in):
    await client.remove_item("u1", "p9")


async def test_server_error_is_transport_error(client, signed_in):
    with pytest.raises(TransportError) as exc:
        await client.add_item("u1", "p1", 1)
    assert exc.value.detail == "boom"


async def test_network_failure_is_transport_error(auth_manager):
    def refuse(request):
        raise httpx.ConnectError("connection refused")

    client = ShopApiClient(auth_manager, BASE_URL, transport=httpx.MockTransport(refuse))
    with pytest.raises(TransportError):
        await client.list_categories()
    await client.close()


async def test_reviews(client):
    reviews = await client.get_reviews("p1")
    assert len(reviews) == 1
    assert reviews[0].author == "Ana"
    assert reviews[0].user_id == "u9"
    assert reviews[0].comment == "Loud"

    assert await client.get_reviews("unknown") == []


def test_normalize_name():
    assert normalize_name("  Lamborghíni   Urus ") == "lamborghini urus"
    assert normalize_name(None) == ""
    assert category_matches("Siêu xe Ferrari", "ferrari")
    assert not category_matches("Porsche", "Ferrari")
    assert not category_matches(None, "Ferrari")
