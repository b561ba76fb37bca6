import pytest

from supercar_shop_server import server
from supercar_shop_server.shop import Shop


@pytest.fixture
async def shop(settings):
    shop = Shop(settings.model_copy(update={"backend": "local"}))
    server.shop = shop
    yield shop
    await shop.close()


async def call(name, **arguments) -> str:
    result = await server.call_tool(name, arguments)
    return result[0].text


async def test_tools_are_listed(shop):
    names = {tool.name for tool in await server.list_tools()}
    assert {"shop_list_products", "shop_add_to_cart", "shop_checkout_summary", "shop_add_review"} <= names


async def test_browse_without_login(shop):
    text = await call("shop_list_products")
    assert text.startswith("Page 1 of 3:")
    assert "More products available (page 2)" in text

    text = await call("shop_list_products", category="mclaren")
    assert "Page 1 of 1:" in text
    assert "McLaren P1" in text

    assert "Bugatti Chiron" in await call("shop_get_product", product_id="7")
    assert "not found" in await call("shop_get_product", product_id="999")
    assert "Found 6 categories" in await call("shop_list_categories")


async def test_highlights_tool(shop):
    text = await call("shop_list_highlights", kind="top_sold", limit=2)
    assert text.startswith("Found 2 top sold products:")
    assert "Porsche 911 Turbo S" in text
    assert "Porsche 718 Cayman GT4" in text

    assert "Found 8 new products" in await call("shop_list_highlights", kind="new")
    assert (await call("shop_list_highlights", kind="cheapest")).startswith("Error: Invalid arguments")


async def test_cart_needs_login(shop):
    assert (await call("shop_get_cart")).startswith("Error: Not authenticated")
    assert await server.list_resources() == []


async def test_shopping_flow(shop):
    assert "Successfully logged in" in await call("shop_login", email="user@shopapp.com", password="user123")

    text = await call("shop_add_to_cart", product_id="1", quantity=2)
    assert "Ferrari 488 GTB" in text
    assert "[x]" in text

    text = await call("shop_add_to_cart", product_id="1")
    assert text.startswith("❌ Quantity limit: at most 2 unit(s)")

    text = await call("shop_update_cart_quantity", product_id="1", quantity=0)
    assert "confirm_removal=true" in text

    text = await call("shop_checkout_summary")
    assert "Total: 25,600,000,000 ₫" in text
    assert "only 2 left" in text

    resources = await server.list_resources()
    assert [str(r.uri).rstrip("/") for r in resources] == ["supercar-shop://cart"]

    assert "✅ Cart cleared" == await call("shop_clear_cart")
    assert await call("shop_get_cart") == "Your cart is empty"

    assert "Successfully logged out" in await call("shop_logout")


async def test_reviews(shop):
    await call("shop_login", email="user@shopapp.com", password="user123")

    text = await call("shop_add_review", product_id="3", rating=5, comment="Perfect GT")
    assert "1 review(s), average 5.0" in text

    text = await call("shop_get_reviews", product_id="3")
    assert "5/5 by Test User: Perfect GT" in text


async def test_bad_arguments(shop):
    assert (await call("shop_get_product")).startswith("Error: Invalid arguments")
    assert await call("shop_nope") == "Unknown tool: shop_nope"
