"""Shared fixtures: an in-memory shop backend and a temporary session store."""

import asyncio
from typing import Optional

import pytest

from supercar_shop_server.auth import AuthManager
from supercar_shop_server.config import Settings
from supercar_shop_server.errors import NotFound, TransportError
from supercar_shop_server.models import Cart, CartLine, Category, Product, ProductPage, Review


def make_product(
    product_id, stock=10, status=True, price=1000, category="Ferrari", name=None, featured=False, new=False
) -> Product:
    return Product(
        id=str(product_id),
        name=name or f"Car {product_id}",
        price=price,
        stock_quantity=stock,
        status=status,
        category_id="c-" + category.lower(),
        category_name=category,
        is_featured=featured,
        is_new=new,
    )


class FakeBackend:
    """In-memory catalog, cart and review source with call recording and fault injection."""

    def __init__(self, products: Optional[list[Product]] = None) -> None:
        self.products: dict[str, Product] = {p.id: p for p in products or []}
        self.categories = [Category(id="c-ferrari", name="Ferrari"), Category(id="c-porsche", name="Porsche")]
        self.carts: dict[str, dict[str, list]] = {}
        self.reviews: list[Review] = []
        self.calls: list[tuple] = []
        self.fail: set[str] = set()
        self.gates: dict[str, asyncio.Event] = {}
        self._next_line = 1

    async def _enter(self, operation: str, *args) -> None:
        self.calls.append((operation,) + args)
        gate = self.gates.get(operation)
        if gate is not None:
            await gate.wait()
        if operation in self.fail:
            raise TransportError(operation, "injected failure")

    def writes(self) -> list[tuple]:
        return [c for c in self.calls if c[0] in ("add_item", "update_item", "remove_item")]

    # Catalog

    def _page(self, items: list[Product], page: int, page_size: int) -> ProductPage:
        start = (page - 1) * page_size
        return ProductPage(items=items[start:start + page_size], total=len(items))

    async def list_products(self, page, page_size):
        await self._enter("list_products", page, page_size)
        return self._page(list(self.products.values()), page, page_size)

    async def list_by_category(self, category, page, page_size):
        await self._enter("list_by_category", category, page, page_size)
        items = [p for p in self.products.values() if p.category_name == category]
        return self._page(items, page, page_size)

    async def search_products(self, query, page, page_size):
        await self._enter("search_products", query, page, page_size)
        items = [p for p in self.products.values() if query.lower() in p.name.lower()]
        return self._page(items, page, page_size)

    async def get_product(self, product_id):
        await self._enter("get_product", product_id)
        if product_id not in self.products:
            raise NotFound("product", product_id)
        return self.products[product_id]

    async def list_categories(self):
        await self._enter("list_categories")
        return list(self.categories)

    async def list_featured(self, limit):
        await self._enter("list_featured", limit)
        return [p for p in self.products.values() if p.is_featured][:limit]

    async def list_new(self, limit):
        await self._enter("list_new", limit)
        return [p for p in self.products.values() if p.is_new][:limit]

    async def list_top_sold(self, limit):
        await self._enter("list_top_sold", limit)
        return sorted(self.products.values(), key=lambda p: p.review_count, reverse=True)[:limit]

    # Cart

    async def get_cart(self, user_id):
        await self._enter("get_cart", user_id)
        lines = []
        for product_id, (line_id, quantity) in self.carts.get(user_id, {}).items():
            product = self.products[product_id]
            lines.append(
                CartLine(
                    id=line_id,
                    product_id=product_id,
                    name=product.name,
                    price=product.price,
                    quantity=quantity,
                    in_stock=product.stock_quantity,
                    status=product.status,
                )
            )
        return Cart(user_id=user_id, lines=lines)

    async def add_item(self, user_id, product_id, quantity):
        await self._enter("add_item", user_id, product_id, quantity)
        cart = self.carts.setdefault(user_id, {})
        if product_id in cart:
            cart[product_id][1] += quantity
        else:
            cart[product_id] = [f"line-{self._next_line}", quantity]
            self._next_line += 1

    async def update_item(self, user_id, product_id, quantity):
        await self._enter("update_item", user_id, product_id, quantity)
        cart = self.carts.setdefault(user_id, {})
        if product_id not in cart:
            raise NotFound("cart_line", product_id)
        cart[product_id][1] = quantity

    async def remove_item(self, user_id, product_id):
        await self._enter("remove_item", user_id, product_id)
        self.carts.get(user_id, {}).pop(product_id, None)

    def put_line(self, user_id: str, product_id: str, quantity: int) -> str:
        """Seed a cart line directly, bypassing the store."""
        line_id = f"line-{self._next_line}"
        self._next_line += 1
        self.carts.setdefault(user_id, {})[product_id] = [line_id, quantity]
        return line_id

    # Reviews

    async def get_reviews(self, product_id):
        await self._enter("get_reviews", product_id)
        return [r for r in self.reviews if r.product_id == product_id]

    async def add_review(self, user_id, product_id, rating, comment=None):
        await self._enter("add_review", user_id, product_id, rating)
        review = Review(
            id=str(len(self.reviews) + 1), product_id=product_id, user_id=user_id, rating=rating, comment=comment
        )
        self.reviews.append(review)
        return review


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        session_file=str(tmp_path / "session.json"),
        database_path=str(tmp_path / "shop.db"),
    )


@pytest.fixture
def auth_manager(settings) -> AuthManager:
    return AuthManager(session_file=settings.session_file)


@pytest.fixture
def signed_in(auth_manager) -> AuthManager:
    auth_manager.save_session(user_id="u1", token="token-1", user_email="driver@example.com")
    return auth_manager


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend([make_product(i) for i in range(1, 4)])
