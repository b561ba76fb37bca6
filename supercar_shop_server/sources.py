"""Interfaces of the backing data sources.

The stores only talk to these protocols. Both the REST client
(:mod:`.api_client`) and the embedded database (:mod:`.database`) implement
all three, so either can back the stores.
"""

from typing import Optional, Protocol

from .models import Cart, Category, Product, ProductPage, Review


class CatalogSource(Protocol):
    async def list_products(self, page: int, page_size: int) -> ProductPage: ...

    async def list_by_category(self, category: str, page: int, page_size: int) -> ProductPage: ...

    async def search_products(self, query: str, page: int, page_size: int) -> ProductPage: ...

    async def get_product(self, product_id: str) -> Product:
        """Raises NotFound for an unknown product."""
        ...

    async def list_categories(self) -> list[Category]: ...

    async def list_featured(self, limit: int) -> list[Product]: ...

    async def list_new(self, limit: int) -> list[Product]: ...

    async def list_top_sold(self, limit: int) -> list[Product]:
        """Best sellers first."""
        ...


class CartSource(Protocol):
    async def get_cart(self, user_id: str) -> Cart: ...

    async def add_item(self, user_id: str, product_id: str, quantity: int) -> None:
        """Add to the existing line quantity, creating the line if needed."""
        ...

    async def update_item(self, user_id: str, product_id: str, quantity: int) -> None:
        """Set the line quantity."""
        ...

    async def remove_item(self, user_id: str, product_id: str) -> None:
        """Remove the line. Removing an absent product is not an error."""
        ...


class ReviewSource(Protocol):
    async def get_reviews(self, product_id: str) -> list[Review]: ...

    async def add_review(
        self, user_id: str, product_id: str, rating: int, comment: Optional[str] = None
    ) -> Review: ...
