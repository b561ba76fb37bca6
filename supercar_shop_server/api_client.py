"""REST API client for the supercar shop backend."""

import logging
import re
import unicodedata
from datetime import datetime
from typing import Any, Optional

import httpx
from .auth import AuthManager
from .errors import NotFound, TransportError, Unauthenticated
from .models import (
    AuthCredentials,
    Cart,
    CartLine,
    Category,
    Product,
    ProductPage,
    Review,
    normalize_id,
    record_id,
)

logger = logging.getLogger(__name__)

LISTING_LIMIT = 100


def normalize_name(value: Optional[str]) -> str:
    """Lowercase, collapse whitespace and strip diacritics ("Lamborghíni " -> "lamborghini")."""
    if not value:
        return ""
    text = re.sub(r"\s+", " ", str(value).lower().strip())
    text = unicodedata.normalize("NFD", text)
    return "".join(ch for ch in text if not unicodedata.combining(ch))


def category_matches(product_category: Optional[str], target: str) -> bool:
    """Loose category match: either normalized name contains the other."""
    product_name = normalize_name(product_category)
    target_name = normalize_name(target)
    if not product_name or not target_name:
        return False
    return target_name in product_name or product_name in target_name


class ShopApiClient:
    """Client for the shop REST API. Implements the catalog, cart and review sources."""

    def __init__(
        self,
        auth_manager: AuthManager,
        base_url: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize the API client.

        Args:
            auth_manager: Authentication manager instance
            base_url: API root, e.g. https://host/api
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests pass a MockTransport)
        """
        self.auth_manager = auth_manager
        self.client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            follow_redirects=True,
            transport=transport,
            headers={
                "Accept": "application/json",
                "Content-Type": "application/json",
            },
        )

    def _auth_headers(self) -> dict[str, str]:
        token = self.auth_manager.get_token()
        if not token:
            return {}
        return {"Authorization": f"Bearer {token}"}

    async def _request(
        self,
        operation: str,
        method: str,
        url: str,
        *,
        authenticated: bool = False,
        envelope: str = "status",
        **kwargs: Any,
    ) -> Any:
        """
        Send a request and unwrap the response envelope.

        The shop API wraps payloads as {"status": "OK", "data": ...}; the review
        endpoints use {"success": true, "data": ...} instead and the cart
        endpoints carry no status flag (envelope="none").

        Raises:
            Unauthenticated: HTTP 401
            NotFound: HTTP 404
            TransportError: Any other HTTP failure or a non-OK envelope
        """
        headers = self._auth_headers() if authenticated else {}
        try:
            response = await self.client.request(method, url, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"{operation} request failed: {e}")
            raise TransportError(operation, str(e)) from e

        logger.debug(f"{operation}: {method} {url} -> {response.status_code}")

        if response.status_code == 401:
            raise Unauthenticated()
        if response.status_code == 404:
            raise NotFound(operation, url)

        try:
            data = response.json()
        except ValueError as e:
            raise TransportError(operation, f"invalid JSON (status {response.status_code})") from e

        if not isinstance(data, dict):
            raise TransportError(operation, "unexpected response body")

        if response.status_code >= 400:
            raise TransportError(operation, data.get("message") or f"HTTP {response.status_code}")

        if envelope == "status" and data.get("status") != "OK":
            raise TransportError(operation, data.get("message"))
        if envelope == "success" and data.get("success") is not True:
            raise TransportError(operation, data.get("message"))

        return data

    async def login(self, credentials: AuthCredentials) -> bool:
        """
        Authenticate and store the bearer token.

        Returns:
            True if login successful, False if the API rejected the credentials
        """
        logger.info(f"=== LOGIN: email={credentials.email} ===")
        try:
            data = await self._request(
                "login",
                "POST",
                "/user/sign-in",
                json={"email": credentials.email, "password": credentials.password},
            )
        except (TransportError, NotFound, Unauthenticated) as e:
            logger.error(f"Login failed: {e}")
            return False

        token = (data.get("token") or {}).get("access_token")
        user = data.get("data") or {}
        user_id = record_id(user)
        if not token or not user_id:
            logger.error("Login failed - response had no token or user id")
            return False

        self.auth_manager.save_session(user_id=user_id, token=token, user_email=credentials.email)
        logger.info("✓ Login successful")
        return True

    def logout(self) -> None:
        """Clear the session."""
        self.auth_manager.clear_session()

    # Catalog

    async def _fetch_products(
        self,
        operation: str,
        page: int,
        page_size: int,
        search: Optional[str] = None,
        category_name: Optional[str] = None,
    ) -> ProductPage:
        params: dict[str, Any] = {"page": page, "limit": page_size}
        if search and search.strip():
            params["search"] = search.strip()
        if category_name and category_name.strip():
            params["category_name"] = category_name.strip()

        data = await self._request(operation, "GET", "/product", params=params)
        payload = data.get("data") or {}
        products = self._parse_products(payload.get("products", []))
        totals = payload.get("total") or {}
        total = totals.get("totalActive") or totals.get("totalProduct") or len(products)
        return ProductPage(items=products, total=int(total))

    async def list_products(self, page: int, page_size: int) -> ProductPage:
        return await self._fetch_products("list_products", page, page_size)

    async def search_products(self, query: str, page: int, page_size: int) -> ProductPage:
        return await self._fetch_products("search_products", page, page_size, search=query)

    async def list_by_category(self, category: str, page: int, page_size: int) -> ProductPage:
        """
        Products of one category.

        The API's category_name filter is unreliable, so the full listing is
        fetched and matched client-side by normalized category name.
        """
        listing = await self._fetch_products("list_by_category", 1, page_size)
        matched = [p for p in listing.items if category_matches(p.category_name, category)]
        logger.info(f"Category '{category}': {len(matched)} of {len(listing.items)} product(s) matched")
        return ProductPage(items=matched, total=len(matched))

    async def get_product(self, product_id: str) -> Product:
        try:
            data = await self._request("get_product", "GET", f"/product/{product_id}")
        except NotFound:
            raise NotFound("product", product_id)
        product = self._parse_product(data.get("data") or {})
        if product is None:
            raise NotFound("product", product_id)
        return product

    async def _flagged(self, operation: str, flag: str, limit: int) -> list[Product]:
        # The API has no flag filter; pick them out of the listing
        listing = await self._fetch_products(operation, 1, LISTING_LIMIT)
        return [p for p in listing.items if getattr(p, flag)][:limit]

    async def list_featured(self, limit: int) -> list[Product]:
        return await self._flagged("list_featured", "is_featured", limit)

    async def list_new(self, limit: int) -> list[Product]:
        return await self._flagged("list_new", "is_new", limit)

    async def list_top_sold(self, limit: int) -> list[Product]:
        data = await self._request(
            "list_top_sold", "GET", "/product/top-sold", params={"page": 1, "limit": limit}
        )
        payload = data.get("data") or {}
        return self._parse_products(payload.get("products", []))

    async def list_categories(self) -> list[Category]:
        data = await self._request("list_categories", "GET", "/category", params={"page": 1, "limit": 100})
        payload = data.get("data") or []
        if isinstance(payload, dict):
            payload = payload.get("categories", [])

        categories = []
        for item in payload:
            categories.append(
                Category(
                    id=record_id(item),
                    name=item.get("name", item.get("category_name", "")),
                    description=item.get("description"),
                    image_url=item.get("image_url", item.get("image")),
                )
            )
        return categories

    # Cart

    async def get_cart(self, user_id: str) -> Cart:
        data = await self._request("get_cart", "GET", "/cart", authenticated=True, envelope="none")
        return self._parse_cart(user_id, data.get("data"))

    async def add_item(self, user_id: str, product_id: str, quantity: int) -> None:
        logger.info(f"=== ADD TO CART: product_id={product_id}, quantity={quantity} ===")
        await self._request(
            "add_item",
            "POST",
            "/cart/add",
            authenticated=True,
            json={"product_id": product_id, "quantity": quantity},
        )

    async def update_item(self, user_id: str, product_id: str, quantity: int) -> None:
        logger.info(f"=== UPDATE CART: product_id={product_id}, new_quantity={quantity} ===")
        await self._request(
            "update_item",
            "PUT",
            "/cart/update",
            authenticated=True,
            json={"product_id": product_id, "quantity": quantity},
        )

    async def remove_item(self, user_id: str, product_id: str) -> None:
        try:
            await self._request(
                "remove_item", "DELETE", f"/cart/remove/{product_id}", authenticated=True, envelope="none"
            )
        except NotFound:
            logger.info(f"Product {product_id} not in cart")

    # Reviews

    async def get_reviews(self, product_id: str) -> list[Review]:
        try:
            data = await self._request(
                "get_reviews", "GET", f"/product-review/product/{product_id}", envelope="success"
            )
        except NotFound:
            return []
        return self._parse_reviews(product_id, data.get("data") or [])

    async def add_review(
        self, user_id: str, product_id: str, rating: int, comment: Optional[str] = None
    ) -> Review:
        data = await self._request(
            "add_review",
            "POST",
            "/product-review/create",
            authenticated=True,
            envelope="success",
            json={"product_id": product_id, "rating": rating, "review_content": comment},
        )
        reviews = self._parse_reviews(product_id, [data.get("review") or data.get("data") or {}])
        if reviews:
            return reviews[0]
        return Review(id="", product_id=product_id, user_id=user_id, rating=rating, comment=comment)

    # Helper methods for parsing responses

    def _parse_product(self, item: dict) -> Optional[Product]:
        try:
            category = item.get("category_id")
            if isinstance(category, dict):
                category_id = record_id(category)
                category_name = item.get("category_name") or category.get("name")
            else:
                category_id = normalize_id(category) if category is not None else None
                category_name = item.get("category_name")

            stock = item.get("stock_quantity", item.get("in_stock", item.get("stock", 0)))
            return Product(
                id=record_id(item),
                name=item.get("name", ""),
                price=int(round(float(item.get("price", 0)))),
                stock_quantity=max(int(stock or 0), 0),
                status=item.get("status", True) is not False,
                category_id=category_id,
                category_name=category_name,
                rating=float(item.get("rating", item.get("average_rating", 0)) or 0),
                review_count=int(item.get("review_count", 0) or 0),
                description=item.get("description"),
                image_url=item.get("image_url", item.get("image")),
                is_featured=bool(item.get("is_featured", False)),
                is_new=bool(item.get("is_new", False)),
            )
        except (TypeError, ValueError) as e:
            logger.warning(f"Failed to parse product: {e}")
            return None

    def _parse_products(self, products_data: list[dict]) -> list[Product]:
        products = []
        for item in products_data:
            product = self._parse_product(item)
            if product is not None:
                products.append(product)
        return products

    def _parse_cart(self, user_id: str, data: Any) -> Cart:
        """Parse cart from API JSON response."""
        if isinstance(data, dict):
            items = data.get("items", data.get("cart_items", []))
        else:
            items = data or []

        lines = []
        for item_data in items:
            try:
                # product_id may be populated with the whole product document
                product_info = item_data.get("product_id")
                if not isinstance(product_info, dict):
                    product_info = item_data.get("product") if isinstance(item_data.get("product"), dict) else {}
                product_id = record_id(product_info) or normalize_id(item_data.get("product_id"))
                line_id = record_id(item_data, "id", "_id", "cart_id") or product_id
                lines.append(
                    CartLine(
                        id=line_id,
                        product_id=product_id,
                        name=item_data.get("name", product_info.get("name", "")),
                        price=int(round(float(item_data.get("price", product_info.get("price", 0))))),
                        quantity=int(item_data.get("quantity", 1)),
                        in_stock=max(int(item_data.get("in_stock", product_info.get("stock_quantity", 0)) or 0), 0),
                        status=item_data.get("status", product_info.get("status", True)) is not False,
                        image_url=item_data.get("image_url", item_data.get("image")),
                    )
                )
            except (TypeError, ValueError) as e:
                logger.warning(f"Failed to parse cart item: {e}")
                continue

        return Cart(user_id=user_id, lines=lines)

    def _parse_reviews(self, product_id: str, reviews_data: list[dict]) -> list[Review]:
        reviews = []
        for item in reviews_data:
            try:
                created_at = None
                if item.get("createdAt") or item.get("created_at"):
                    created_at = datetime.fromisoformat(
                        str(item.get("createdAt") or item.get("created_at")).replace("Z", "+00:00")
                    )
                user = item.get("user_id")
                product = item.get("product_id") or product_id
                reviews.append(
                    Review(
                        id=record_id(item),
                        product_id=record_id(product) if isinstance(product, dict) else normalize_id(product),
                        user_id=record_id(user) if isinstance(user, dict) else normalize_id(user) or None,
                        rating=int(item.get("rating", 0)),
                        comment=item.get("review_content", item.get("comment")),
                        author=user.get("user_name") if isinstance(user, dict) else item.get("full_name"),
                        created_at=created_at,
                    )
                )
            except (TypeError, ValueError) as e:
                logger.warning(f"Failed to parse review: {e}")
                continue
        return reviews

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()
