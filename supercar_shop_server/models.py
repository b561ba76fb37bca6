"""Data models for the supercar shop."""

from datetime import datetime
from typing import Any, Optional
from pydantic import BaseModel, Field, computed_field


def normalize_id(value: Any) -> str:
    """Canonical string form of a record identifier (int ids become "12")."""
    if value is None:
        return ""
    return str(value)


def record_id(record: dict[str, Any], *keys: str) -> str:
    """Pick the first present identifier key ("id" or "_id" by default)."""
    for key in keys or ("id", "_id"):
        if record.get(key) is not None:
            return normalize_id(record[key])
    return ""


class Product(BaseModel):
    """A product from the catalog."""

    id: str = Field(description="Product ID")
    name: str = Field(description="Product name")
    price: int = Field(ge=0, description="Price in the smallest currency unit")
    stock_quantity: int = Field(default=0, ge=0, description="Units available")
    status: bool = Field(default=True, description="True when the product is sellable")
    category_id: Optional[str] = Field(None, description="Category ID")
    category_name: Optional[str] = Field(None, description="Category name")
    rating: float = Field(default=0.0, description="Aggregate rating")
    review_count: int = Field(default=0, description="Number of reviews")
    description: Optional[str] = None
    image_url: Optional[str] = None
    is_featured: bool = Field(default=False, description="Shown in the featured list")
    is_new: bool = Field(default=False, description="Shown in the new arrivals list")


class ProductPage(BaseModel):
    """One fetch from a catalog source."""

    items: list[Product] = Field(default_factory=list)
    total: int = Field(default=0, description="Total matching products reported by the source")


class Category(BaseModel):
    """Product category."""

    id: str
    name: str
    description: Optional[str] = None
    image_url: Optional[str] = None


class CatalogFilter(BaseModel):
    """Filter context for the catalog: everything, a category, or a search term."""

    category: Optional[str] = None
    search: Optional[str] = None

    @property
    def kind(self) -> str:
        if self.search:
            return "search"
        if self.category:
            return "category"
        return "all"


class PaginationState(BaseModel):
    """Client-side pagination over the cached active products."""

    filter: CatalogFilter = Field(default_factory=CatalogFilter)
    current_page: int = 0
    total_pages: int = 0
    page_size: int = 6
    active_products: list[Product] = Field(default_factory=list)
    loaded: list[Product] = Field(default_factory=list, description="Products shown so far (pages 1..current)")

    @computed_field
    @property
    def has_more(self) -> bool:
        return self.current_page < self.total_pages


class CatalogPage(BaseModel):
    """Result of a page load."""

    items: list[Product] = Field(default_factory=list)
    page: int
    total_pages: int
    has_more: bool
    stale: bool = Field(default=False, description="True when the response was discarded")


class CartLine(BaseModel):
    """A product entry in the cart."""

    id: str = Field(description="Cart line ID")
    product_id: str
    name: str = ""
    price: int = Field(ge=0, description="Unit price snapshot")
    quantity: int = Field(ge=1)
    in_stock: int = Field(default=0, ge=0, description="Units of the product still in stock")
    status: bool = Field(default=True, description="False when the product is discontinued")
    image_url: Optional[str] = None

    @computed_field
    @property
    def subtotal(self) -> int:
        return self.price * self.quantity

    @property
    def is_available(self) -> bool:
        return self.in_stock > 0 and self.status is not False


class Cart(BaseModel):
    """Canonical cart snapshot for one user."""

    user_id: str
    lines: list[CartLine] = Field(default_factory=list)

    @computed_field
    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self.lines)

    @computed_field
    @property
    def subtotal(self) -> int:
        return sum(line.subtotal for line in self.lines)

    def line_for(self, product_id: str) -> Optional[CartLine]:
        """Find the line holding a product."""
        for line in self.lines:
            if line.product_id == product_id:
                return line
        return None

    def line_by_id(self, line_id: str) -> Optional[CartLine]:
        for line in self.lines:
            if line.id == line_id:
                return line
        return None


class Review(BaseModel):
    """A product review."""

    id: str
    product_id: str
    user_id: Optional[str] = None
    rating: int = Field(ge=1, le=5)
    comment: Optional[str] = None
    author: Optional[str] = None
    created_at: Optional[datetime] = None


class ReviewEntry(BaseModel):
    """Review state for one product."""

    reviews: list[Review] = Field(default_factory=list)
    is_loading: bool = False
    error: Optional[str] = None


class LowStockWarning(BaseModel):
    """Advisory: a selected line is nearly sold out."""

    line_id: str
    product_id: str
    name: str
    in_stock: int


class CheckoutSummary(BaseModel):
    """Totals handed to checkout."""

    line_ids: list[str] = Field(default_factory=list)
    lines: list[CartLine] = Field(default_factory=list)
    subtotal: int = 0
    shipping: int = 0
    total: int = 0
    warnings: list[LowStockWarning] = Field(default_factory=list)


class AuthCredentials(BaseModel):
    """Authentication credentials."""

    email: str
    password: str


class SessionData(BaseModel):
    """Session data for authenticated user."""

    token: Optional[str] = Field(None, description="Bearer token for the REST API")
    user_id: Optional[str] = Field(None, description="User ID")
    user_email: Optional[str] = Field(None, description="User email")
    is_authenticated: bool = Field(default=False, description="Authentication status")
