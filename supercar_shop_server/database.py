"""Embedded SQLite database. Implements the catalog, cart and review sources locally."""

import hashlib
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Iterator, Optional

from .auth import AuthManager
from .errors import NotFound, TransportError
from .models import (
    AuthCredentials,
    Cart,
    CartLine,
    Category,
    Product,
    ProductPage,
    Review,
    normalize_id,
)

logger = logging.getLogger(__name__)

# Parents first so foreign keys resolve
TABLES = [
    """CREATE TABLE IF NOT EXISTS categories (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        description TEXT,
        image_url TEXT,
        created_at DATETIME DEFAULT CURRENT_TIMESTAMP
    )""",
    """CREATE TABLE IF NOT EXISTS users (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        email TEXT UNIQUE NOT NULL,
        password TEXT NOT NULL,
        full_name TEXT,
        role TEXT DEFAULT 'user',
        is_active INTEGER DEFAULT 1,
        created_at DATETIME DEFAULT CURRENT_TIMESTAMP
    )""",
    """CREATE TABLE IF NOT EXISTS products (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        price INTEGER NOT NULL CHECK(price >= 0),
        description TEXT,
        image_url TEXT,
        category_id INTEGER,
        stock_quantity INTEGER DEFAULT 0,
        status INTEGER DEFAULT 1,
        is_featured INTEGER DEFAULT 0,
        is_new INTEGER DEFAULT 0,
        rating REAL DEFAULT 0,
        review_count INTEGER DEFAULT 0,
        created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (category_id) REFERENCES categories(id)
    )""",
    """CREATE TABLE IF NOT EXISTS cart (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER NOT NULL,
        product_id INTEGER NOT NULL,
        quantity INTEGER DEFAULT 1,
        created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
        updated_at DATETIME DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (user_id) REFERENCES users(id),
        FOREIGN KEY (product_id) REFERENCES products(id)
    )""",
    """CREATE TABLE IF NOT EXISTS reviews (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER NOT NULL,
        product_id INTEGER NOT NULL,
        rating INTEGER CHECK(rating >= 1 AND rating <= 5),
        comment TEXT,
        created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
        FOREIGN KEY (user_id) REFERENCES users(id),
        FOREIGN KEY (product_id) REFERENCES products(id)
    )""",
]

INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_products_category ON products(category_id)",
    "CREATE INDEX IF NOT EXISTS idx_cart_user ON cart(user_id)",
    "CREATE INDEX IF NOT EXISTS idx_reviews_product ON reviews(product_id)",
]

PRODUCT_COLUMNS = """
    SELECT p.*, c.name AS category_name
    FROM products p
    LEFT JOIN categories c ON p.category_id = c.id
"""


def hash_password(password: str) -> str:
    return hashlib.sha256(password.encode("utf-8")).hexdigest()


class LocalDatabase:
    """SQLite-backed shop data."""

    def __init__(self, path: str, auth_manager: Optional[AuthManager] = None) -> None:
        """
        Args:
            path: Database file, or ":memory:"
            auth_manager: Session store updated by login()
        """
        self.path = path
        self.auth_manager = auth_manager
        self.conn: Optional[sqlite3.Connection] = None

    @contextmanager
    def _cursor(self, operation: str) -> Iterator[sqlite3.Cursor]:
        """Cursor inside a transaction; sqlite errors become TransportError."""
        if self.conn is None:
            raise TransportError(operation, "database not initialized")
        try:
            with self.conn:
                yield self.conn.cursor()
        except sqlite3.Error as e:
            logger.error(f"Database error in {operation}: {e}")
            raise TransportError(operation, str(e)) from e

    def init(self) -> None:
        """Open the database and create tables and indexes."""
        self.conn = sqlite3.connect(self.path, check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        with self._cursor("init") as cur:
            for table in TABLES:
                cur.execute(table)
            for index in INDEXES:
                cur.execute(index)
        logger.info(f"Database ready at {self.path}")

    def seed(self, data: dict[str, list[dict[str, Any]]]) -> None:
        """
        Import sample data: {"categories": [...], "products": [...], "users": [...]}.

        Skipped when products already exist.
        """
        with self._cursor("seed") as cur:
            count = cur.execute("SELECT COUNT(*) FROM products").fetchone()[0]
            if count:
                logger.info(f"Database already has {count} product(s), skipping seed")
                return

            for category in data.get("categories", []):
                cur.execute(
                    "INSERT INTO categories (id, name, description, image_url) VALUES (?, ?, ?, ?)",
                    (category.get("id"), category["name"], category.get("description"), category.get("image_url")),
                )
            for product in data.get("products", []):
                cur.execute(
                    """INSERT INTO products (id, name, price, description, image_url, category_id,
                       stock_quantity, status, is_featured, is_new, rating, review_count)
                       VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                    (
                        product.get("id"),
                        product["name"],
                        int(product["price"]),
                        product.get("description"),
                        product.get("image_url"),
                        product.get("category_id"),
                        product.get("stock_quantity", 0),
                        1 if product.get("status", True) else 0,
                        product.get("is_featured", 0),
                        product.get("is_new", 0),
                        product.get("rating", 0),
                        product.get("review_count", 0),
                    ),
                )
            for user in data.get("users", []):
                cur.execute(
                    "INSERT INTO users (id, email, password, full_name) VALUES (?, ?, ?, ?)",
                    (user.get("id"), user["email"], hash_password(user["password"]), user.get("full_name")),
                )
        logger.info(
            f"Seeded {len(data.get('categories', []))} categories, {len(data.get('products', []))} products"
        )

    async def login(self, credentials: AuthCredentials) -> bool:
        """Check credentials against the users table and save the session."""
        with self._cursor("login") as cur:
            row = cur.execute(
                "SELECT id FROM users WHERE email = ? AND password = ? AND is_active = 1",
                (credentials.email, hash_password(credentials.password)),
            ).fetchone()
        if row is None:
            logger.error(f"Login failed for {credentials.email}")
            return False
        if self.auth_manager is not None:
            self.auth_manager.save_session(user_id=normalize_id(row["id"]), user_email=credentials.email)
        logger.info(f"✓ Login successful for {credentials.email}")
        return True

    def logout(self) -> None:
        if self.auth_manager is not None:
            self.auth_manager.clear_session()

    # Catalog

    def _product(self, row: sqlite3.Row) -> Product:
        return Product(
            id=normalize_id(row["id"]),
            name=row["name"],
            price=int(row["price"]),
            stock_quantity=max(int(row["stock_quantity"] or 0), 0),
            status=bool(row["status"]),
            category_id=normalize_id(row["category_id"]) if row["category_id"] is not None else None,
            category_name=row["category_name"],
            rating=float(row["rating"] or 0),
            review_count=int(row["review_count"] or 0),
            description=row["description"],
            image_url=row["image_url"],
            is_featured=bool(row["is_featured"]),
            is_new=bool(row["is_new"]),
        )

    def _page(self, operation: str, where: str, params: tuple, page: int, page_size: int) -> ProductPage:
        with self._cursor(operation) as cur:
            total = cur.execute(
                f"SELECT COUNT(*) FROM products p LEFT JOIN categories c ON p.category_id = c.id {where}",
                params,
            ).fetchone()[0]
            rows = cur.execute(
                f"{PRODUCT_COLUMNS} {where} ORDER BY p.created_at DESC, p.id DESC LIMIT ? OFFSET ?",
                params + (page_size, (page - 1) * page_size),
            ).fetchall()
        return ProductPage(items=[self._product(row) for row in rows], total=total)

    async def list_products(self, page: int, page_size: int) -> ProductPage:
        return self._page("list_products", "", (), page, page_size)

    async def list_by_category(self, category: str, page: int, page_size: int) -> ProductPage:
        """Match a category by id or (case-insensitive) name."""
        return self._page(
            "list_by_category",
            "WHERE CAST(p.category_id AS TEXT) = ? OR lower(c.name) = lower(?)",
            (category, category),
            page,
            page_size,
        )

    async def search_products(self, query: str, page: int, page_size: int) -> ProductPage:
        pattern = f"%{query.strip()}%"
        return self._page(
            "search_products",
            "WHERE p.name LIKE ? OR p.description LIKE ?",
            (pattern, pattern),
            page,
            page_size,
        )

    async def get_product(self, product_id: str) -> Product:
        with self._cursor("get_product") as cur:
            row = cur.execute(f"{PRODUCT_COLUMNS} WHERE p.id = ?", (product_id,)).fetchone()
        if row is None:
            raise NotFound("product", product_id)
        return self._product(row)

    def _list(self, operation: str, where: str, order: str, limit: int) -> list[Product]:
        with self._cursor(operation) as cur:
            rows = cur.execute(f"{PRODUCT_COLUMNS} {where} ORDER BY {order} LIMIT ?", (limit,)).fetchall()
        return [self._product(row) for row in rows]

    async def list_featured(self, limit: int) -> list[Product]:
        return self._list("list_featured", "WHERE p.is_featured = 1", "p.created_at DESC, p.id DESC", limit)

    async def list_new(self, limit: int) -> list[Product]:
        return self._list("list_new", "WHERE p.is_new = 1", "p.created_at DESC, p.id DESC", limit)

    async def list_top_sold(self, limit: int) -> list[Product]:
        """No order history locally, so the most reviewed products stand in for best sellers."""
        return self._list("list_top_sold", "", "p.review_count DESC, p.rating DESC, p.id", limit)

    async def list_categories(self) -> list[Category]:
        with self._cursor("list_categories") as cur:
            rows = cur.execute("SELECT * FROM categories ORDER BY name").fetchall()
        return [
            Category(
                id=normalize_id(row["id"]),
                name=row["name"],
                description=row["description"],
                image_url=row["image_url"],
            )
            for row in rows
        ]

    # Cart

    async def get_cart(self, user_id: str) -> Cart:
        with self._cursor("get_cart") as cur:
            rows = cur.execute(
                """SELECT c.id, c.product_id, c.quantity, p.name, p.price, p.image_url,
                          p.stock_quantity, p.status
                   FROM cart c
                   JOIN products p ON c.product_id = p.id
                   WHERE c.user_id = ?
                   ORDER BY c.id""",
                (user_id,),
            ).fetchall()

        lines = [
            CartLine(
                id=normalize_id(row["id"]),
                product_id=normalize_id(row["product_id"]),
                name=row["name"],
                price=int(row["price"]),
                quantity=int(row["quantity"]),
                in_stock=max(int(row["stock_quantity"] or 0), 0),
                status=bool(row["status"]),
                image_url=row["image_url"],
            )
            for row in rows
        ]
        return Cart(user_id=user_id, lines=lines)

    async def add_item(self, user_id: str, product_id: str, quantity: int) -> None:
        with self._cursor("add_item") as cur:
            existing = cur.execute(
                "SELECT id FROM cart WHERE user_id = ? AND product_id = ?", (user_id, product_id)
            ).fetchone()
            if existing:
                cur.execute(
                    "UPDATE cart SET quantity = quantity + ?, updated_at = CURRENT_TIMESTAMP WHERE id = ?",
                    (quantity, existing["id"]),
                )
            else:
                cur.execute(
                    "INSERT INTO cart (user_id, product_id, quantity) VALUES (?, ?, ?)",
                    (user_id, product_id, quantity),
                )

    async def update_item(self, user_id: str, product_id: str, quantity: int) -> None:
        if quantity <= 0:
            await self.remove_item(user_id, product_id)
            return
        with self._cursor("update_item") as cur:
            cur.execute(
                """UPDATE cart SET quantity = ?, updated_at = CURRENT_TIMESTAMP
                   WHERE user_id = ? AND product_id = ?""",
                (quantity, user_id, product_id),
            )
            if cur.rowcount == 0:
                raise NotFound("cart_line", product_id)

    async def remove_item(self, user_id: str, product_id: str) -> None:
        with self._cursor("remove_item") as cur:
            cur.execute("DELETE FROM cart WHERE user_id = ? AND product_id = ?", (user_id, product_id))

    # Reviews

    async def get_reviews(self, product_id: str) -> list[Review]:
        with self._cursor("get_reviews") as cur:
            rows = cur.execute(
                """SELECT r.*, u.full_name
                   FROM reviews r
                   LEFT JOIN users u ON r.user_id = u.id
                   WHERE r.product_id = ?
                   ORDER BY r.created_at DESC, r.id DESC""",
                (product_id,),
            ).fetchall()
        return [self._review(row) for row in rows]

    def _review(self, row: sqlite3.Row) -> Review:
        created_at = None
        if row["created_at"]:
            created_at = datetime.fromisoformat(row["created_at"])
        return Review(
            id=normalize_id(row["id"]),
            product_id=normalize_id(row["product_id"]),
            user_id=normalize_id(row["user_id"]),
            rating=int(row["rating"]),
            comment=row["comment"],
            author=row["full_name"],
            created_at=created_at,
        )

    async def add_review(
        self, user_id: str, product_id: str, rating: int, comment: Optional[str] = None
    ) -> Review:
        with self._cursor("add_review") as cur:
            if cur.execute("SELECT 1 FROM products WHERE id = ?", (product_id,)).fetchone() is None:
                raise NotFound("product", product_id)
            cur.execute(
                "INSERT INTO reviews (user_id, product_id, rating, comment) VALUES (?, ?, ?, ?)",
                (user_id, product_id, rating, comment),
            )
            review_id = cur.lastrowid
            # Keep the product's aggregate rating in step
            cur.execute(
                """UPDATE products SET
                       rating = (SELECT COALESCE(AVG(rating), 0) FROM reviews WHERE product_id = ?),
                       review_count = (SELECT COUNT(*) FROM reviews WHERE product_id = ?)
                   WHERE id = ?""",
                (product_id, product_id, product_id),
            )
            row = cur.execute(
                """SELECT r.*, u.full_name FROM reviews r
                   LEFT JOIN users u ON r.user_id = u.id WHERE r.id = ?""",
                (review_id,),
            ).fetchone()
        return self._review(row)

    def close(self) -> None:
        if self.conn is not None:
            self.conn.close()
            self.conn = None
