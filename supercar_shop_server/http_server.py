"""HTTP server for the Supercar Shop MCP Server."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from .config import Settings
from .errors import ShopError
from .models import AuthCredentials, CatalogFilter
from .shop import Shop

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("supercar-shop-http-server")

# Global state
shop: Optional[Shop] = None

STATUS_BY_KIND = {
    "unauthenticated": 401,
    "not_found": 404,
    "invalid_quantity": 400,
    "transport_error": 502,
}


def to_http_exception(error: ShopError) -> HTTPException:
    """Business-rule violations map to 409, the rest by kind."""
    status_code = STATUS_BY_KIND.get(error.kind, 409)
    return HTTPException(status_code=status_code, detail=error.to_dict())


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown."""
    global shop

    # Startup
    logger.info("Starting Supercar Shop HTTP Server...")
    if shop is None:
        settings = Settings.from_env()
        shop = Shop(settings)
        if settings.credentials:
            logger.info(f"Credentials loaded from environment for: {settings.email}")
        else:
            logger.warning("No credentials found in environment variables (SUPERCAR_SHOP_EMAIL, SUPERCAR_SHOP_PASSWORD)")

    yield

    # Shutdown
    logger.info("Shutting down Supercar Shop HTTP Server...")
    await shop.close()
    shop = None


app = FastAPI(
    title="Supercar Shop MCP Server",
    description="HTTP API for browsing supercars, managing the cart and reviews",
    version="0.1.0",
    lifespan=lifespan,
)


# Request/Response Models
class LoginRequest(BaseModel):
    email: str
    password: str


class LoginResponse(BaseModel):
    success: bool
    message: str


class AddToCartRequest(BaseModel):
    product_id: str
    quantity: int = 1


class UpdateCartRequest(BaseModel):
    product_id: str
    quantity: int
    confirm_removal: bool = False


class RemoveFromCartRequest(BaseModel):
    product_ids: list[str] = Field(min_length=1)


class ToggleSelectionRequest(BaseModel):
    line_id: str


class ReviewRequest(BaseModel):
    rating: int = Field(ge=1, le=5)
    comment: Optional[str] = None


async def require_session() -> Shop:
    if not await shop.ensure_authenticated():
        raise HTTPException(status_code=401, detail="Not authenticated")
    return shop


def cart_payload(current: Shop) -> dict:
    cart = current.cart.snapshot
    return {
        "cart": cart.model_dump() if cart is not None else None,
        "selected_line_ids": current.selection.selected_ids,
        "all_selected": current.selection.all_selected,
    }


# Root endpoint
@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "name": "Supercar Shop MCP Server",
        "version": "0.1.0",
        "description": "HTTP API for browsing supercars, managing the cart and reviews",
        "endpoints": {
            "docs": "/docs",
            "health": "/health",
            "auth": {"login": "POST /auth/login", "logout": "POST /auth/logout", "status": "GET /auth/status"},
            "products": {
                "list": "GET /products?page=&category=&search=",
                "details": "GET /products/{product_id}",
                "reviews": "GET /products/{product_id}/reviews",
                "add_review": "POST /products/{product_id}/reviews",
            },
            "highlights": "GET /highlights/{featured|new|top_sold}?limit=",
            "categories": "GET /categories",
            "cart": {
                "get": "GET /cart",
                "add": "POST /cart/add",
                "update": "POST /cart/update",
                "remove": "POST /cart/remove",
                "clear": "POST /cart/clear",
                "select": "POST /cart/selection/toggle",
                "select_all": "POST /cart/selection/toggle-all",
                "checkout": "GET /cart/checkout",
            },
        },
        "authenticated": shop.auth_manager.is_authenticated() if shop else False,
    }


# Health check endpoint
@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "backend": shop.settings.backend if shop else None,
        "authenticated": shop.auth_manager.is_authenticated() if shop else False,
    }


# Authentication endpoints
@app.post("/auth/login", response_model=LoginResponse)
async def login(request: LoginRequest):
    """Login to the shop."""
    try:
        success = await shop.login(AuthCredentials(email=request.email, password=request.password))
    except ShopError as e:
        raise to_http_exception(e)
    if success:
        return LoginResponse(success=True, message=f"Successfully logged in as {request.email}")
    return LoginResponse(success=False, message="Login failed. Check your credentials.")


@app.post("/auth/logout")
async def logout():
    """Logout and clear the session."""
    shop.logout()
    return {"success": True, "message": "Successfully logged out"}


@app.get("/auth/status")
async def auth_status():
    """Get authentication status."""
    authenticated = shop.auth_manager.is_authenticated()
    session = shop.auth_manager.get_session()
    return {
        "authenticated": authenticated,
        "email": session.user_email if authenticated and session else None,
    }


# Product endpoints
@app.get("/products")
async def list_products(page: int = 1, category: Optional[str] = None, search: Optional[str] = None):
    """List active products, page by page."""
    catalog_filter = CatalogFilter(category=category, search=search)
    try:
        result = await shop.catalog.browse(catalog_filter, page)
    except ShopError as e:
        raise to_http_exception(e)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return result.model_dump()


@app.get("/highlights/{kind}")
async def list_highlights(kind: str, limit: int = 10):
    """Featured products, new arrivals or best sellers."""
    try:
        products = await shop.catalog.highlights(kind, limit)
    except ShopError as e:
        raise to_http_exception(e)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"kind": kind, "count": len(products), "products": [p.model_dump() for p in products]}


@app.get("/products/{product_id}")
async def get_product(product_id: str):
    """Get product details."""
    try:
        product = await shop.catalog.get_product(product_id)
    except ShopError as e:
        raise to_http_exception(e)
    return product.model_dump()


@app.get("/categories")
async def list_categories():
    """List product categories."""
    try:
        categories = await shop.catalog.load_categories()
    except ShopError as e:
        raise to_http_exception(e)
    return {"count": len(categories), "categories": [c.model_dump() for c in categories]}


@app.get("/products/{product_id}/reviews")
async def get_reviews(product_id: str):
    """Get a product's reviews and average rating."""
    try:
        reviews = await shop.reviews.fetch_reviews(product_id)
    except ShopError as e:
        raise to_http_exception(e)
    return {
        "product_id": product_id,
        "count": len(reviews),
        "average_rating": shop.reviews.average_rating(product_id),
        "reviews": [r.model_dump(mode="json") for r in reviews],
    }


@app.post("/products/{product_id}/reviews")
async def add_review(product_id: str, request: ReviewRequest):
    """Review a product."""
    current = await require_session()
    try:
        reviews = await current.reviews.add_review(product_id, request.rating, request.comment)
    except ShopError as e:
        raise to_http_exception(e)
    return {
        "success": True,
        "count": len(reviews),
        "average_rating": current.reviews.average_rating(product_id),
    }


# Cart endpoints
@app.get("/cart")
async def get_cart():
    """Get current shopping cart and selection."""
    current = await require_session()
    try:
        await current.cart.fetch_cart()
    except ShopError as e:
        raise to_http_exception(e)
    return cart_payload(current)


@app.post("/cart/add")
async def add_to_cart(request: AddToCartRequest):
    """Add a product to the cart."""
    current = await require_session()
    try:
        await current.cart.add_item(request.product_id, request.quantity)
    except ShopError as e:
        raise to_http_exception(e)
    logger.info(f"Added to cart: {request.product_id} x{request.quantity}")
    return cart_payload(current)


@app.post("/cart/update")
async def update_cart(request: UpdateCartRequest):
    """Set a product's quantity in the cart."""
    current = await require_session()
    try:
        await current.cart.update_item_quantity(
            request.product_id, request.quantity, confirm_removal=request.confirm_removal
        )
    except ShopError as e:
        raise to_http_exception(e)
    return cart_payload(current)


@app.post("/cart/remove")
async def remove_from_cart(request: RemoveFromCartRequest):
    """Remove one or more products from the cart."""
    current = await require_session()
    try:
        await current.cart.remove_items(request.product_ids)
    except ShopError as e:
        raise to_http_exception(e)
    return cart_payload(current)


@app.post("/cart/clear")
async def clear_cart():
    """Remove every product from the cart."""
    current = await require_session()
    try:
        await current.cart.clear_cart()
    except ShopError as e:
        raise to_http_exception(e)
    return cart_payload(current)


@app.post("/cart/selection/toggle")
async def toggle_selection(request: ToggleSelectionRequest):
    """Select or deselect a cart line."""
    current = await require_session()
    try:
        if current.cart.snapshot is None:
            await current.cart.fetch_cart()
    except ShopError as e:
        raise to_http_exception(e)
    result = current.selection.toggle(request.line_id)
    return {"result": result.value, **cart_payload(current)}


@app.post("/cart/selection/toggle-all")
async def toggle_select_all():
    """Select all available lines, or deselect all."""
    current = await require_session()
    try:
        if current.cart.snapshot is None:
            await current.cart.fetch_cart()
    except ShopError as e:
        raise to_http_exception(e)
    current.selection.toggle_select_all()
    return cart_payload(current)


@app.get("/cart/checkout")
async def checkout_summary():
    """Validate the selection and return the checkout summary."""
    current = await require_session()
    try:
        if current.cart.snapshot is None:
            await current.cart.fetch_cart()
        summary = await current.checkout.prepare_checkout()
    except ShopError as e:
        raise to_http_exception(e)
    return summary.model_dump()


def run_http_server(host: str = "0.0.0.0", port: int = 8000, reload: bool = False):
    """
    Run the HTTP server.

    Args:
        host: Host to bind to (default: 0.0.0.0)
        port: Port to bind to (default: 8000)
        reload: Enable hot reloading (default: False)
    """
    import uvicorn

    logger.info(f"Starting server on {host}:{port} (reload={'enabled' if reload else 'disabled'})")

    if reload:
        # Hot reloading - watches for file changes
        uvicorn.run(
            "supercar_shop_server.http_server:app",
            host=host,
            port=port,
            reload=True,
            reload_dirs=["supercar_shop_server"],
            log_level="info",
        )
    else:
        uvicorn.run(app, host=host, port=port, log_level="info")


if __name__ == "__main__":
    run_http_server()
