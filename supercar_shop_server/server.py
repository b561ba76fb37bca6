"""MCP Server for the supercar shop."""

import asyncio
import logging
from typing import Any, Optional

from mcp.server import Server
from mcp.types import Resource, Tool, TextContent
from pydantic import AnyUrl

from .catalog_store import HIGHLIGHT_KINDS
from .config import Settings
from .errors import ShopError
from .models import AuthCredentials, Cart, CatalogFilter, CheckoutSummary, Product
from .shop import Shop

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("supercar-shop-mcp-server")

# Initialize server
app = Server("supercar-shop-mcp-server")

# Global state
shop: Shop

NOT_AUTHENTICATED = (
    "Error: Not authenticated. Please configure SUPERCAR_SHOP_EMAIL and SUPERCAR_SHOP_PASSWORD, "
    "or use shop_login first."
)

SESSION_TOOLS = {
    "shop_get_cart",
    "shop_add_to_cart",
    "shop_update_cart_quantity",
    "shop_remove_from_cart",
    "shop_clear_cart",
    "shop_toggle_selection",
    "shop_toggle_select_all",
    "shop_checkout_summary",
    "shop_add_review",
}


def format_price(amount: int) -> str:
    return f"{amount:,} ₫"


def describe_error(error: ShopError) -> str:
    """Human-readable text for a classified shop error."""
    kind = error.kind
    if kind == "unauthenticated":
        return NOT_AUTHENTICATED
    if kind == "quantity_limit_exceeded":
        text = f"❌ Quantity limit: at most {error.limit} unit(s) of product {error.product_id} per order"
        if error.applied_quantity:
            text += f" (in cart: {error.applied_quantity})"
        return text
    if kind == "out_of_stock":
        text = f"❌ Product {error.product_id} has only {error.available} unit(s) in stock"
        if error.applied_quantity:
            text += f" (in cart: {error.applied_quantity})"
        return text
    if kind == "invalid_quantity":
        return f"Error: Invalid quantity {error.quantity}"
    if kind == "removal_confirmation_required":
        return (
            f"Quantity below 1 removes product {error.product_id} from the cart. "
            "Call again with confirm_removal=true to remove it."
        )
    if kind == "empty_selection":
        return "❌ No items selected. Select at least one available item to check out."
    if kind == "unavailable_item_selected":
        return f"❌ Selected item(s) no longer available: {', '.join(error.line_ids)}. Please deselect them."
    if kind == "not_found":
        return f"Error: {error.resource} {error.identifier} not found"
    if kind == "mutation_in_progress":
        return "Error: Another cart update is still in progress, try again"
    if kind == "transport_error":
        return f"Error: Shop backend unavailable ({error.operation})"
    return f"Error: {error}"


def format_product(index: int, product: Product) -> list[str]:
    lines = [f"\n{index}. {product.name}", f"   ID: {product.id}", f"   Price: {format_price(product.price)}"]
    if product.category_name:
        lines.append(f"   Category: {product.category_name}")
    lines.append(f"   In stock: {product.stock_quantity}")
    if product.review_count:
        lines.append(f"   Rating: {product.rating:.1f} ({product.review_count} reviews)")
    return lines


def format_cart(cart: Cart) -> str:
    if not cart.lines:
        return "Your cart is empty"

    result_lines = [f"Shopping Cart ({cart.item_count} items):\n"]
    for line in cart.lines:
        marker = "[x]" if shop.selection.is_selected(line.id) else "[ ]"
        availability = ""
        if line.in_stock == 0:
            availability = " (OUT OF STOCK)"
        elif not line.status:
            availability = " (DISCONTINUED)"
        result_lines.append(
            f"  {marker} {line.name} (line {line.id}, product {line.product_id}): "
            f"{line.quantity} x {format_price(line.price)} = {format_price(line.subtotal)}{availability}"
        )
    result_lines.append(f"\nSubtotal: {format_price(cart.subtotal)}")
    return "\n".join(result_lines)


def format_summary(summary: CheckoutSummary) -> str:
    result_lines = [f"Checkout ({len(summary.lines)} line(s)):"]
    for line in summary.lines:
        result_lines.append(f"  - {line.name}: {line.quantity} x {format_price(line.price)}")
    result_lines.append(f"Subtotal: {format_price(summary.subtotal)}")
    result_lines.append(f"Shipping: {format_price(summary.shipping)}")
    result_lines.append(f"Total: {format_price(summary.total)}")
    if summary.warnings:
        result_lines.append("\n⚠️ Low stock:")
        for warning in summary.warnings:
            result_lines.append(f"  • {warning.name}: only {warning.in_stock} left")
    return "\n".join(result_lines)


@app.list_resources()
async def list_resources() -> list[Resource]:
    """List available resources."""
    resources = []

    if shop.auth_manager.is_authenticated():
        resources.append(
            Resource(
                uri=AnyUrl("supercar-shop://cart"),
                name="Shopping Cart",
                mimeType="application/json",
                description="Current shopping cart contents",
            )
        )

    return resources


@app.read_resource()
async def read_resource(uri: AnyUrl) -> str:
    """Read a resource by URI."""
    uri_str = str(uri).rstrip("/")

    if uri_str == "supercar-shop://cart":
        if not shop.auth_manager.is_authenticated():
            return "Error: Not authenticated. Please login first."

        cart = await shop.cart.fetch_cart()
        return cart.model_dump_json(indent=2)

    raise ValueError(f"Unknown resource: {uri}")


@app.list_tools()
async def list_tools() -> list[Tool]:
    """List available tools."""
    product_id = {"type": "string", "description": "Product ID"}
    return [
        Tool(
            name="shop_login",
            description="Authenticate with the shop using email and password",
            inputSchema={
                "type": "object",
                "properties": {
                    "email": {
                        "type": "string",
                        "description": "Email address (optional if SUPERCAR_SHOP_EMAIL configured)",
                    },
                    "password": {
                        "type": "string",
                        "description": "Password (optional if SUPERCAR_SHOP_PASSWORD configured)",
                    },
                },
            },
        ),
        Tool(
            name="shop_logout",
            description="Logout and clear session",
            inputSchema={"type": "object", "properties": {}},
        ),
        Tool(
            name="shop_list_products",
            description="List active products page by page, optionally within a category or for a search term",
            inputSchema={
                "type": "object",
                "properties": {
                    "page": {"type": "integer", "description": "Page number (default: 1)", "default": 1},
                    "category": {"type": "string", "description": "Category name or ID"},
                    "search": {"type": "string", "description": "Search term"},
                },
            },
        ),
        Tool(
            name="shop_list_highlights",
            description="List featured products, new arrivals or best sellers",
            inputSchema={
                "type": "object",
                "properties": {
                    "kind": {"type": "string", "enum": list(HIGHLIGHT_KINDS), "description": "Which list to show"},
                    "limit": {"type": "integer", "description": "Maximum products (default: 10)", "default": 10},
                },
                "required": ["kind"],
            },
        ),
        Tool(
            name="shop_get_product",
            description="Get product details",
            inputSchema={"type": "object", "properties": {"product_id": product_id}, "required": ["product_id"]},
        ),
        Tool(
            name="shop_list_categories",
            description="List product categories",
            inputSchema={"type": "object", "properties": {}},
        ),
        Tool(
            name="shop_get_cart",
            description="Get current shopping cart contents and selection",
            inputSchema={"type": "object", "properties": {}},
        ),
        Tool(
            name="shop_add_to_cart",
            description="Add product to cart (at most 2 units per product)",
            inputSchema={
                "type": "object",
                "properties": {
                    "product_id": product_id,
                    "quantity": {"type": "integer", "description": "Quantity to add (default: 1)", "default": 1},
                },
                "required": ["product_id"],
            },
        ),
        Tool(
            name="shop_update_cart_quantity",
            description="Set the quantity of a product in the cart (0 removes it when confirm_removal is true)",
            inputSchema={
                "type": "object",
                "properties": {
                    "product_id": product_id,
                    "quantity": {"type": "integer", "description": "New quantity"},
                    "confirm_removal": {
                        "type": "boolean",
                        "description": "Confirm removal when quantity is below 1",
                        "default": False,
                    },
                },
                "required": ["product_id", "quantity"],
            },
        ),
        Tool(
            name="shop_remove_from_cart",
            description="Remove product from cart",
            inputSchema={"type": "object", "properties": {"product_id": product_id}, "required": ["product_id"]},
        ),
        Tool(
            name="shop_clear_cart",
            description="Remove every product from the cart",
            inputSchema={"type": "object", "properties": {}},
        ),
        Tool(
            name="shop_toggle_selection",
            description="Select or deselect a cart line for checkout",
            inputSchema={
                "type": "object",
                "properties": {"line_id": {"type": "string", "description": "Cart line ID"}},
                "required": ["line_id"],
            },
        ),
        Tool(
            name="shop_toggle_select_all",
            description="Select all available cart lines, or deselect all",
            inputSchema={"type": "object", "properties": {}},
        ),
        Tool(
            name="shop_checkout_summary",
            description="Validate the selection and show subtotal, shipping and total",
            inputSchema={"type": "object", "properties": {}},
        ),
        Tool(
            name="shop_get_reviews",
            description="Get reviews and average rating of a product",
            inputSchema={"type": "object", "properties": {"product_id": product_id}, "required": ["product_id"]},
        ),
        Tool(
            name="shop_add_review",
            description="Review a product (rating 1-5)",
            inputSchema={
                "type": "object",
                "properties": {
                    "product_id": product_id,
                    "rating": {"type": "integer", "minimum": 1, "maximum": 5},
                    "comment": {"type": "string"},
                },
                "required": ["product_id", "rating"],
            },
        ),
    ]


async def list_products(arguments: dict) -> str:
    catalog_filter = CatalogFilter(category=arguments.get("category"), search=arguments.get("search"))
    page = int(arguments.get("page", 1))

    result = await shop.catalog.browse(catalog_filter, page)

    if not result.items:
        return "No products found"

    result_lines = [f"Page {result.page} of {result.total_pages}:"]
    for i, product in enumerate(result.items, 1):
        result_lines.extend(format_product(i, product))
    if result.has_more:
        result_lines.append(f"\nMore products available (page {result.page + 1})")
    return "\n".join(result_lines)


@app.call_tool()
async def call_tool(name: str, arguments: Any) -> list[TextContent]:
    """Handle tool calls."""
    arguments = arguments or {}
    try:
        if name == "shop_login":
            email = arguments.get("email")
            password = arguments.get("password")

            # Use provided credentials or fall back to environment
            configured = shop.settings.credentials
            if not email or not password:
                if configured:
                    email = email or configured.email
                    password = password or configured.password
                else:
                    return [
                        TextContent(
                            type="text",
                            text="Error: No credentials provided and SUPERCAR_SHOP_EMAIL/SUPERCAR_SHOP_PASSWORD not configured.",
                        )
                    ]

            success = await shop.login(AuthCredentials(email=email, password=password))
            if success:
                return [TextContent(type="text", text=f"✅ Successfully logged in as {email}")]
            return [TextContent(type="text", text="❌ Login failed. Check your credentials.")]

        elif name == "shop_logout":
            shop.logout()
            return [TextContent(type="text", text="✅ Successfully logged out")]

        elif name == "shop_list_products":
            return [TextContent(type="text", text=await list_products(arguments))]

        elif name == "shop_list_highlights":
            kind = arguments["kind"]
            products = await shop.catalog.highlights(kind, int(arguments.get("limit", 10)))
            label = kind.replace("_", " ")
            if not products:
                return [TextContent(type="text", text=f"No {label} products")]
            result_lines = [f"Found {len(products)} {label} products:"]
            for i, product in enumerate(products, 1):
                result_lines.extend(format_product(i, product))
            return [TextContent(type="text", text="\n".join(result_lines))]

        elif name == "shop_get_product":
            product = await shop.catalog.get_product(arguments["product_id"])
            result_lines = format_product(1, product)[1:]
            if product.description:
                result_lines.append(f"   {product.description}")
            return [TextContent(type="text", text=f"{product.name}\n" + "\n".join(result_lines))]

        elif name == "shop_list_categories":
            categories = await shop.catalog.load_categories()
            if not categories:
                return [TextContent(type="text", text="No categories found")]
            result_lines = [f"Found {len(categories)} categories:"]
            for category in categories:
                result_lines.append(f"  - {category.name} (ID: {category.id})")
            return [TextContent(type="text", text="\n".join(result_lines))]

        elif name == "shop_get_reviews":
            product_id = arguments["product_id"]
            reviews = await shop.reviews.fetch_reviews(product_id)
            if not reviews:
                return [TextContent(type="text", text=f"No reviews for product {product_id}")]
            result_lines = [
                f"{len(reviews)} review(s), average rating {shop.reviews.average_rating(product_id):.1f}:"
            ]
            for review in reviews:
                author = review.author or "Anonymous"
                result_lines.append(f"  - {review.rating}/5 by {author}: {review.comment or ''}")
            return [TextContent(type="text", text="\n".join(result_lines))]

        if name in SESSION_TOOLS and not await shop.ensure_authenticated():
            return [TextContent(type="text", text=NOT_AUTHENTICATED)]

        if name == "shop_get_cart":
            cart = await shop.cart.fetch_cart()
            return [TextContent(type="text", text=format_cart(cart))]

        elif name == "shop_add_to_cart":
            product_id = arguments["product_id"]
            quantity = int(arguments.get("quantity", 1))
            cart = await shop.cart.add_item(product_id, quantity)
            return [
                TextContent(
                    type="text",
                    text=f"✅ Successfully added product {product_id} (quantity: {quantity}) to cart\n\n"
                    + format_cart(cart),
                )
            ]

        elif name == "shop_update_cart_quantity":
            product_id = arguments["product_id"]
            quantity = int(arguments["quantity"])
            cart = await shop.cart.update_item_quantity(
                product_id, quantity, confirm_removal=bool(arguments.get("confirm_removal", False))
            )
            return [
                TextContent(
                    type="text",
                    text=f"✅ Product {product_id} updated\n\n" + format_cart(cart),
                )
            ]

        elif name == "shop_remove_from_cart":
            product_id = arguments["product_id"]
            cart = await shop.cart.remove_item(product_id)
            return [
                TextContent(
                    type="text",
                    text=f"✅ Successfully removed product {product_id} from cart\n\n" + format_cart(cart),
                )
            ]

        elif name == "shop_clear_cart":
            await shop.cart.clear_cart()
            return [TextContent(type="text", text="✅ Cart cleared")]

        elif name == "shop_toggle_selection":
            if shop.cart.snapshot is None:
                await shop.cart.fetch_cart()
            line_id = arguments["line_id"]
            result = shop.selection.toggle(line_id)
            messages = {
                "selected": f"Line {line_id} selected",
                "deselected": f"Line {line_id} deselected",
                "unavailable": f"Line {line_id} is out of stock or discontinued and cannot be selected",
                "unknown_line": f"Line {line_id} is not in the cart",
            }
            return [TextContent(type="text", text=messages[result.value])]

        elif name == "shop_toggle_select_all":
            if shop.cart.snapshot is None:
                await shop.cart.fetch_cart()
            selected = shop.selection.toggle_select_all()
            return [TextContent(type="text", text=f"{len(selected)} line(s) selected")]

        elif name == "shop_checkout_summary":
            if shop.cart.snapshot is None:
                await shop.cart.fetch_cart()
            summary = await shop.checkout.prepare_checkout()
            return [TextContent(type="text", text=format_summary(summary))]

        elif name == "shop_add_review":
            product_id = arguments["product_id"]
            reviews = await shop.reviews.add_review(
                product_id, int(arguments["rating"]), arguments.get("comment")
            )
            return [
                TextContent(
                    type="text",
                    text=f"✅ Review saved. Product {product_id} now has {len(reviews)} review(s), "
                    f"average {shop.reviews.average_rating(product_id):.1f}",
                )
            ]

        else:
            return [TextContent(type="text", text=f"Unknown tool: {name}")]

    except ShopError as e:
        logger.info(f"Tool {name} failed: {e.kind}")
        return [TextContent(type="text", text=describe_error(e))]
    except (KeyError, ValueError) as e:
        return [TextContent(type="text", text=f"Error: Invalid arguments: {e}")]
    except Exception as e:
        logger.error(f"Error executing tool {name}: {e}", exc_info=True)
        return [
            TextContent(
                type="text",
                text=f"Error: {str(e)}",
            )
        ]


async def main(settings: Optional[Settings] = None) -> None:
    """Main entry point."""
    global shop

    settings = settings or Settings.from_env()
    shop = Shop(settings)

    if settings.credentials:
        logger.info(f"Credentials loaded from environment for: {settings.email}")
    else:
        logger.warning("No credentials found in environment variables (SUPERCAR_SHOP_EMAIL, SUPERCAR_SHOP_PASSWORD)")
        logger.warning("You can login manually via shop_login tool")

    logger.info("Starting Supercar Shop MCP Server...")

    # Import and run the server
    from mcp.server.stdio import stdio_server

    try:
        async with stdio_server() as (read_stream, write_stream):
            await app.run(
                read_stream,
                write_stream,
                app.create_initialization_options(),
            )
    finally:
        await shop.close()


if __name__ == "__main__":
    asyncio.run(main())
