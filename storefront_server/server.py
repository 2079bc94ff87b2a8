"""MCP Server for the storefront cart, wishlist and RFQ list."""

import asyncio
import json
import logging
from typing import Any, Optional

from mcp.server import Server
from mcp.types import Resource, Tool, TextContent
from pydantic import AnyUrl

from .config import Settings
from .exceptions import StockExceededException, StorefrontException
from .models import Account, Collection, LineKey, NO_VARIANT, Product
from .pricing import clamp_to_moq
from .session import StorefrontSession
from .sync import CollectionSync

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("storefront-mcp-server")

# Initialize server
app = Server("storefront-mcp-server")

# Global state
session: StorefrontSession

PRODUCT_SCHEMA = {
    "type": "object",
    "description": "Product record as returned by the storefront API (_id, name, price, stock, sizes, sizeStock, tierPricing, volumePricing, moq)",
}


def _text(text: str) -> list[TextContent]:
    return [TextContent(type="text", text=text)]


def format_collection(title: str, controller: CollectionSync, collection: Collection) -> str:
    """Render a collection snapshot as readable text."""
    if not collection.lines:
        text = f"{title} is empty"
    else:
        result_lines = [f"{title} ({collection.total_items} item(s)):\n"]
        for i, line in enumerate(collection.lines, 1):
            result_lines.append(f"\n{i}. {line.product_snapshot.name or line.key.product_id}")
            result_lines.append(f"   ID: {line.key.product_id}")
            if line.key.variant:
                result_lines.append(f"   Size: {line.key.variant}")
            result_lines.append(f"   Quantity: {line.quantity}")
            result_lines.append(f"   Unit price: ₹{line.unit_price_snapshot}")
            result_lines.append(f"   Subtotal: ₹{line.subtotal}")
        result_lines.append(f"\n{'='*50}")
        result_lines.append(f"Total: ₹{collection.total_amount}")
        text = "\n".join(result_lines)

    if controller.error:
        text += f"\n\n⚠️  Not confirmed by the server: {controller.error}"
    return text


@app.list_resources()
async def list_resources() -> list[Resource]:
    """List available resources."""
    return [
        Resource(
            uri=AnyUrl("storefront://cart"),
            name="Shopping Cart",
            mimeType="application/json",
            description="Current shopping cart contents",
        ),
        Resource(
            uri=AnyUrl("storefront://wishlist"),
            name="Wishlist",
            mimeType="application/json",
            description="Current wishlist contents",
        ),
        Resource(
            uri=AnyUrl("storefront://rfq"),
            name="RFQ List",
            mimeType="application/json",
            description="Products queued for a quotation request",
        ),
    ]


@app.read_resource()
async def read_resource(uri: AnyUrl) -> str:
    """Read a resource by URI."""
    uri_str = str(uri)

    if uri_str == "storefront://cart":
        return session.cart.collection.model_dump_json(indent=2)

    elif uri_str == "storefront://wishlist":
        return session.wishlist.collection.model_dump_json(indent=2)

    elif uri_str == "storefront://rfq":
        result = [item.model_dump(mode="json") for item in session.rfq.items]
        return json.dumps(result, indent=2)

    raise ValueError(f"Unknown resource: {uri}")


@app.list_tools()
async def list_tools() -> list[Tool]:
    """List available tools."""
    return [
        Tool(
            name="storefront_login",
            description="Sign in with a storefront API token and load the remote cart and wishlist",
            inputSchema={
                "type": "object",
                "properties": {
                    "token": {"type": "string", "description": "Bearer token from the storefront login"},
                    "email": {"type": "string", "description": "Buyer email (optional)"},
                    "account": {
                        "type": "object",
                        "description": "Business account: {status, pricingTier} (optional)",
                    },
                },
                "required": ["token"],
            },
        ),
        Tool(
            name="storefront_logout",
            description="Sign out and drop the local cart and wishlist",
            inputSchema={"type": "object", "properties": {}},
        ),
        Tool(
            name="storefront_sync",
            description="Replace the local cart and wishlist with the server's copies",
            inputSchema={"type": "object", "properties": {}},
        ),
        Tool(
            name="storefront_get_cart",
            description="Get current shopping cart contents with all items and total",
            inputSchema={"type": "object", "properties": {}},
        ),
        Tool(
            name="storefront_add_to_cart",
            description="Add a product to the shopping cart (quantity is raised to the product MOQ)",
            inputSchema={
                "type": "object",
                "properties": {
                    "product": PRODUCT_SCHEMA,
                    "size": {"type": "string", "description": "Size, required for products with sizes"},
                    "quantity": {"type": "integer", "description": "Quantity to add (default: 1)", "default": 1},
                },
                "required": ["product"],
            },
        ),
        Tool(
            name="storefront_update_cart_quantity",
            description="Set the quantity of a cart line (0 removes it)",
            inputSchema={
                "type": "object",
                "properties": {
                    "product_id": {"type": "string", "description": "Product ID to update"},
                    "size": {"type": "string", "description": "Size of the line (if any)"},
                    "quantity": {"type": "integer", "description": "New quantity to set"},
                },
                "required": ["product_id", "quantity"],
            },
        ),
        Tool(
            name="storefront_remove_from_cart",
            description="Remove a line from the shopping cart",
            inputSchema={
                "type": "object",
                "properties": {
                    "product_id": {"type": "string", "description": "Product ID to remove"},
                    "size": {"type": "string", "description": "Size of the line (if any)"},
                },
                "required": ["product_id"],
            },
        ),
        Tool(
            name="storefront_clear_cart",
            description="Remove every line from the shopping cart",
            inputSchema={"type": "object", "properties": {}},
        ),
        Tool(
            name="storefront_get_wishlist",
            description="Get current wishlist contents",
            inputSchema={"type": "object", "properties": {}},
        ),
        Tool(
            name="storefront_add_to_wishlist",
            description="Add a product to the wishlist",
            inputSchema={
                "type": "object",
                "properties": {"product": PRODUCT_SCHEMA},
                "required": ["product"],
            },
        ),
        Tool(
            name="storefront_remove_from_wishlist",
            description="Remove a product from the wishlist",
            inputSchema={
                "type": "object",
                "properties": {"product_id": {"type": "string", "description": "Product ID to remove"}},
                "required": ["product_id"],
            },
        ),
        Tool(
            name="storefront_add_to_rfq",
            description="Add a product to the request-for-quotation list at its MOQ",
            inputSchema={
                "type": "object",
                "properties": {"product": PRODUCT_SCHEMA},
                "required": ["product"],
            },
        ),
        Tool(
            name="storefront_update_rfq_quantity",
            description="Change the requested quantity of an RFQ item (0 removes it)",
            inputSchema={
                "type": "object",
                "properties": {
                    "product_id": {"type": "string", "description": "Product ID to update"},
                    "quantity": {"type": "integer", "description": "Requested quantity"},
                },
                "required": ["product_id", "quantity"],
            },
        ),
        Tool(
            name="storefront_get_rfq",
            description="List the products queued for a quotation request",
            inputSchema={"type": "object", "properties": {}},
        ),
        Tool(
            name="storefront_quote_price",
            description="Resolve the unit price of a product for the signed-in buyer and a quantity",
            inputSchema={
                "type": "object",
                "properties": {
                    "product": PRODUCT_SCHEMA,
                    "quantity": {"type": "integer", "description": "Quantity (default: 1)", "default": 1},
                },
                "required": ["product"],
            },
        ),
    ]


async def _dispatch(name: str, arguments: dict[str, Any]) -> Optional[str]:
    if name == "storefront_login":
        account = arguments.get("account")
        await session.login(
            arguments["token"],
            account=Account.model_validate(account) if account else None,
            email=arguments.get("email"),
        )
        return (
            f"Successfully logged in as {arguments.get('email') or 'buyer'}\n"
            f"Cart: {session.cart.collection.total_items} item(s), "
            f"wishlist: {len(session.wishlist.collection.lines)} product(s)"
        )

    if name == "storefront_logout":
        session.logout()
        return "Successfully logged out"

    if name == "storefront_sync":
        if not session.is_authenticated():
            return "Error: Not authenticated. Please login first."
        await session.sync()
        text = format_collection("Cart", session.cart, session.cart.collection)
        for correction in session.cart.last_corrections:
            text += (
                f"\nQuantity for {correction.key} corrected by server: "
                f"{correction.local_quantity} → {correction.remote_quantity}"
            )
        return text

    if name == "storefront_get_cart":
        return format_collection("Cart", session.cart, session.cart.collection)

    if name == "storefront_add_to_cart":
        product = Product.model_validate(arguments["product"])
        quantity = int(arguments.get("quantity", 1))
        if quantity > 0:
            quantity = clamp_to_moq(product, quantity)
        collection = await session.cart.add(product, arguments.get("size", NO_VARIANT), quantity)
        return format_collection("Cart", session.cart, collection)

    if name == "storefront_update_cart_quantity":
        key = LineKey(product_id=arguments["product_id"], variant=arguments.get("size", NO_VARIANT))
        collection = await session.cart.update_quantity(key, int(arguments["quantity"]))
        return format_collection("Cart", session.cart, collection)

    if name == "storefront_remove_from_cart":
        key = LineKey(product_id=arguments["product_id"], variant=arguments.get("size", NO_VARIANT))
        collection = await session.cart.remove(key)
        return format_collection("Cart", session.cart, collection)

    if name == "storefront_clear_cart":
        collection = await session.cart.clear()
        return format_collection("Cart", session.cart, collection)

    if name == "storefront_get_wishlist":
        return format_collection("Wishlist", session.wishlist, session.wishlist.collection)

    if name == "storefront_add_to_wishlist":
        collection = await session.wishlist.add(Product.model_validate(arguments["product"]))
        return format_collection("Wishlist", session.wishlist, collection)

    if name == "storefront_remove_from_wishlist":
        collection = await session.wishlist.remove(LineKey(product_id=arguments["product_id"]))
        return format_collection("Wishlist", session.wishlist, collection)

    if name == "storefront_add_to_rfq":
        item = session.rfq.add(Product.model_validate(arguments["product"]))
        return f"Added {item.name or item.product_id} to RFQ list (quantity: {item.quantity})"

    if name == "storefront_update_rfq_quantity":
        item = session.rfq.update_quantity(arguments["product_id"], int(arguments["quantity"]))
        if item is None:
            return f"Removed {arguments['product_id']} from RFQ list"
        return f"Requested quantity for {item.product_id} is now {item.quantity}"

    if name == "storefront_get_rfq":
        if not session.rfq.items:
            return "RFQ list is empty"
        result_lines = [f"RFQ list ({len(session.rfq.items)} product(s)):\n"]
        for i, item in enumerate(session.rfq.items, 1):
            result_lines.append(f"\n{i}. {item.name or item.product_id}")
            result_lines.append(f"   Quantity: {item.quantity} (MOQ {item.moq})")
        return "\n".join(result_lines)

    if name == "storefront_quote_price":
        product = Product.model_validate(arguments["product"])
        quantity = int(arguments.get("quantity", 1))
        resolution = session.quote(product, quantity)
        if resolution.price_withheld:
            text = "Price on Request"
        else:
            text = f"Unit price: ₹{resolution.unit_price} ({resolution.tier_label} pricing)"
            if resolution.discount_percent > 0:
                text += f", {resolution.discount_percent}% OFF"
        if product.moq > 1:
            text += f"\nMOQ: {product.moq} units"
        return text

    return None


@app.call_tool()
async def call_tool(name: str, arguments: Any) -> list[TextContent]:
    """Handle tool calls."""
    try:
        text = await _dispatch(name, arguments or {})
        if text is None:
            return _text(f"Unknown tool: {name}")
        return _text(text)

    except StockExceededException as e:
        return _text(f"Error: {e.message}")
    except StorefrontException as e:
        logger.warning(f"Tool {name} failed: {e!r}")
        return _text(f"Error: {e.message}")
    except Exception as e:
        logger.error(f"Error executing tool {name}: {e}", exc_info=True)
        return _text(f"Error: {str(e)}")


async def main() -> None:
    """Main entry point for the MCP server."""
    global session

    settings = Settings.from_env()
    session = StorefrontSession(settings)
    logger.info(f"Using storefront API at {settings.api_url}")

    if session.is_authenticated():
        await session.sync()
    else:
        logger.warning("No stored session or STOREFRONT_TOKEN, cart and wishlist run in guest mode")

    logger.info("Starting Storefront MCP Server...")

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
        await session.aclose()


if __name__ == "__main__":
    asyncio.run(main())
