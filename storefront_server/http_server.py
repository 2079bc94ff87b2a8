"""HTTP server exposing the storefront cart, wishlist and RFQ list."""

import logging
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, ValidationError

from .config import Settings
from .exceptions import (
    AuthRequiredException,
    LineNotFoundException,
    LineValidationException,
    StockExceededException,
    StorefrontException,
)
from .models import Account, Collection, LineKey, NO_VARIANT, Product
from .pricing import clamp_to_moq
from .session import StorefrontSession
from .sync import CollectionSync

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("storefront-http-server")

# Global state
session: StorefrontSession


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown."""
    global session

    # Startup
    logger.info("Starting Storefront HTTP Server...")
    settings = Settings.from_env()
    session = StorefrontSession(settings)
    logger.info(f"Using storefront API at {settings.api_url}, state in {settings.state_dir}")

    if session.is_authenticated():
        await session.sync()
    else:
        logger.info("No stored session, running in guest mode")

    yield

    # Shutdown
    logger.info("Shutting down Storefront HTTP Server...")
    await session.aclose()


app = FastAPI(
    title="Storefront Cart Server",
    description="Cart, wishlist and RFQ synchronization for the storefront",
    version="0.1.0",
    lifespan=lifespan,
)


# Request/Response Models
class LoginRequest(BaseModel):
    token: str
    email: Optional[str] = None
    account: Optional[Account] = None


class AddLineRequest(BaseModel):
    product: dict[str, Any]
    size: str = NO_VARIANT
    quantity: int = 1


class UpdateLineRequest(BaseModel):
    product_id: str
    size: str = NO_VARIANT
    quantity: int


class RemoveLineRequest(BaseModel):
    product_id: str
    size: str = NO_VARIANT


class RfqAddRequest(BaseModel):
    product: dict[str, Any]


class RfqUpdateRequest(BaseModel):
    product_id: str
    quantity: int


class RfqRemoveRequest(BaseModel):
    product_id: str


class QuoteRequest(BaseModel):
    product: dict[str, Any]
    quantity: int = Field(default=1, ge=1)


# Error mapping
@app.exception_handler(StorefrontException)
async def storefront_exception_handler(request: Request, exc: StorefrontException):
    status_code = 500
    if isinstance(exc, StockExceededException):
        status_code = 409
    elif isinstance(exc, LineValidationException):
        status_code = 400
    elif isinstance(exc, LineNotFoundException):
        status_code = 404
    elif isinstance(exc, AuthRequiredException):
        status_code = 401
    else:
        logger.error(f"Unhandled storefront error: {exc!r}")
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "message": exc.message, "details": _jsonable(exc.details)},
    )


@app.exception_handler(ValidationError)
async def product_validation_handler(request: Request, exc: ValidationError):
    return JSONResponse(
        status_code=422,
        content={"success": False, "message": f"Invalid product payload: {exc.error_count()} error(s)"},
    )


def _jsonable(details: dict) -> dict:
    plain = (int, float, bool, type(None))
    return {key: value if isinstance(value, plain) else str(value) for key, value in details.items()}


def _collection_response(controller: CollectionSync, collection: Collection) -> dict:
    return {
        "success": controller.error is None,
        "message": controller.error,
        "data": collection.model_dump(mode="json"),
    }


# Root endpoint
@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "name": "Storefront Cart Server",
        "version": "0.1.0",
        "endpoints": {
            "docs": "/docs",
            "health": "/health",
            "auth": {
                "login": "POST /auth/login",
                "logout": "POST /auth/logout",
                "status": "GET /auth/status",
            },
            "cart": {
                "get": "GET /cart",
                "add": "POST /cart/add",
                "update": "POST /cart/update",
                "remove": "POST /cart/remove",
                "clear": "POST /cart/clear",
                "sync": "POST /cart/sync",
            },
            "wishlist": {
                "get": "GET /wishlist",
                "add": "POST /wishlist/add",
                "remove": "POST /wishlist/remove",
                "clear": "POST /wishlist/clear",
                "sync": "POST /wishlist/sync",
            },
            "rfq": {
                "get": "GET /rfq",
                "add": "POST /rfq/add",
                "update": "POST /rfq/update",
                "remove": "POST /rfq/remove",
                "clear": "POST /rfq/clear",
            },
            "pricing": {"quote": "POST /pricing/quote"},
        },
        "authenticated": session.is_authenticated(),
    }


# Health check endpoint
@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "authenticated": session.is_authenticated(),
    }


# Authentication endpoints
@app.post("/auth/login")
async def login(request: LoginRequest):
    """Store the buyer's token and load their remote cart and wishlist."""
    await session.login(request.token, account=request.account, email=request.email)
    return {
        "success": True,
        "message": f"Logged in as {request.email or 'buyer'}",
        "cart": session.cart.collection.model_dump(mode="json"),
        "wishlist": session.wishlist.collection.model_dump(mode="json"),
    }


@app.post("/auth/logout")
async def logout():
    """Sign out and drop the local cart and wishlist."""
    session.logout()
    return {"success": True, "message": "Successfully logged out"}


@app.get("/auth/status")
async def auth_status():
    """Get authentication status."""
    account = session.auth_manager.account
    return {
        "authenticated": session.is_authenticated(),
        "email": session.auth_manager.session.user_email if session.is_authenticated() else None,
        "account": account.model_dump(mode="json") if account else None,
    }


# Cart endpoints
@app.get("/cart")
async def get_cart():
    """Get the current cart snapshot."""
    return _collection_response(session.cart, session.cart.collection)


@app.post("/cart/add")
async def add_to_cart(request: AddLineRequest):
    """Add a product to the cart, raising the quantity to the product MOQ."""
    product = Product.model_validate(request.product)
    quantity = clamp_to_moq(product, request.quantity) if request.quantity > 0 else request.quantity
    collection = await session.cart.add(product, request.size, quantity)
    return _collection_response(session.cart, collection)


@app.post("/cart/update")
async def update_cart(request: UpdateLineRequest):
    """Set the quantity of a cart line."""
    key = LineKey(product_id=request.product_id, variant=request.size)
    collection = await session.cart.update_quantity(key, request.quantity)
    return _collection_response(session.cart, collection)


@app.post("/cart/remove")
async def remove_from_cart(request: RemoveLineRequest):
    """Remove a cart line."""
    key = LineKey(product_id=request.product_id, variant=request.size)
    collection = await session.cart.remove(key)
    return _collection_response(session.cart, collection)


@app.post("/cart/clear")
async def clear_cart():
    """Empty the cart."""
    collection = await session.cart.clear()
    return _collection_response(session.cart, collection)


@app.post("/cart/sync")
async def sync_cart():
    """Replace the local cart with the remote one."""
    collection = await session.cart.fetch()
    response = _collection_response(session.cart, collection)
    response["corrections"] = [c.model_dump(mode="json") for c in session.cart.last_corrections]
    return response


# Wishlist endpoints
@app.get("/wishlist")
async def get_wishlist():
    """Get the current wishlist snapshot."""
    return _collection_response(session.wishlist, session.wishlist.collection)


@app.post("/wishlist/add")
async def add_to_wishlist(request: AddLineRequest):
    """Add a product to the wishlist."""
    product = Product.model_validate(request.product)
    collection = await session.wishlist.add(product)
    return _collection_response(session.wishlist, collection)


@app.post("/wishlist/remove")
async def remove_from_wishlist(request: RemoveLineRequest):
    """Remove a product from the wishlist."""
    collection = await session.wishlist.remove(LineKey(product_id=request.product_id))
    return _collection_response(session.wishlist, collection)


@app.post("/wishlist/clear")
async def clear_wishlist():
    """Empty the wishlist."""
    collection = await session.wishlist.clear()
    return _collection_response(session.wishlist, collection)


@app.post("/wishlist/sync")
async def sync_wishlist():
    """Replace the local wishlist with the remote one."""
    collection = await session.wishlist.fetch()
    return _collection_response(session.wishlist, collection)


# RFQ endpoints
@app.get("/rfq")
async def get_rfq():
    """Get the RFQ list."""
    return {"items": [item.model_dump(mode="json") for item in session.rfq.items]}


@app.post("/rfq/add")
async def add_to_rfq(request: RfqAddRequest):
    """Add a product to the RFQ list at its MOQ."""
    item = session.rfq.add(Product.model_validate(request.product))
    return {"success": True, "item": item.model_dump(mode="json")}


@app.post("/rfq/update")
async def update_rfq(request: RfqUpdateRequest):
    """Change a requested quantity."""
    item = session.rfq.update_quantity(request.product_id, request.quantity)
    return {"success": True, "item": item.model_dump(mode="json") if item else None}


@app.post("/rfq/remove")
async def remove_from_rfq(request: RfqRemoveRequest):
    """Remove a product from the RFQ list."""
    session.rfq.remove(request.product_id)
    return {"success": True}


@app.post("/rfq/clear")
async def clear_rfq():
    """Empty the RFQ list."""
    session.rfq.clear()
    return {"success": True}


# Pricing endpoints
@app.post("/pricing/quote")
async def quote_price(request: QuoteRequest):
    """Price a product for the signed-in buyer ("price on request" for gated guests)."""
    product = Product.model_validate(request.product)
    resolution = session.quote(product, request.quantity)
    return {
        "product_id": product.id,
        "quantity": request.quantity,
        "moq": product.moq,
        **resolution.model_dump(mode="json"),
    }


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
            "storefront_server.http_server:app",
            host=host,
            port=port,
            reload=True,
            reload_dirs=["storefront_server"],
            log_level="info"
        )
    else:
        # Regular mode
        uvicorn.run(app, host=host, port=port, log_level="info")


if __name__ == "__main__":
    # Enable hot reloading by default when running directly
    run_http_server(reload=True)
