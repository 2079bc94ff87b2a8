"""Storefront API client for cart and wishlist resources."""

import logging
from typing import Any, Optional

import httpx

from .auth import AuthManager
from .exceptions import (
    AuthRequiredException,
    RemoteRejectedException,
    RemoteUnavailableException,
)
from .models import CollectionKind, NO_VARIANT

logger = logging.getLogger(__name__)


class StorefrontClient:
    """
    Client for one collection resource (/cart or /wishlist) of the storefront API.

    Both resources share the same request/response shape; the wishlist has no
    variants or quantities and no update endpoint.
    """

    def __init__(
        self,
        base_url: str,
        auth_manager: AuthManager,
        kind: CollectionKind = CollectionKind.CART,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize the storefront client.

        Args:
            base_url: API root, e.g. http://localhost:5000/api
            auth_manager: Authentication manager providing the bearer token
            kind: Which collection resource to talk to
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests)
        """
        self.auth_manager = auth_manager
        self.kind = kind
        self.resource = f"/{kind.value}"
        self.client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            follow_redirects=True,
            headers={"Accept": "application/json"},
            transport=transport,
        )

    async def _request(self, method: str, path: str, operation: str, **kwargs: Any) -> Any:
        """Send a request and return the unwrapped response payload."""
        if not self.auth_manager.is_authenticated():
            logger.error(f"{operation.upper()} FAILED: Not authenticated")
            raise AuthRequiredException(operation)

        try:
            response = await self.client.request(
                method, path, headers=self.auth_manager.auth_headers(), **kwargs
            )
        except httpx.TransportError as e:
            logger.error(f"{operation} transport error: {e}")
            raise RemoteUnavailableException(operation, str(e)) from e

        logger.info(f"{operation}: status={response.status_code}")

        if response.status_code in (401, 403):
            raise AuthRequiredException(operation)
        if response.status_code >= 500:
            raise RemoteUnavailableException(operation, f"status {response.status_code}")
        if response.status_code >= 400:
            raise RemoteRejectedException(
                operation, response.status_code, self._error_message(response)
            )

        if not response.content:
            return None
        try:
            body = response.json()
        except ValueError as e:
            raise RemoteUnavailableException(operation, f"invalid JSON response: {e}") from e

        # API wraps payloads as {"success": ..., "message": ..., "data": ...}
        if isinstance(body, dict) and "data" in body:
            return body["data"]
        return body

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text
        if isinstance(body, dict):
            return str(body.get("message", ""))
        return ""

    async def fetch(self) -> list[dict[str, Any]]:
        """
        Get the authoritative collection.

        Returns:
            Raw line dicts (product fields plus quantity and size)
        """
        logger.info(f"=== GET {self.kind.value.upper()} ===")
        data = await self._request("GET", self.resource, f"fetch {self.kind.value}")
        if data is None:
            return []
        if isinstance(data, dict):
            items = data.get("items") or []
        else:
            items = data
        logger.info(f"{self.kind.value}: {len(items)} line(s)")
        return list(items)

    async def add(
        self, product_id: str, variant: str = NO_VARIANT, quantity: int = 1
    ) -> Optional[dict[str, Any]]:
        """
        Add a product to the collection.

        Returns:
            The updated line as reported by the server, if any
        """
        logger.info(
            f"=== ADD TO {self.kind.value.upper()}: product_id={product_id}, "
            f"size={variant!r}, quantity={quantity} ==="
        )
        if self.kind == CollectionKind.WISHLIST:
            payload: dict[str, Any] = {"productId": product_id}
        else:
            payload = {"productId": product_id, "size": variant or "", "quantity": quantity}

        data = await self._request("POST", self.resource, f"add to {self.kind.value}", json=payload)
        return data if isinstance(data, dict) else None

    async def update_quantity(self, product_id: str, variant: str, quantity: int) -> None:
        """Set the quantity of a cart line."""
        logger.info(
            f"=== UPDATE {self.kind.value.upper()}: product_id={product_id}, "
            f"size={variant!r}, quantity={quantity} ==="
        )
        if self.kind == CollectionKind.WISHLIST:
            raise ValueError("Wishlist lines have no quantity")
        await self._request(
            "PUT",
            f"{self.resource}/{product_id}",
            f"update {self.kind.value}",
            json={"size": variant or "", "quantity": quantity},
        )

    async def remove(self, product_id: str, variant: str = NO_VARIANT) -> None:
        """Remove a line from the collection."""
        logger.info(f"=== REMOVE FROM {self.kind.value.upper()}: product_id={product_id}, size={variant!r} ===")
        params = None
        if self.kind == CollectionKind.CART:
            params = {"size": variant or ""}
        await self._request(
            "DELETE",
            f"{self.resource}/{product_id}",
            f"remove from {self.kind.value}",
            params=params,
        )

    async def clear(self) -> None:
        """Remove every line from the collection."""
        logger.info(f"=== CLEAR {self.kind.value.upper()} ===")
        await self._request("DELETE", self.resource, f"clear {self.kind.value}")

    async def aclose(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()
