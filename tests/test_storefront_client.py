"""Unit tests for the storefront API client."""

import httpx
import pytest
import respx

from storefront_server.exceptions import (
    AuthRequiredException,
    RemoteRejectedException,
    RemoteUnavailableException,
)
from storefront_server.models import CollectionKind
from storefront_server.storefront_client import StorefrontClient

from conftest import API_URL


@pytest.fixture
def cart_client(buyer_auth):
    return StorefrontClient(API_URL + "/", buyer_auth, kind=CollectionKind.CART)


@pytest.fixture
def wishlist_client(buyer_auth):
    return StorefrontClient(API_URL, buyer_auth, kind=CollectionKind.WISHLIST)


class TestStorefrontClient:

    @pytest.mark.asyncio
    async def test_guest_never_hits_the_network(self, guest_auth):
        client = StorefrontClient(API_URL, guest_auth)
        with respx.mock(base_url=API_URL, assert_all_called=False) as api:
            route = api.get("/cart")
            with pytest.raises(AuthRequiredException) as exc_info:
                await client.fetch()

        assert not route.called
        assert exc_info.value.message == "Must be authenticated to fetch cart"

    @pytest.mark.asyncio
    async def test_fetch_unwraps_items(self, cart_client):
        with respx.mock(base_url=API_URL) as api:
            api.get("/cart").respond(200, json={"success": True, "data": {"items": [{"_id": "a", "quantity": 1}]}})
            assert await cart_client.fetch() == [{"_id": "a", "quantity": 1}]

    @pytest.mark.asyncio
    async def test_fetch_plain_list_and_empty_body(self, cart_client):
        with respx.mock(base_url=API_URL) as api:
            api.get("/cart").mock(side_effect=[
                httpx.Response(200, json=[{"_id": "a"}]),
                httpx.Response(204),
            ])
            assert await cart_client.fetch() == [{"_id": "a"}]
            assert await cart_client.fetch() == []

    @pytest.mark.asyncio
    async def test_rejected_carries_server_message(self, cart_client):
        with respx.mock(base_url=API_URL) as api:
            api.post("/cart").respond(404, json={"success": False, "message": "Product not found"})
            with pytest.raises(RemoteRejectedException) as exc_info:
                await cart_client.add("missing", "", 1)

        assert exc_info.value.status_code == 404
        assert exc_info.value.message == "Product not found"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status_code", [401, 403])
    async def test_auth_failures(self, cart_client, status_code):
        with respx.mock(base_url=API_URL) as api:
            api.delete("/cart").respond(status_code)
            with pytest.raises(AuthRequiredException):
                await cart_client.clear()

    @pytest.mark.asyncio
    async def test_server_error_and_invalid_json(self, cart_client):
        with respx.mock(base_url=API_URL) as api:
            api.get("/cart").mock(side_effect=[
                httpx.Response(500),
                httpx.Response(200, text="<html>gateway</html>"),
            ])
            with pytest.raises(RemoteUnavailableException):
                await cart_client.fetch()
            with pytest.raises(RemoteUnavailableException) as exc_info:
                await cart_client.fetch()

        assert "invalid JSON" in exc_info.value.reason

    @pytest.mark.asyncio
    async def test_timeout_is_unavailable(self, cart_client):
        with respx.mock(base_url=API_URL) as api:
            api.get("/cart").mock(side_effect=httpx.ReadTimeout("timed out"))
            with pytest.raises(RemoteUnavailableException) as exc_info:
                await cart_client.fetch()

        assert exc_info.value.operation == "fetch cart"

    @pytest.mark.asyncio
    async def test_add_returns_line(self, cart_client):
        line = {"_id": "a", "quantity": 3, "size": "M"}
        with respx.mock(base_url=API_URL) as api:
            api.post("/cart").respond(200, json={"success": True, "message": "Product added to cart", "data": line})
            assert await cart_client.add("a", "M", 1) == line

    @pytest.mark.asyncio
    async def test_wishlist_has_no_quantity_update(self, wishlist_client):
        with pytest.raises(ValueError):
            await wishlist_client.update_quantity("a", "", 2)

    @pytest.mark.asyncio
    async def test_aclose(self, cart_client):
        await cart_client.aclose()
        assert cart_client.client.is_closed
