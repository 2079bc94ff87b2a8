"""Storefront session: wires storage, auth, API clients and collections together."""

import asyncio
import logging
from typing import Optional

import httpx

from .auth import AuthManager
from .config import Settings
from .models import Account, CollectionKind, PriceResolution, Product
from .notifier import ChangeNotifier
from .pricing import resolve_price
from .rfq import RfqList
from .storage import LocalStore
from .storefront_client import StorefrontClient
from .sync import CollectionSync

logger = logging.getLogger(__name__)

CART_KEY = "cart"
WISHLIST_KEY = "wishlist"
RFQ_KEY = "rfqItems"


class StorefrontSession:
    """
    Owner of all buyer-side collection state.

    The session claims the local storage keys, so the cart, wishlist and RFQ
    list are the only writers of their stored copies.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize the session from settings.

        Args:
            settings: Server settings, defaults to Settings.from_env()
            transport: Optional httpx transport shared by the API clients (tests)
        """
        self.settings = settings or Settings.from_env()
        self.store = LocalStore(self.settings.state_dir)
        self.auth_manager = AuthManager(
            self.settings.session_file,
            token=self.settings.token,
            user_email=self.settings.email,
        )
        self.notifier = ChangeNotifier()

        self.cart_client = StorefrontClient(
            self.settings.api_url,
            self.auth_manager,
            kind=CollectionKind.CART,
            timeout=self.settings.timeout,
            transport=transport,
        )
        self.wishlist_client = StorefrontClient(
            self.settings.api_url,
            self.auth_manager,
            kind=CollectionKind.WISHLIST,
            timeout=self.settings.timeout,
            transport=transport,
        )

        self.cart = CollectionSync(
            CollectionKind.CART,
            self.store.claim(CART_KEY),
            self.auth_manager,
            self.notifier,
            remote=self.cart_client,
        )
        self.wishlist = CollectionSync(
            CollectionKind.WISHLIST,
            self.store.claim(WISHLIST_KEY),
            self.auth_manager,
            self.notifier,
            remote=self.wishlist_client,
        )
        self.rfq = RfqList(self.store.claim(RFQ_KEY), self.notifier)

    def is_authenticated(self) -> bool:
        return self.auth_manager.is_authenticated()

    async def login(self, token: str, account: Optional[Account] = None, email: Optional[str] = None) -> None:
        """
        Sign the buyer in and load their remote collections.

        Guest lines stay in place until the fetch completes, then the remote
        collections replace them.
        """
        logger.info(f"=== LOGIN: email={email} ===")
        self.auth_manager.save_session(token=token, user_email=email, account=account)
        await self.sync()

    async def sync(self) -> None:
        """Fetch cart and wishlist from the API (app start for signed-in buyers)."""
        if not self.is_authenticated():
            logger.debug("Guest session, nothing to sync")
            return
        await asyncio.gather(self.cart.fetch(), self.wishlist.fetch())

    def logout(self) -> None:
        """Sign out; cart and wishlist are dropped locally, the RFQ list is kept."""
        self.auth_manager.clear_session()
        self.cart.logout()
        self.wishlist.logout()
        self.notifier.dismiss()
        logger.info("Logged out successfully")

    def quote(self, product: Product, quantity: int = 1) -> PriceResolution:
        """Price shown to the buyer, honouring the price-on-request gate."""
        return resolve_price(
            product,
            self.auth_manager.account,
            quantity,
            withhold_for_guests=self.settings.gate_prices,
        )

    def in_wishlist(self, product_id: str) -> bool:
        return self.wishlist.contains_product(product_id)

    async def aclose(self) -> None:
        """Close the HTTP clients."""
        await self.cart_client.aclose()
        await self.wishlist_client.aclose()
