"""
Pytest configuration and fixtures for tests.

Every fixture keeps its state under pytest's tmp_path, so no test touches
~/.storefront.
"""

from decimal import Decimal

import pytest

from storefront_server.auth import AuthManager
from storefront_server.config import Settings
from storefront_server.models import Account, AccountStatus, CollectionKind, Product
from storefront_server.notifier import ChangeNotifier
from storefront_server.storage import LocalStore
from storefront_server.storefront_client import StorefrontClient
from storefront_server.sync import CollectionSync

API_URL = "https://shop.test/api"
TOKEN = "test-token"


@pytest.fixture
def state_dir(tmp_path):
    return str(tmp_path / "state")


@pytest.fixture
def store(state_dir):
    return LocalStore(state_dir)


@pytest.fixture
def notifier():
    return ChangeNotifier()


@pytest.fixture
def guest_auth(tmp_path):
    """Auth manager without a session."""
    return AuthManager(str(tmp_path / "session.json"))


@pytest.fixture
def active_account():
    return Account(status=AccountStatus.ACTIVE, pricing_tier="wholesaler")


@pytest.fixture
def buyer_auth(tmp_path, active_account):
    """Auth manager for a signed-in wholesaler."""
    auth = AuthManager(str(tmp_path / "session.json"))
    auth.save_session(token=TOKEN, user_email="buyer@example.com", account=active_account)
    return auth


@pytest.fixture
def settings(state_dir):
    return Settings(api_url=API_URL, state_dir=state_dir)


@pytest.fixture
def guest_cart(store, guest_auth, notifier):
    return CollectionSync(CollectionKind.CART, store.claim("cart"), guest_auth, notifier)


@pytest.fixture
def guest_wishlist(store, guest_auth, notifier):
    return CollectionSync(CollectionKind.WISHLIST, store.claim("wishlist"), guest_auth, notifier)


@pytest.fixture
def remote_cart(store, buyer_auth, notifier):
    """Cart of a signed-in buyer talking to API_URL (mock it with respx)."""
    client = StorefrontClient(API_URL, buyer_auth, kind=CollectionKind.CART)
    return CollectionSync(CollectionKind.CART, store.claim("cart"), buyer_auth, notifier, remote=client)


@pytest.fixture
def remote_wishlist(store, buyer_auth, notifier):
    client = StorefrontClient(API_URL, buyer_auth, kind=CollectionKind.WISHLIST)
    return CollectionSync(CollectionKind.WISHLIST, store.claim("wishlist"), buyer_auth, notifier, remote=client)


@pytest.fixture
def shoe():
    """Product with per-size stock: size 7 has two pairs, size 8 is sold out."""
    return Product.model_validate({
        "_id": "P1",
        "name": "Running Shoe",
        "price": 100,
        "sizes": ["7", "8", "9"],
        "sizeStock": {"7": 2, "8": 0},
    })


@pytest.fixture
def bulk_product():
    """Product with tier and volume pricing."""
    return Product.model_validate({
        "_id": "P2",
        "name": "Cotton T-Shirt",
        "price": 120,
        "stock": 500,
        "tierPricing": [{"tier": "wholesaler", "price": 110}, {"tier": "retailer", "price": 115}],
        "volumePricing": [{"minQuantity": 1, "price": 100}, {"minQuantity": 50, "price": 80}],
    })


@pytest.fixture
def mug():
    """Plain product without variants."""
    return Product.model_validate({
        "_id": "P3",
        "name": "Mug",
        "price": Decimal("12.50"),
        "stock": 10,
    })
