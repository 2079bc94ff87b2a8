"""Unit tests for the local store."""

import json
import os

import pytest

from storefront_server.exceptions import StoreOwnershipError
from storefront_server.models import RfqItem
from storefront_server.storage import LocalStore


class TestLocalStore:

    def test_creates_state_dir(self, tmp_path):
        state_dir = tmp_path / "nested" / "state"
        LocalStore(str(state_dir))
        assert state_dir.is_dir()

    def test_single_writer_per_key(self, store):
        store.claim("cart")
        with pytest.raises(StoreOwnershipError) as exc_info:
            store.claim("cart")
        assert exc_info.value.key == "cart"

    def test_release_allows_new_owner(self, store):
        slot = store.claim("cart")
        slot.release()
        assert store.claim("cart").key == "cart"

    def test_missing_key_reads_empty(self, store):
        assert store.read("wishlist") == []

    def test_save_and_load(self, store):
        slot = store.claim("rfqItems")
        slot.save([RfqItem(product_id="p", quantity=5, moq=5)])

        assert os.path.exists(slot.path)
        assert oct(os.stat(slot.path).st_mode & 0o777) == "0o600"
        assert slot.load() == [
            {"product_id": "p", "name": "", "image": None, "moq": 5, "quantity": 5}
        ]

    def test_corrupt_file_reads_empty(self, store):
        with open(store.path_for("cart"), "w") as f:
            f.write("{not json")
        assert store.read("cart") == []

    def test_non_list_reads_empty(self, store):
        with open(store.path_for("cart"), "w") as f:
            json.dump({"items": []}, f)
        assert store.read("cart") == []

    def test_remove(self, store):
        slot = store.claim("cart")
        slot.save([])
        slot.remove()
        assert not os.path.exists(slot.path)
        # removing twice is fine
        slot.remove()
