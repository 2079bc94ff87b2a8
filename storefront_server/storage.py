"""Persistent local storage for guest collections."""

import json
import logging
import os
from pathlib import Path
from typing import Any, Iterable, Optional

from pydantic import BaseModel

from .exceptions import StoreOwnershipError

logger = logging.getLogger(__name__)


class StoreSlot:
    """Write handle for one storage key, held by exactly one owner."""

    def __init__(self, store: "LocalStore", key: str) -> None:
        self.store = store
        self.key = key

    @property
    def path(self) -> str:
        return self.store.path_for(self.key)

    def load(self) -> list[dict[str, Any]]:
        """Load the stored JSON array, or an empty list."""
        return self.store.read(self.key)

    def save(self, items: Iterable[BaseModel]) -> None:
        """Persist items as a JSON array."""
        data = [item.model_dump(mode="json") for item in items]
        with open(self.path, "w") as f:
            json.dump(data, f)
        # Set restrictive permissions on state file
        os.chmod(self.path, 0o600)

    def remove(self) -> None:
        """Delete the stored collection."""
        if os.path.exists(self.path):
            os.remove(self.path)
            logger.info(f"Removed stored {self.key}")

    def release(self) -> None:
        self.store.release(self.key)


class LocalStore:
    """
    Key/value persistence surviving restarts.

    Each key is a JSON file in the state directory. Reads are open to anyone,
    writes go through a StoreSlot obtained with claim(), which is handed out
    once per key.
    """

    def __init__(self, state_dir: Optional[str] = None) -> None:
        """
        Initialize the local store.

        Args:
            state_dir: Directory for state files. Defaults to ~/.storefront
        """
        if state_dir is None:
            state_dir = str(Path.home() / ".storefront")
        self.state_dir = state_dir
        os.makedirs(self.state_dir, exist_ok=True)
        self._owners: set[str] = set()

    def path_for(self, key: str) -> str:
        return os.path.join(self.state_dir, f"{key}.json")

    def claim(self, key: str) -> StoreSlot:
        """
        Take ownership of a storage key.

        Raises:
            StoreOwnershipError: If the key already has an owner
        """
        if key in self._owners:
            raise StoreOwnershipError(key)
        self._owners.add(key)
        return StoreSlot(self, key)

    def release(self, key: str) -> None:
        self._owners.discard(key)

    def read(self, key: str) -> list[dict[str, Any]]:
        """Read a stored JSON array; a missing or corrupted file reads as empty."""
        path = self.path_for(key)
        if not os.path.exists(path):
            return []
        try:
            with open(path, "r") as f:
                data = json.load(f)
        except (json.JSONDecodeError, ValueError) as e:
            # If file is corrupted, start fresh
            logger.warning(f"Could not load stored {key}: {e}")
            return []
        if not isinstance(data, list):
            logger.warning(f"Stored {key} is not a list, ignoring")
            return []
        return data
