"""Cart and wishlist synchronization between local storage and the storefront API."""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from pydantic import ValidationError

from .auth import AuthManager
from .exceptions import (
    AuthRequiredException,
    LineNotFoundException,
    LineValidationException,
    RemoteException,
    StockExceededException,
)
from .models import (
    NO_VARIANT,
    Collection,
    CollectionKind,
    Line,
    LineKey,
    OperationState,
    Product,
    QuantityCorrection,
)
from .notifier import EVENT_FOR_KIND, QUANTITY_CORRECTED, ChangeNotifier
from .pricing import resolve_price
from .stock import resolve_stock
from .storage import StoreSlot
from .storefront_client import StorefrontClient

logger = logging.getLogger(__name__)


class CollectionSync:
    """
    Keeps one line collection (cart or wishlist) in sync.

    Guests work purely against the local store. Authenticated buyers get the
    same optimistic local mutation followed by a call to the storefront API.
    Remote failures never roll back the local change; they are recorded in
    ``error`` and the key's state becomes ``rejected``.

    Operations on the same key are serialized with a per-key lock. Every local
    mutation bumps a per-key sequence number, and clear/logout/fetch bump the
    controller generation, so a response that arrives after its line was
    changed, removed or cleared is discarded.
    """

    def __init__(
        self,
        kind: CollectionKind,
        slot: StoreSlot,
        auth_manager: AuthManager,
        notifier: ChangeNotifier,
        remote: Optional[StorefrontClient] = None,
    ) -> None:
        self.kind = kind
        self.auth_manager = auth_manager
        self.notifier = notifier
        self.remote = remote
        self._slot = slot
        self._locks: dict[LineKey, asyncio.Lock] = {}
        self._lock_users: dict[LineKey, int] = {}
        self._fetch_lock = asyncio.Lock()
        self._sequence: dict[LineKey, int] = {}
        self._states: dict[LineKey, OperationState] = {}
        self._generation = 0
        self.fetch_state = OperationState.IDLE
        self.error: Optional[str] = None
        self.last_corrections: list[QuantityCorrection] = []
        self._collection = self._load()

    @property
    def collection(self) -> Collection:
        """Current snapshot; safe to hand out, snapshots are immutable."""
        return self._collection

    @property
    def event_name(self) -> str:
        return EVENT_FOR_KIND[self.kind]

    def state(self, key: LineKey) -> OperationState:
        return self._states.get(key, OperationState.IDLE)

    def contains_product(self, product_id: str) -> bool:
        return any(line.key.product_id == product_id for line in self._collection.lines)

    def key_for(self, product: Product, variant: Optional[str] = None) -> LineKey:
        """Line key for a product; variants only count for cart products that declare them."""
        if self.kind == CollectionKind.WISHLIST or not product.has_variants:
            return LineKey(product_id=product.id, variant=NO_VARIANT)
        return LineKey(product_id=product.id, variant=variant or NO_VARIANT)

    # Local state helpers

    def _load(self) -> Collection:
        """Rebuild the collection from the local store."""
        lines: list[Line] = []
        seen: set[LineKey] = set()
        for raw in self._slot.load():
            try:
                line = Line.model_validate(raw)
            except ValidationError as e:
                logger.warning(f"Dropping unreadable stored {self.kind.value} line: {e}")
                continue
            if line.key in seen:
                logger.warning(f"Dropping duplicate stored {self.kind.value} line {line.key}")
                continue
            seen.add(line.key)
            lines.append(line)
        logger.info(f"Loaded {len(lines)} {self.kind.value} line(s) from local storage")
        return Collection.build(self.kind, lines)

    def _commit(self, lines: list[Line]) -> None:
        """Replace the snapshot (totals via the aggregator) and persist it."""
        self._collection = Collection.build(self.kind, lines)
        self._slot.save(self._collection.lines)

    def _put(self, line: Line) -> None:
        lines = list(self._collection.lines)
        for index, current in enumerate(lines):
            if current.key == line.key:
                lines[index] = line
                break
        else:
            lines.append(line)
        self._commit(lines)

    def _drop(self, key: LineKey) -> Optional[Line]:
        removed = self._collection.get(key)
        self._commit([line for line in self._collection.lines if line.key != key])
        return removed

    def _price_line(self, product: Product, key: LineKey, quantity: int) -> Line:
        resolution = resolve_price(product, self.auth_manager.account, quantity)
        return Line(
            key=key,
            quantity=quantity,
            unit_price_snapshot=resolution.unit_price,
            product_snapshot=product,
        )

    @asynccontextmanager
    async def _key_lock(self, key: LineKey) -> AsyncIterator[None]:
        """
        Hold the per-key lock.

        When the last holder or waiter leaves and the key is no longer in the
        collection, its lock, sequence and settled state are dropped. Remote
        calls are awaited under the lock, so no response can still be in flight.
        A rejected state is kept until clear or logout so the error stays visible.
        """
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._lock_users[key] = self._lock_users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[key] -= 1
            if not self._lock_users[key]:
                del self._lock_users[key]
                if key not in self._collection:
                    self._forget(key)

    def _forget(self, key: LineKey) -> None:
        self._locks.pop(key, None)
        self._sequence.pop(key, None)
        if self._states.get(key) != OperationState.REJECTED:
            self._states.pop(key, None)

    def _forget_idle_keys(self) -> None:
        for key in [key for key in self._locks if key not in self._lock_users and key not in self._collection]:
            self._forget(key)

    def _next_sequence(self, key: LineKey) -> int:
        self._sequence[key] = self._sequence.get(key, 0) + 1
        return self._sequence[key]

    def _is_current(self, key: LineKey, sequence: int, generation: int) -> bool:
        return generation == self._generation and self._sequence.get(key) == sequence

    def _remote_enabled(self) -> bool:
        return self.remote is not None and self.auth_manager.is_authenticated()

    def _reject(self, key: Optional[LineKey], error: RemoteException) -> None:
        self.error = error.message
        if key is not None:
            self._states[key] = OperationState.REJECTED
        logger.warning(f"{self.kind.value} remote call failed, keeping local state: {error.message}")

    # Operations

    async def fetch(self) -> Collection:
        """
        Replace local state with the authoritative remote collection.

        No merge happens: guest lines that were never synced are dropped.
        Quantity differences for keys present on both sides are recorded in
        ``last_corrections`` and announced with a quantityCorrected event.

        Raises:
            AuthRequiredException: For guests or when the API refuses the token
        """
        if not self._remote_enabled():
            raise AuthRequiredException(f"fetch {self.kind.value}")

        async with self._fetch_lock:
            generation = self._generation
            self.fetch_state = OperationState.PENDING
            self.error = None
            try:
                items = await self.remote.fetch()
            except AuthRequiredException as e:
                self.fetch_state = OperationState.REJECTED
                self.error = e.message
                raise
            except RemoteException as e:
                self.fetch_state = OperationState.REJECTED
                self._reject(None, e)
                return self._collection

            if generation != self._generation:
                logger.info(f"Discarding stale {self.kind.value} fetch response")
                self.fetch_state = OperationState.FULFILLED
                return self._collection

            lines = self._lines_from_remote(items)
            previous = {line.key: line.quantity for line in self._collection.lines}
            corrections = [
                QuantityCorrection(
                    key=line.key,
                    local_quantity=previous[line.key],
                    remote_quantity=line.quantity,
                )
                for line in lines
                if line.key in previous and previous[line.key] != line.quantity
            ]

            self._generation += 1
            self._commit(lines)
            self._forget_idle_keys()
            self.last_corrections = corrections
            self.fetch_state = OperationState.FULFILLED
            logger.info(
                f"Fetched {self.kind.value}: {self._collection.total_items} item(s), "
                f"total={self._collection.total_amount}"
            )

        self.notifier.emit(self.event_name, kind=self.kind)
        for correction in corrections:
            logger.warning(
                f"{self.kind.value} quantity for {correction.key} corrected by server: "
                f"{correction.local_quantity} -> {correction.remote_quantity}"
            )
            self.notifier.emit(QUANTITY_CORRECTED, line=self._collection.get(correction.key), kind=self.kind)
        return self._collection

    def _lines_from_remote(self, items: list[dict[str, Any]]) -> list[Line]:
        lines: list[Line] = []
        seen: set[LineKey] = set()
        # The cart payload omits sizes and sizeStock; keep what the local snapshot knew
        known_variants = {
            line.key.product_id: line.product_snapshot
            for line in self._collection.lines
            if line.product_snapshot.has_variants
        }
        for item in items:
            try:
                product = Product.model_validate(item)
                quantity = 1 if self.kind == CollectionKind.WISHLIST else int(item.get("quantity") or 0)
            except (ValidationError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed remote {self.kind.value} line: {e}")
                continue
            if quantity <= 0:
                continue
            # Remote lines carry their size even when the product payload omits sizes
            if self.kind == CollectionKind.WISHLIST:
                key = LineKey(product_id=product.id)
            else:
                key = LineKey(product_id=product.id, variant=str(item.get("size") or NO_VARIANT))
            if key in seen:
                logger.warning(f"Skipping duplicate remote {self.kind.value} line {key}")
                continue
            seen.add(key)
            known = known_variants.get(product.id)
            if key.variant and not product.has_variants and known is not None:
                product = product.model_copy(update={"sizes": known.sizes, "size_stock": known.size_stock})
            lines.append(self._price_line(product, key, quantity))
        return lines

    async def add(self, product: Product, variant: Optional[str] = None, quantity: int = 1) -> Collection:
        """
        Add a product, or increase the quantity of its existing line.

        Args:
            product: Product record with current stock and pricing
            variant: Variant selector (size), required for products with variants
            quantity: Quantity to add (callers clamp to MOQ beforehand)

        Raises:
            LineValidationException: Non-positive quantity or missing variant
            StockExceededException: Cumulative quantity above available stock
            AuthRequiredException: The API refused the session token
        """
        if quantity is None or quantity <= 0:
            raise LineValidationException("Quantity must be greater than zero", product_id=product.id)

        key = self.key_for(product, variant)
        async with self._key_lock(key):
            self.error = None
            existing = self._collection.get(key)

            if self.kind == CollectionKind.WISHLIST:
                if existing is not None:
                    logger.info(f"{product.id} already in wishlist")
                    return self._collection
                new_quantity = 1
            else:
                available = resolve_stock(product, key.variant)
                new_quantity = (existing.quantity if existing else 0) + quantity
                if new_quantity > available:
                    raise StockExceededException(product.id, available, key.variant or None)

            line = self._price_line(product, key, new_quantity)
            sequence = self._next_sequence(key)
            generation = self._generation
            self._put(line)
            logger.info(f"Added {key} to {self.kind.value}, quantity now {new_quantity}")
            self.notifier.emit(self.event_name, line=line, kind=self.kind)

            if not self._remote_enabled():
                self._states[key] = OperationState.FULFILLED
                return self._collection

            self._states[key] = OperationState.PENDING
            try:
                remote_quantity = 1 if self.kind == CollectionKind.WISHLIST else quantity
                payload = await self.remote.add(product.id, key.variant, remote_quantity)
            except AuthRequiredException as e:
                self._reject(key, e)
                raise
            except RemoteException as e:
                self._reject(key, e)
                return self._collection

            self._states[key] = OperationState.FULFILLED
            self._apply_remote_quantity(key, payload, sequence, generation)
            return self._collection

    def _apply_remote_quantity(
        self, key: LineKey, payload: Optional[dict[str, Any]], sequence: int, generation: int
    ) -> None:
        """Let a quantity reported by the server overwrite the optimistic one."""
        if self.kind == CollectionKind.WISHLIST or not payload or "quantity" not in payload:
            return
        if not self._is_current(key, sequence, generation):
            logger.info(f"Discarding stale add response for {key}")
            return
        current = self._collection.get(key)
        if current is None:
            return
        try:
            remote_quantity = int(payload["quantity"])
        except (TypeError, ValueError):
            logger.warning(f"Ignoring non-numeric quantity in add response for {key}")
            return
        if remote_quantity == current.quantity:
            return

        logger.warning(f"Server corrected {key} quantity: {current.quantity} -> {remote_quantity}")
        if remote_quantity <= 0:
            self._drop(key)
            self.notifier.emit(self.event_name, kind=self.kind)
            return
        line = self._price_line(current.product_snapshot, key, remote_quantity)
        self._put(line)
        self.notifier.emit(self.event_name, line=line, kind=self.kind)

    async def update_quantity(self, key: LineKey, quantity: int) -> Collection:
        """
        Set the quantity of a line; zero or less removes it.

        Raises:
            LineNotFoundException: No line for the key
            LineValidationException: Positive quantity on a wishlist line
            StockExceededException: Quantity above available stock
        """
        async with self._key_lock(key):
            self.error = None
            line = self._collection.get(key)
            if quantity <= 0:
                return await self._remove_locked(key)
            if line is None:
                raise LineNotFoundException(key)
            if self.kind == CollectionKind.WISHLIST:
                raise LineValidationException("Wishlist lines have no quantity", product_id=key.product_id)

            if key.variant and not line.product_snapshot.has_variants:
                # Sized line without variant stock: only the held quantity is known to exist
                available = line.quantity
            else:
                available = resolve_stock(line.product_snapshot, key.variant)
            if quantity > available:
                raise StockExceededException(key.product_id, available, key.variant or None)

            updated = self._price_line(line.product_snapshot, key, quantity)
            self._next_sequence(key)
            self._put(updated)
            logger.info(f"Updated {key} quantity to {quantity}")
            self.notifier.emit(self.event_name, line=updated, kind=self.kind)

            if not self._remote_enabled():
                self._states[key] = OperationState.FULFILLED
                return self._collection

            self._states[key] = OperationState.PENDING
            try:
                await self.remote.update_quantity(key.product_id, key.variant, quantity)
            except AuthRequiredException as e:
                self._reject(key, e)
                raise
            except RemoteException as e:
                self._reject(key, e)
                return self._collection
            self._states[key] = OperationState.FULFILLED
            return self._collection

    async def remove(self, key: LineKey) -> Collection:
        """Remove a line; the local removal stands even if the API call fails."""
        async with self._key_lock(key):
            self.error = None
            return await self._remove_locked(key)

    async def _remove_locked(self, key: LineKey) -> Collection:
        self._next_sequence(key)
        removed = self._drop(key)
        if removed is not None:
            logger.info(f"Removed {key} from {self.kind.value}")
        self.notifier.emit(self.event_name, kind=self.kind)

        if not self._remote_enabled():
            self._states[key] = OperationState.FULFILLED
            return self._collection

        self._states[key] = OperationState.PENDING
        try:
            await self.remote.remove(key.product_id, key.variant)
        except AuthRequiredException as e:
            self._reject(key, e)
            raise
        except RemoteException as e:
            self._reject(key, e)
            return self._collection
        self._states[key] = OperationState.FULFILLED
        return self._collection

    async def clear(self) -> Collection:
        """
        Empty the collection.

        Local state is cleared and the stored copy deleted before the API is
        called, so a cleared collection never reappears even if the call fails.
        """
        self.error = None
        self._reset_local()
        logger.info(f"Cleared {self.kind.value}")
        self.notifier.emit(self.event_name, kind=self.kind)

        if self._remote_enabled():
            try:
                await self.remote.clear()
            except AuthRequiredException as e:
                self._reject(None, e)
                raise
            except RemoteException as e:
                self._reject(None, e)
        return self._collection

    def logout(self) -> None:
        """Drop the collection locally when the buyer signs out."""
        self._reset_local()
        self.error = None
        self.last_corrections = []
        self.fetch_state = OperationState.IDLE
        self.notifier.emit(self.event_name, kind=self.kind)

    def _reset_local(self) -> None:
        self._generation += 1
        self._collection = Collection.empty(self.kind)
        self._slot.remove()
        self._states.clear()
        self._forget_idle_keys()
