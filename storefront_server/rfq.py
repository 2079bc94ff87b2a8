"""Request-for-quotation list kept locally for B2B buyers."""

import logging
from typing import Optional

from pydantic import ValidationError

from .exceptions import LineNotFoundException, LineValidationException
from .models import Product, RfqItem
from .notifier import RFQ_UPDATED, ChangeNotifier
from .storage import StoreSlot

logger = logging.getLogger(__name__)


class RfqList:
    """
    Products a buyer wants quoted.

    The list never talks to the storefront API; it lives in the local store
    and is submitted as a whole by the inquiry flow.
    """

    def __init__(self, slot: StoreSlot, notifier: ChangeNotifier) -> None:
        self._slot = slot
        self.notifier = notifier
        self._items: list[RfqItem] = self._load()

    def _load(self) -> list[RfqItem]:
        items = []
        for raw in self._slot.load():
            try:
                items.append(RfqItem.model_validate(raw))
            except ValidationError as e:
                logger.warning(f"Dropping unreadable RFQ item: {e}")
        return items

    def _save(self) -> None:
        self._slot.save(self._items)
        self.notifier.emit(RFQ_UPDATED)

    @property
    def items(self) -> tuple[RfqItem, ...]:
        return tuple(self._items)

    def get(self, product_id: str) -> Optional[RfqItem]:
        for item in self._items:
            if item.product_id == product_id:
                return item
        return None

    def add(self, product: Product) -> RfqItem:
        """
        Add a product, starting at its minimum order quantity.

        Raises:
            LineValidationException: If the product is already listed
        """
        if self.get(product.id) is not None:
            raise LineValidationException("Product already in RFQ list", product_id=product.id)

        item = RfqItem(
            product_id=product.id,
            name=product.name,
            image=product.image,
            moq=product.moq,
            quantity=product.moq,
        )
        self._items.append(item)
        logger.info(f"Added {product.id} to RFQ list (quantity {item.quantity})")
        self._save()
        return item

    def update_quantity(self, product_id: str, quantity: int) -> Optional[RfqItem]:
        """
        Change the requested quantity; zero or less removes the item.

        Raises:
            LineNotFoundException: If the product is not listed
            LineValidationException: If the quantity is below the MOQ
        """
        item = self.get(product_id)
        if item is None:
            raise LineNotFoundException(product_id)
        if quantity <= 0:
            self.remove(product_id)
            return None
        if quantity < item.moq:
            raise LineValidationException(
                f"Minimum order quantity is {item.moq} units", product_id=product_id
            )

        updated = item.model_copy(update={"quantity": quantity})
        self._items = [updated if i.product_id == product_id else i for i in self._items]
        self._save()
        return updated

    def remove(self, product_id: str) -> None:
        self._items = [i for i in self._items if i.product_id != product_id]
        logger.info(f"Removed {product_id} from RFQ list")
        self._save()

    def clear(self) -> None:
        self._items = []
        self._slot.remove()
        self.notifier.emit(RFQ_UPDATED)
