"""Collection change signals for popups and badges."""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from .models import CollectionKind, Line

logger = logging.getLogger(__name__)

CART_UPDATED = "cartUpdated"
WISHLIST_UPDATED = "wishlistUpdated"
RFQ_UPDATED = "rfqUpdated"
QUANTITY_CORRECTED = "quantityCorrected"

EVENT_FOR_KIND = {
    CollectionKind.CART: CART_UPDATED,
    CollectionKind.WISHLIST: WISHLIST_UPDATED,
}


@dataclass(frozen=True)
class ChangeEvent:
    """
    A collection-changed signal.

    The payload is advisory: consumers must re-read the collection snapshot
    rather than trust the line carried here.
    """

    name: str
    kind: Optional[CollectionKind] = None
    line: Optional[Line] = None


Listener = Callable[[ChangeEvent], None]


class ChangeNotifier:
    """Fire-and-forget broadcaster of collection changes."""

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = {}
        self.last_event: Optional[ChangeEvent] = None

    def subscribe(self, event: str, listener: Listener) -> Callable[[], None]:
        """
        Register a listener for an event name.

        Returns:
            Callable that removes the listener again
        """
        self._listeners.setdefault(event, []).append(listener)

        def unsubscribe() -> None:
            listeners = self._listeners.get(event, [])
            if listener in listeners:
                listeners.remove(listener)

        return unsubscribe

    def emit(
        self,
        event: str,
        line: Optional[Line] = None,
        kind: Optional[CollectionKind] = None,
    ) -> None:
        """Deliver an event to every listener; listener errors are only logged."""
        change = ChangeEvent(name=event, kind=kind, line=line)
        if line is not None:
            self.last_event = change

        for listener in list(self._listeners.get(event, [])):
            try:
                listener(change)
            except Exception as e:
                logger.error(f"Listener for {event} failed: {e}", exc_info=True)

    def dismiss(self) -> None:
        """Forget the last changed line once the popup is closed."""
        self.last_event = None
