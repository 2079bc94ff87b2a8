"""Unit tests for the change notifier."""

from decimal import Decimal

from storefront_server.models import CollectionKind, Line, LineKey, Product
from storefront_server.notifier import CART_UPDATED, RFQ_UPDATED, ChangeNotifier


def sample_line() -> Line:
    return Line(
        key=LineKey(product_id="p"),
        quantity=1,
        unit_price_snapshot=Decimal("1"),
        product_snapshot=Product.model_validate({"_id": "p", "price": 1}),
    )


class TestChangeNotifier:

    def test_subscribe_and_emit(self):
        notifier = ChangeNotifier()
        received = []
        notifier.subscribe(CART_UPDATED, received.append)

        notifier.emit(CART_UPDATED, kind=CollectionKind.CART)
        notifier.emit(RFQ_UPDATED)

        assert [e.name for e in received] == [CART_UPDATED]
        assert received[0].kind == CollectionKind.CART

    def test_unsubscribe(self):
        notifier = ChangeNotifier()
        received = []
        unsubscribe = notifier.subscribe(CART_UPDATED, received.append)
        unsubscribe()
        unsubscribe()
        notifier.emit(CART_UPDATED)
        assert received == []

    def test_failing_listener_does_not_propagate(self, caplog):
        notifier = ChangeNotifier()
        received = []

        def broken(event):
            raise RuntimeError("boom")

        notifier.subscribe(CART_UPDATED, broken)
        notifier.subscribe(CART_UPDATED, received.append)
        notifier.emit(CART_UPDATED)

        assert len(received) == 1
        assert "boom" in caplog.text

    def test_last_event_tracks_changed_line(self):
        notifier = ChangeNotifier()
        line = sample_line()

        notifier.emit(CART_UPDATED, line=line, kind=CollectionKind.CART)
        notifier.emit(CART_UPDATED, kind=CollectionKind.CART)
        assert notifier.last_event.line == line

        notifier.dismiss()
        assert notifier.last_event is None
