"""Totals aggregation for line collections."""

from decimal import Decimal
from typing import TYPE_CHECKING, Iterable

from pydantic import BaseModel

if TYPE_CHECKING:
    from .models import Line


class Totals(BaseModel):
    """Aggregated count and amount of a collection."""

    total_items: int = 0
    total_amount: Decimal = Decimal("0")


def aggregate(lines: Iterable["Line"]) -> Totals:
    """
    Recompute item count and monetary total from the lines.

    This is the only place collection totals are derived; snapshots take their
    totals from here and never store independently edited values.
    """
    total_items = 0
    total_amount = Decimal("0")
    for line in lines:
        total_items += line.quantity
        total_amount += line.unit_price_snapshot * line.quantity
    return Totals(total_items=total_items, total_amount=total_amount)
