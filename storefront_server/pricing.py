"""Tier and volume price resolution."""

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from .models import Account, PriceResolution, Product, VolumeBreak

logger = logging.getLogger(__name__)

STANDARD_TIER = "standard"
CENT = Decimal("0.01")


def select_volume_break(breaks: list[VolumeBreak], quantity: int) -> Optional[VolumeBreak]:
    """
    Pick the volume break that applies to a quantity.

    Breaks may overlap. The applicable break is the one with the largest
    min_quantity not above the quantity whose max_quantity (when set) is not
    below it.

    Example with breaks [1-49 -> 100, 50+ -> 80]:
        - quantity 10 -> "1-49"
        - quantity 60 -> "50+"
    """
    applicable = None
    for volume_break in sorted(breaks, key=lambda b: b.min_quantity):
        if volume_break.min_quantity > quantity:
            # Sorted ascending, nothing further can apply
            break
        if volume_break.covers(quantity):
            applicable = volume_break
    return applicable


def _break_price(volume_break: VolumeBreak, reference: Decimal) -> Optional[Decimal]:
    if volume_break.price is not None:
        return volume_break.price
    if volume_break.discount_percent is not None:
        discounted = reference * (1 - volume_break.discount_percent / 100)
        return discounted.quantize(CENT, rounding=ROUND_HALF_UP)
    return None


def discount_percent(base_price: Decimal, final_price: Decimal) -> int:
    """Whole-number discount of final_price against base_price, never negative."""
    if base_price <= 0:
        return 0
    percent = ((base_price - final_price) / base_price * 100).quantize(
        Decimal("1"), rounding=ROUND_HALF_UP
    )
    return max(int(percent), 0)


def resolve_price(
    product: Product,
    account: Optional[Account],
    quantity: int,
    *,
    withhold_for_guests: bool = False,
) -> PriceResolution:
    """
    Resolve the effective unit price for a product.

    Algorithm:
    1. Start from the product's base price
    2. Without an active account, return the base price (or withhold it when
       the storefront shows "price on request" to guests)
    3. A matching pricing tier below the base price becomes the candidate
    4. The applicable volume break replaces the candidate when it is lower;
       volume pricing can undercut tier pricing but never raise it
    5. Discount percent is measured against the base price

    Args:
        product: Product being priced
        account: Buyer's business account, if signed in
        quantity: Requested quantity (callers clamp to MOQ beforehand)
        withhold_for_guests: Hide prices from buyers without an active account

    Returns:
        PriceResolution with unit price, winning mechanism label and discount
    """
    base_price = product.price

    if account is None or not account.is_active:
        if withhold_for_guests:
            return PriceResolution(
                unit_price=None,
                tier_label=STANDARD_TIER,
                discount_percent=0,
                price_withheld=True,
            )
        return PriceResolution(unit_price=base_price, tier_label=STANDARD_TIER, discount_percent=0)

    price = base_price
    label = STANDARD_TIER

    for tier in product.tier_pricing:
        if tier.tier_name == account.pricing_tier:
            if tier.price < price:
                price = tier.price
                label = tier.tier_name
            break

    volume_break = select_volume_break(product.volume_pricing, quantity)
    if volume_break is not None:
        candidate = _break_price(volume_break, price)
        if candidate is not None and candidate < price:
            price = candidate
            label = volume_break.label

    resolution = PriceResolution(
        unit_price=price,
        tier_label=label,
        discount_percent=discount_percent(base_price, price),
    )
    logger.debug(
        f"Priced {product.id} x{quantity} for tier {account.pricing_tier}: "
        f"{resolution.unit_price} ({resolution.tier_label})"
    )
    return resolution


def clamp_to_moq(product: Product, quantity: int) -> int:
    """Raise a requested quantity to the product's minimum order quantity."""
    return max(quantity, product.moq)
