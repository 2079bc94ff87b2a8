"""Data models for storefront collections."""

from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .totals import Totals, aggregate

NO_VARIANT = ""


class CollectionKind(str, Enum):
    """Line collections kept by the storefront."""

    CART = "cart"
    WISHLIST = "wishlist"


class AccountStatus(str, Enum):
    """Business account status."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    PENDING = "pending"
    SUSPENDED = "suspended"


class OperationState(str, Enum):
    """Lifecycle of one asynchronous collection operation."""

    IDLE = "idle"
    PENDING = "pending"
    FULFILLED = "fulfilled"
    REJECTED = "rejected"


class PricingTier(BaseModel):
    """Price offered to accounts on a named pricing tier."""

    model_config = ConfigDict(populate_by_name=True)

    tier_name: str = Field(alias="tier", description="Tier name (retailer, wholesaler, ...)")
    price: Decimal = Field(ge=0, description="Unit price for this tier")


class VolumeBreak(BaseModel):
    """Quantity-based price break."""

    model_config = ConfigDict(populate_by_name=True)

    min_quantity: int = Field(alias="minQuantity", ge=1)
    max_quantity: Optional[int] = Field(None, alias="maxQuantity")
    price: Optional[Decimal] = Field(None, ge=0)
    discount_percent: Optional[Decimal] = Field(None, alias="discount", ge=0, le=100)

    def covers(self, quantity: int) -> bool:
        """Check whether the break applies to the quantity."""
        if self.min_quantity > quantity:
            return False
        return self.max_quantity is None or self.max_quantity >= quantity

    @property
    def label(self) -> str:
        if self.max_quantity is None:
            return f"volume:{self.min_quantity}+"
        return f"volume:{self.min_quantity}-{self.max_quantity}"


class Product(BaseModel):
    """Product record as served by the storefront API."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(alias="_id", description="Product ID")
    name: str = Field(default="", description="Product name")
    price: Decimal = Field(default=Decimal("0"), ge=0, description="Base unit price")
    stock: int = Field(default=0, ge=0, description="Stock for products without variants")
    sizes: list[str] = Field(default_factory=list, description="Declared variants (sizes)")
    size_stock: dict[str, Optional[int]] = Field(
        default_factory=dict, alias="sizeStock", description="Stock per variant"
    )
    tier_pricing: list[PricingTier] = Field(default_factory=list, alias="tierPricing")
    volume_pricing: list[VolumeBreak] = Field(default_factory=list, alias="volumePricing")
    moq: int = Field(default=1, ge=1, description="Minimum order quantity")
    image: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _split_pricing_lists(cls, data: Any) -> Any:
        # The catalog API has shipped two vocabularies: tier prices under
        # "volumePricing" with volume breaks under "quantityPricing", and the
        # newer "tierPricing" / "volumePricing" pair.
        if not isinstance(data, dict):
            return data
        data = dict(data)
        tiers = list(data.pop("tierPricing", None) or [])
        tiers += data.pop("tier_pricing", None) or []
        breaks = list(data.pop("quantityPricing", None) or [])
        entries = list(data.pop("volumePricing", None) or [])
        entries += data.pop("volume_pricing", None) or []
        for entry in entries:
            is_tier = isinstance(entry, PricingTier) or (
                isinstance(entry, dict) and ("tier" in entry or "tier_name" in entry)
            )
            (tiers if is_tier else breaks).append(entry)
        data["tierPricing"] = tiers
        data["volumePricing"] = breaks
        if data.get("stock") is None:
            data.pop("stock", None)
        return data

    @field_validator("size_stock", mode="before")
    @classmethod
    def _normalize_size_stock(cls, value: Any) -> dict[str, Optional[int]]:
        """Accept a plain mapping or an ordered-map dump (pairs or key/value entries)."""
        if value is None:
            return {}
        if isinstance(value, dict):
            return {str(k): v for k, v in value.items()}
        if isinstance(value, (str, bytes)) or not hasattr(value, "__iter__"):
            raise ValueError("sizeStock must be a mapping or a list of entries")
        normalized: dict[str, Optional[int]] = {}
        for entry in value:
            if isinstance(entry, dict):
                if entry.get("key") is None:
                    raise ValueError(f"sizeStock entry without a key: {entry!r}")
                normalized[str(entry["key"])] = entry.get("value")
            elif isinstance(entry, (list, tuple)) and len(entry) == 2:
                key, stock = entry
                normalized[str(key)] = stock
            else:
                raise ValueError(f"Unreadable sizeStock entry: {entry!r}")
        return normalized

    @field_validator("volume_pricing")
    @classmethod
    def _sort_breaks(cls, value: list[VolumeBreak]) -> list[VolumeBreak]:
        return sorted(value, key=lambda b: b.min_quantity)

    @property
    def has_variants(self) -> bool:
        return bool(self.sizes) or bool(self.size_stock)


class Account(BaseModel):
    """Business account the buyer is signed in with."""

    model_config = ConfigDict(populate_by_name=True)

    status: AccountStatus = AccountStatus.INACTIVE
    pricing_tier: str = Field(default="standard", alias="pricingTier")

    @property
    def is_active(self) -> bool:
        return self.status == AccountStatus.ACTIVE


class LineKey(BaseModel):
    """Identity of a line: product plus variant."""

    model_config = ConfigDict(frozen=True)

    product_id: str
    variant: str = NO_VARIANT

    def __str__(self) -> str:
        if self.variant:
            return f"{self.product_id}[{self.variant}]"
        return self.product_id


class Line(BaseModel):
    """One line of a cart or wishlist."""

    model_config = ConfigDict(frozen=True)

    key: LineKey
    quantity: int = Field(gt=0)
    unit_price_snapshot: Decimal = Field(ge=0)
    product_snapshot: Product

    @property
    def subtotal(self) -> Decimal:
        return self.unit_price_snapshot * self.quantity


class Collection(BaseModel):
    """Immutable snapshot of a line collection."""

    model_config = ConfigDict(frozen=True)

    kind: CollectionKind
    lines: tuple[Line, ...] = ()
    total_items: int = 0
    total_amount: Decimal = Decimal("0")

    @classmethod
    def build(cls, kind: CollectionKind, lines: "list[Line] | tuple[Line, ...]") -> "Collection":
        """Create a snapshot, deriving totals from the lines."""
        seen: set[LineKey] = set()
        for line in lines:
            if line.key in seen:
                raise ValueError(f"Duplicate line for {line.key}")
            seen.add(line.key)
        totals = aggregate(lines)
        return cls(
            kind=kind,
            lines=tuple(lines),
            total_items=totals.total_items,
            total_amount=totals.total_amount,
        )

    @classmethod
    def empty(cls, kind: CollectionKind) -> "Collection":
        return cls.build(kind, [])

    def get(self, key: LineKey) -> Optional[Line]:
        for line in self.lines:
            if line.key == key:
                return line
        return None

    def __contains__(self, key: object) -> bool:
        return isinstance(key, LineKey) and self.get(key) is not None


class PriceResolution(BaseModel):
    """Effective unit price for a product, account and quantity."""

    unit_price: Optional[Decimal] = Field(None, description="None when the price is withheld")
    tier_label: str = "standard"
    discount_percent: int = 0
    price_withheld: bool = False


class QuantityCorrection(BaseModel):
    """Difference between a local line and the authoritative remote one."""

    key: LineKey
    local_quantity: int
    remote_quantity: int


class RfqItem(BaseModel):
    """Entry of a request-for-quotation list."""

    product_id: str
    name: str = ""
    image: Optional[str] = None
    moq: int = Field(default=1, ge=1)
    quantity: int = Field(gt=0)


class SessionData(BaseModel):
    """Session data for an authenticated buyer."""

    token: Optional[str] = Field(None, description="Bearer token for the storefront API")
    user_email: Optional[str] = Field(None, description="User email")
    account: Optional[Account] = Field(None, description="Business account, if any")
    is_authenticated: bool = Field(default=False, description="Authentication status")
