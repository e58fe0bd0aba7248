from __future__ import annotations

from dataclasses import asdict, dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Iterator, List, Optional, Tuple


def _to_decimal(v: Any) -> Decimal:
    if isinstance(v, Decimal):
        return v
    # str() first so 12.5 becomes Decimal("12.5"), not its binary expansion
    return Decimal(str(v))


def quantize(v: Decimal, decimals: int = 2) -> Decimal:
    return v.quantize(Decimal(1).scaleb(-decimals), rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class CatalogItemSnapshot:
    id: str
    name: str
    description: str
    category: str
    price: Decimal
    image: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "price", _to_decimal(self.price))


@dataclass(frozen=True)
class CartLineItem:
    id: str
    name: str
    description: str
    category: str
    price: Decimal
    image: Optional[str] = None
    quantity: int = 1

    def __post_init__(self) -> None:
        object.__setattr__(self, "price", _to_decimal(self.price))

    @classmethod
    def from_snapshot(cls, item: CatalogItemSnapshot, quantity: int = 1) -> "CartLineItem":
        return cls(
            id=item.id,
            name=item.name,
            description=item.description,
            category=item.category,
            price=item.price,
            image=item.image,
            quantity=quantity,
        )

    def with_quantity(self, quantity: int) -> "CartLineItem":
        return CartLineItem(
            id=self.id,
            name=self.name,
            description=self.description,
            category=self.category,
            price=self.price,
            image=self.image,
            quantity=quantity,
        )

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["price"] = str(self.price)
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "CartLineItem":
        quantity = d["quantity"]
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise ValueError(f"invalid quantity: {quantity!r}")
        price = _to_decimal(d["price"])
        if not price.is_finite() or price < 0:
            raise ValueError(f"invalid price: {d['price']!r}")
        image = d.get("image")
        return cls(
            id=str(d["id"]),
            name=str(d["name"]),
            description=str(d.get("description") or ""),
            category=str(d.get("category") or ""),
            price=price,
            image=str(image) if image else None,
            quantity=quantity,
        )


@dataclass(frozen=True)
class CartTotals:
    subtotal: Decimal
    tax: Decimal
    total: Decimal


@dataclass(frozen=True)
class Cart:
    """Immutable, insertion-ordered collection of line items keyed by id."""

    items: Tuple[CartLineItem, ...] = field(default_factory=tuple)

    def __iter__(self) -> Iterator[CartLineItem]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)

    def __contains__(self, item_id: object) -> bool:
        return any(it.id == item_id for it in self.items)

    def get(self, item_id: str) -> Optional[CartLineItem]:
        for it in self.items:
            if it.id == item_id:
                return it
        return None

    @property
    def ids(self) -> List[str]:
        return [it.id for it in self.items]

    @property
    def item_count(self) -> int:
        return sum(it.quantity for it in self.items)

    @property
    def subtotal(self) -> Decimal:
        return sum((it.line_total for it in self.items), Decimal("0"))

    def totals(self, tax_rate: Decimal, decimals: int = 2) -> CartTotals:
        subtotal = quantize(self.subtotal, decimals)
        tax = quantize(self.subtotal * _to_decimal(tax_rate), decimals)
        return CartTotals(subtotal=subtotal, tax=tax, total=subtotal + tax)
