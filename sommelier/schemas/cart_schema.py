"""Commerce backend data models: carts, lines, and purchasable products."""

from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from sommelier.utils import format_price, to_decimal


class Money(BaseModel):
    amount: Decimal = Decimal("0.00")
    currency_code: str = "GBP"

    @field_validator("amount", mode="before")
    @classmethod
    def _coerce_amount(cls, value: Any) -> Decimal:
        return to_decimal(value) or Decimal("0.00")

    def formatted(self) -> str:
        return format_price(self.amount, self.currency_code)


class CartLine(BaseModel):
    """A line in an external cart. Owned by the commerce backend."""

    id: str
    merchandise_id: str
    quantity: int = Field(ge=1)
    unit_price: Money = Field(default_factory=Money)
    product_title: str = ""
    product_image_url: Optional[str] = None


class CartTotals(BaseModel):
    total_quantity: int = 0
    total: Money = Field(default_factory=Money)


class CartSnapshot(BaseModel):
    """Full cart state as returned by every commerce cart operation."""

    id: str
    checkout_url: str = ""
    total_quantity: int = 0
    total: Money = Field(default_factory=Money)
    lines: list[CartLine] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return self.total_quantity == 0

    def totals(self) -> CartTotals:
        return CartTotals(total_quantity=self.total_quantity, total=self.total)

    def find_line(self, line_id: Optional[str] = None, title: Optional[str] = None) -> Optional[CartLine]:
        """Find a line by exact id, else by case-insensitive title substring."""
        if line_id:
            return next((line for line in self.lines if line.id == line_id), None)
        if title:
            needle = title.strip().lower()
            return next(
                (line for line in self.lines if needle in line.product_title.lower()), None
            )
        return None

    def item_summary(self) -> str:
        return ", ".join(f"{line.quantity}x {line.product_title}" for line in self.lines)

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "checkout_url": self.checkout_url,
            "total_items": self.total_quantity,
            "total_amount": self.total.formatted(),
            "items": [
                {
                    "line_id": line.id,
                    "name": line.product_title,
                    "quantity": line.quantity,
                    "price": line.unit_price.formatted(),
                }
                for line in self.lines
            ],
        }


class ProductVariant(BaseModel):
    id: str
    title: str = ""
    price: Money = Field(default_factory=Money)
    available_for_sale: bool = False


class CommerceProduct(BaseModel):
    """A purchasable product found by free-text search."""

    id: str
    title: str
    handle: str = ""
    variants: list[ProductVariant] = Field(default_factory=list)

    @property
    def first_variant(self) -> Optional[ProductVariant]:
        return self.variants[0] if self.variants else None
