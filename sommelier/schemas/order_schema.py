"""Historical order models from the order-history source."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from sommelier.schemas.cart_schema import Money


class OrderLineItem(BaseModel):
    title: str
    quantity: int
    total: Money = Field(default_factory=Money)


class Order(BaseModel):
    """A completed order, newest first in every list this engine returns."""

    id: str
    order_number: str
    created_at: Optional[datetime] = None
    total: Money = Field(default_factory=Money)
    fulfillment_status: str = ""
    financial_status: str = ""
    items: list[OrderLineItem] = Field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "order_number": self.order_number,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "total_amount": self.total.formatted(),
            "fulfillment_status": self.fulfillment_status,
            "financial_status": self.financial_status,
            "items": [
                {"title": item.title, "quantity": item.quantity, "price": item.total.formatted()}
                for item in self.items
            ],
        }
