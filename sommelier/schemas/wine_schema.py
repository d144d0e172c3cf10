"""Catalog wine data models."""

from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from sommelier.utils import format_price, to_decimal


class WineType(str, Enum):
    RED = "red"
    WHITE = "white"
    ROSE = "rose"
    SPARKLING = "sparkling"
    DESSERT = "dessert"

    @classmethod
    def parse(cls, value: Any) -> Optional["WineType"]:
        """Map free text ("Red", "rosé", "Rose wine") to a WineType, or None."""
        if value is None:
            return None
        if isinstance(value, WineType):
            return value
        normalized = str(value).strip().lower().replace("é", "e")
        for member in cls:
            if normalized == member.value or normalized == f"{member.value} wine":
                return member
        return None


class CatalogWine(BaseModel):
    """One catalog entry. Immutable per read; owned by the catalog store."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    winery: str = ""
    region: str = ""
    country: str = ""
    grape_variety: str = ""
    vintage: Optional[int] = None
    wine_type: WineType
    style: Optional[str] = None
    retail_price: Optional[Decimal] = None
    image_url: Optional[str] = None
    stock_quantity: Optional[int] = None
    is_active: bool = True
    tasting_notes: Optional[str] = None
    food_pairings: list[str] = Field(default_factory=list)

    @field_validator("wine_type", mode="before")
    @classmethod
    def _coerce_wine_type(cls, value: Any) -> Any:
        return WineType.parse(value) or value

    @field_validator("retail_price", mode="before")
    @classmethod
    def _coerce_price(cls, value: Any) -> Optional[Decimal]:
        return to_decimal(value)

    @field_validator("winery", "region", "country", "grape_variety", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @property
    def in_stock(self) -> bool:
        return self.stock_quantity is None or self.stock_quantity > 0

    @property
    def display_price(self) -> Optional[str]:
        if self.retail_price is None:
            return None
        return format_price(self.retail_price, "GBP")

    def summary(self) -> dict[str, Any]:
        """Compact form used in search results and ``wine_found`` fragments."""
        return {
            "id": self.id,
            "name": self.name,
            "winery": self.winery,
            "region": self.region,
            "country": self.country,
            "wine_type": self.wine_type.value,
            "price": self.display_price,
        }

    def detail(self) -> dict[str, Any]:
        """Full form used by ``get_wine``."""
        return {
            **self.summary(),
            "grape_variety": self.grape_variety,
            "vintage": self.vintage,
            "style": self.style,
            "tasting_notes": self.tasting_notes,
            "food_pairings": list(self.food_pairings),
            "stock_quantity": self.stock_quantity,
            "image_url": self.image_url,
        }
