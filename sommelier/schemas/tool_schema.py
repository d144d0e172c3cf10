"""
Tool-call envelope and per-tool parameter models.

The dialogue engine delivers ``{type, tool_call_id, name, parameters}``
and expects ``{type: "tool_response", tool_call_id, content}`` back, where
``content`` is a JSON string. Each registered tool validates its own
parameters through one of the ``*Params`` models below.
"""

import json
from decimal import Decimal
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic_core import PydanticCustomError

from sommelier.schemas.wine_schema import WineType

MAX_QUANTITY = 99

# Error codes rendered as ``tool_error`` rather than ``tool_response``
INTERNAL_ERROR_CODES = frozenset({
    "unknown_tool",
    "upstream_error",
    "upstream_timeout",
    "catalog_unavailable",
    "commerce_unavailable",
    "commerce_rejected",
    "orders_unavailable",
    "internal_error",
})


class ToolCall(BaseModel):
    """A named tool invocation from the dialogue engine."""

    type: str = "tool_call"
    tool_call_id: str = "unknown"
    name: str = ""
    parameters: Any = Field(default_factory=dict)
    session_id: Optional[str] = None
    user_email: Optional[str] = None

    @classmethod
    def from_wire(
        cls,
        body: Mapping[str, Any],
        session_id: Optional[str] = None,
        user_email: Optional[str] = None,
    ) -> "ToolCall":
        """Build a ToolCall from the raw inbound JSON body.

        ``parameters`` is passed through untouched; it may still be a
        JSON-encoded string at this point.
        """
        return cls(
            type=str(body.get("type") or "tool_call"),
            tool_call_id=str(body.get("tool_call_id") or "unknown"),
            name=str(body.get("name") or body.get("tool_name") or ""),
            parameters=body.get("parameters") if body.get("parameters") is not None else {},
            session_id=session_id or body.get("custom_session_id") or body.get("chat_id"),
            user_email=user_email or body.get("user_email"),
        )


class ToolResult(BaseModel):
    """What a tool handler produces; the dispatcher adds the correlation id."""

    success: bool
    message: str
    data: dict[str, Any] = Field(default_factory=dict)
    error_code: Optional[str] = None


class ToolResponse(ToolResult):
    tool_call_id: str

    @classmethod
    def from_result(cls, tool_call_id: str, result: ToolResult) -> "ToolResponse":
        return cls(tool_call_id=tool_call_id, **result.model_dump())

    def content(self) -> str:
        payload = {"success": self.success, "message": self.message, **self.data}
        return json.dumps(payload, default=str)

    def to_wire(self) -> dict[str, Any]:
        if not self.success and self.error_code in INTERNAL_ERROR_CODES:
            return {
                "type": "tool_error",
                "tool_call_id": self.tool_call_id,
                "error": self.message,
                "code": self.error_code,
                "content": self.content(),
            }
        return {
            "type": "tool_response",
            "tool_call_id": self.tool_call_id,
            "content": self.content(),
        }


# --------------------------------------------------------------------- #
# Per-tool parameter models
# --------------------------------------------------------------------- #


class ToolParams(BaseModel):
    """Common behaviour: unknown keys ignored, blank strings treated as absent."""

    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    @model_validator(mode="before")
    @classmethod
    def _drop_blanks(cls, data: Any) -> Any:
        if isinstance(data, Mapping):
            return {
                key: value
                for key, value in data.items()
                if value is not None and not (isinstance(value, str) and not value.strip())
            }
        return data


def _require_one(*values: Any, message: str) -> None:
    if not any(v is not None for v in values):
        raise PydanticCustomError("identifier_required", message)


class SearchWinesParams(ToolParams):
    country: Optional[str] = None
    region: Optional[str] = None
    wine_type: Optional[WineType] = None
    color: Optional[WineType] = None
    max_price: Optional[Decimal] = Field(default=None, ge=0)
    min_price: Optional[Decimal] = Field(default=None, ge=0)
    style: Optional[str] = None
    grape_variety: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _parse_types(cls, data: Any) -> Any:
        if isinstance(data, Mapping):
            data = dict(data)
            for key in ("wine_type", "color"):
                parsed = WineType.parse(data.get(key))
                if parsed is not None:
                    data[key] = parsed
        return data

    @model_validator(mode="after")
    def _check_price_range(self) -> "SearchWinesParams":
        if (
            self.min_price is not None
            and self.max_price is not None
            and self.min_price > self.max_price
        ):
            raise PydanticCustomError(
                "price_range", "The minimum price can't be higher than the maximum price."
            )
        return self

    @property
    def effective_wine_type(self) -> Optional[WineType]:
        return self.wine_type or self.color


class GetWineParams(ToolParams):
    wine_id: Optional[int] = None
    wine_name: Optional[str] = None

    @model_validator(mode="after")
    def _check_identifier(self) -> "GetWineParams":
        _require_one(
            self.wine_id,
            self.wine_name,
            message="Please tell me which wine you mean, either by name or by its catalog number.",
        )
        return self


class AddToCartParams(ToolParams):
    wine_name: Optional[str] = None
    wine_id: Optional[int] = None
    quantity: int = Field(default=1, ge=1, le=MAX_QUANTITY)
    cart_id: Optional[str] = None

    @model_validator(mode="after")
    def _check_identifier(self) -> "AddToCartParams":
        _require_one(
            self.wine_id,
            self.wine_name,
            message="Either wine_name or wine_id is required. Which wine would you like to add?",
        )
        return self

    @property
    def reference(self) -> str:
        return self.wine_name or f"wine ID {self.wine_id}"


class GetCartParams(ToolParams):
    cart_id: Optional[str] = None


class CheckoutParams(ToolParams):
    cart_id: Optional[str] = None


class UpdateCartItemParams(ToolParams):
    line_id: Optional[str] = None
    wine_name: Optional[str] = None
    quantity: int = Field(ge=0, le=MAX_QUANTITY)
    cart_id: Optional[str] = None

    @model_validator(mode="after")
    def _check_identifier(self) -> "UpdateCartItemParams":
        _require_one(
            self.line_id,
            self.wine_name,
            message="Which wine in your cart should I change?",
        )
        return self


class RemoveFromCartParams(ToolParams):
    line_id: Optional[str] = None
    wine_name: Optional[str] = None
    cart_id: Optional[str] = None

    @model_validator(mode="after")
    def _check_identifier(self) -> "RemoveFromCartParams":
        _require_one(
            self.line_id,
            self.wine_name,
            message="Which wine should I take out of your cart?",
        )
        return self


class ClearCartParams(ToolParams):
    cart_id: Optional[str] = None


class GetOrderHistoryParams(ToolParams):
    email: Optional[str] = None
