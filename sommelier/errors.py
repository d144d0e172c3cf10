"""
Error taxonomy for tool handling.

Every error raised inside a tool handler carries a machine-readable
``code`` and a ``user_message`` that is safe to speak aloud. Internal
details stay in the exception's ``str()`` and only ever reach the logs.
"""

from typing import Any, Optional


class ToolError(Exception):
    """Base class for failures that end a tool call with ``success: false``."""

    code = "tool_error"
    default_message = "Something went wrong. Please try again."

    def __init__(
        self,
        detail: str = "",
        user_message: Optional[str] = None,
        data: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(detail or user_message or self.default_message)
        self.user_message = user_message or self.default_message
        self.data = data or {}


class ToolValidationError(ToolError):
    """Missing or malformed parameters. Raised before any upstream call."""

    code = "validation_error"
    default_message = "I didn't get all the details I need for that."


class UnknownToolError(ToolError):
    code = "unknown_tool"


class NotFoundError(ToolError):
    """Something the shopper referred to does not exist in a store."""

    code = "not_found"
    default_message = "I couldn't find that."


class WineNotFoundError(NotFoundError):
    code = "wine_not_found"


class CartEmptyError(NotFoundError):
    """A cart operation needs an active cart but the session has none."""

    code = "cart_empty"
    default_message = "Your cart is empty. Tell me what wines you would like to add."


class StaleCartError(ToolError):
    """The commerce backend no longer recognises the session's cart id."""

    code = "stale_cart"
    default_message = "Your cart has expired. Let's start a fresh one."


class CartNotFoundError(StaleCartError):
    def __init__(self, cart_id: str, detail: str = "") -> None:
        super().__init__(detail or f"Cart not found: {cart_id}")
        self.cart_id = cart_id


class UpstreamError(ToolError):
    """Network failure, timeout, or non-2xx answer from a backend."""

    code = "upstream_error"


class CatalogUnavailableError(UpstreamError):
    code = "catalog_unavailable"


class CommerceUnavailableError(UpstreamError):
    code = "commerce_unavailable"


class CommerceRequestError(UpstreamError):
    """The commerce backend rejected a well-formed request (``userErrors``)."""

    code = "commerce_rejected"


class OrdersUnavailableError(UpstreamError):
    code = "orders_unavailable"


class InvalidTransitionError(Exception):
    """Raised when a cart state transition is not valid from the current state."""
