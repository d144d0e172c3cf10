"""Order tools: get_order_history (served through the order cache)."""

from sommelier.dispatch.context import ToolContext
from sommelier.dispatch.messages import build_order_history_message
from sommelier.errors import OrdersUnavailableError, ToolValidationError
from sommelier.schemas.tool_schema import GetOrderHistoryParams, ToolResult


async def get_order_history(ctx: ToolContext, params: GetOrderHistoryParams) -> ToolResult:
    email = params.email or ctx.user_email
    if not email:
        raise ToolValidationError(
            "no email for order lookup",
            user_message="Please sign in so I can look up your previous orders.",
        )
    if ctx.services.orders is None:
        raise OrdersUnavailableError("order history source is not configured")

    orders = await ctx.services.orders.get(email)
    return ToolResult(
        success=True,
        message=build_order_history_message(orders),
        data={"count": len(orders), "orders": [o.to_payload() for o in orders]},
    )
