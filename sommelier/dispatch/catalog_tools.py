"""Catalog tools: search_wines and get_wine."""

from sommelier.dispatch.context import ToolContext
from sommelier.dispatch.messages import build_search_message, build_wine_detail_message
from sommelier.errors import WineNotFoundError
from sommelier.logging_context import get_call_logger
from sommelier.schemas.tool_schema import GetWineParams, SearchWinesParams, ToolResult

logger = get_call_logger(__name__)


async def search_wines(ctx: ToolContext, params: SearchWinesParams) -> ToolResult:
    """Find up to five active wines matching the shopper's constraints."""
    wines = await ctx.services.resolver.search(params)
    logger.info("search_wines matched %d wines", len(wines))
    return ToolResult(
        success=True,
        message=build_search_message(wines),
        data={"count": len(wines), "wines": [w.summary() for w in wines]},
    )


async def get_wine(ctx: ToolContext, params: GetWineParams) -> ToolResult:
    """Full details for one wine, by catalog id or spoken name."""
    result = await ctx.services.resolver.resolve(by_id=params.wine_id, by_name=params.wine_name)
    wine = result.wine
    if wine is None:
        reference = params.wine_name or f"wine ID {params.wine_id}"
        raise WineNotFoundError(
            f"no catalog match for {reference!r}",
            user_message=f'I couldn\'t find "{reference}" in our catalog.',
        )
    return ToolResult(
        success=True,
        message=build_wine_detail_message(wine),
        data={
            "wine": wine.detail(),
            "match": result.status.value,
            "other_matches": [w.summary() for w in result.candidates[1:]],
        },
    )
