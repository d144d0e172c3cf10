"""
Tool dispatcher: the one entry point for every tool call.

For each call, in order:
    1. bind the tool_call_id to the logging context;
    2. look the tool up in the registry;
    3. validate parameters (JSON string or mapping) against its model;
    4. divert commerce tools to their demo twin when no store is configured;
    5. run the handler under a timeout;
    6. render the outcome as a ToolResponse.

``handle`` never raises. Internal details reach the log, never the
spoken message.
"""

import asyncio
import json
from typing import Any, Optional

from pydantic import BaseModel, ValidationError

from sommelier.cart.session_manager import CommerceBackend
from sommelier.config import AppConfig, settings
from sommelier.dispatch.context import EngineServices, ToolContext, build_services
from sommelier.dispatch.registry import ToolSpec, get_tool
from sommelier.errors import ToolError, ToolValidationError, UnknownToolError, UpstreamError
from sommelier.gateways.catalog import CatalogStore
from sommelier.logging_context import get_call_logger, reset_call_id, set_call_id
from sommelier.schemas.tool_schema import ToolCall, ToolResponse, ToolResult

logger = get_call_logger(__name__)


def _validation_message(exc: ValidationError) -> str:
    """First pydantic error as a sentence: model-level errors carry their own."""
    first = exc.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    if not location:
        return first["msg"]
    return f"{location}: {first['msg']}"


def parse_params(spec: ToolSpec, raw: Any) -> BaseModel:
    """Validate raw parameters for ``spec``. Raises ToolValidationError."""
    if isinstance(raw, (str, bytes)):
        text = raw.decode() if isinstance(raw, bytes) else raw
        if not text.strip():
            raw = {}
        else:
            try:
                raw = json.loads(text)
            except json.JSONDecodeError:
                raise ToolValidationError(
                    f"parameters for {spec.name} are not valid JSON",
                    user_message="I couldn't read the details for that request.",
                ) from None
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ToolValidationError(
            f"parameters for {spec.name} must be an object, got {type(raw).__name__}",
            user_message="I couldn't read the details for that request.",
        )
    try:
        return spec.params_model.model_validate(raw)
    except ValidationError as exc:
        message = _validation_message(exc)
        raise ToolValidationError(f"{spec.name}: {message}", user_message=message) from None


class ToolDispatcher:
    def __init__(
        self,
        services: EngineServices,
        demo_mode: bool = False,
        tool_timeout: float = 10.0,
    ) -> None:
        self.services = services
        self.demo_mode = demo_mode
        self.tool_timeout = tool_timeout

    async def handle(self, call: ToolCall) -> ToolResponse:
        token = set_call_id(call.tool_call_id)
        try:
            result = await self._dispatch(call)
        finally:
            reset_call_id(token)
        return ToolResponse.from_result(call.tool_call_id, result)

    async def _dispatch(self, call: ToolCall) -> ToolResult:
        spec = get_tool(call.name)
        if spec is None:
            logger.warning("Unknown tool requested: %r", call.name)
            return self._failure(UnknownToolError(
                f"no tool named {call.name!r}", user_message=f"Unknown tool: {call.name}"
            ))

        try:
            params = parse_params(spec, call.parameters)
        except ToolValidationError as exc:
            logger.info("Tool %s rejected parameters: %s", spec.name, exc)
            return self._failure(exc)

        handler = spec.handler
        if spec.requires_commerce and (self.demo_mode or self.services.carts is None):
            handler = spec.demo_handler or handler
            logger.debug("Tool %s running in demo mode", spec.name)

        ctx = ToolContext.for_call(self.services, call, params)
        logger.info("Tool %s called (session=%s)", spec.name, ctx.session_key)
        try:
            result = await asyncio.wait_for(handler(ctx, params), timeout=self.tool_timeout)
        except asyncio.TimeoutError:
            logger.error("Tool %s timed out after %.1fs", spec.name, self.tool_timeout)
            return ToolResult(
                success=False, message=spec.failure_message, error_code="upstream_timeout"
            )
        except UpstreamError as exc:
            logger.error("Tool %s upstream failure (%s): %s", spec.name, exc.code, exc)
            return ToolResult(success=False, message=spec.failure_message, error_code=exc.code)
        except ToolError as exc:
            logger.info("Tool %s ended with %s: %s", spec.name, exc.code, exc)
            return self._failure(exc)
        except Exception:
            logger.exception("Tool %s failed unexpectedly", spec.name)
            return ToolResult(
                success=False, message=spec.failure_message, error_code="internal_error"
            )

        logger.info("Tool %s finished (success=%s)", spec.name, result.success)
        return result

    @staticmethod
    def _failure(exc: ToolError) -> ToolResult:
        return ToolResult(
            success=False, message=exc.user_message, data=exc.data, error_code=exc.code
        )


def create_dispatcher(
    config: AppConfig = settings,
    catalog_store: Optional[CatalogStore] = None,
    commerce: Optional[CommerceBackend] = None,
) -> ToolDispatcher:
    """Build services from configuration and wrap them in a dispatcher."""
    services = build_services(config, catalog_store=catalog_store, commerce=commerce)
    demo_mode = config.demo_mode and commerce is None
    return ToolDispatcher(
        services, demo_mode=demo_mode, tool_timeout=config.dispatch.tool_timeout_sec
    )
