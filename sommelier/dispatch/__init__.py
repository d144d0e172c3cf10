from sommelier.dispatch.context import EngineServices, ToolContext, build_services
from sommelier.dispatch.dispatcher import ToolDispatcher, create_dispatcher, parse_params
from sommelier.dispatch.registry import ToolSpec, get_registered_tools, get_tool, register_tool

__all__ = [
    "EngineServices",
    "ToolContext",
    "ToolDispatcher",
    "ToolSpec",
    "build_services",
    "create_dispatcher",
    "get_registered_tools",
    "get_tool",
    "parse_params",
    "register_tool",
]
