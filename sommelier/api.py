"""
HTTP surface for the dialogue engine.

    POST /tool-call   one tool call in, one tool_response/tool_error out
    GET  /tools       registered tools with their parameter schemas
    GET  /health      liveness plus the mode the engine is running in

The session id comes from the ``X-Session-Id`` header, falling back to
``custom_session_id`` or ``chat_id`` in the body. The signed-in shopper's
email, when known, arrives in ``X-User-Email``.
"""

import json
import logging
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI, HTTPException, Request

from sommelier import __version__
from sommelier.config import settings
from sommelier.dispatch import ToolDispatcher, create_dispatcher, get_registered_tools
from sommelier.schemas.tool_schema import ToolCall

logger = logging.getLogger(__name__)


def create_app(dispatcher: Optional[ToolDispatcher] = None) -> FastAPI:
    dispatcher = dispatcher or create_dispatcher(settings)

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        await dispatcher.services.start()
        logger.info("%s ready (demo_mode=%s)", settings.service_name, dispatcher.demo_mode)
        try:
            yield
        finally:
            await dispatcher.services.aclose()

    app = FastAPI(title="Sommelier Tool Dispatch", version=__version__, lifespan=lifespan)
    app.state.dispatcher = dispatcher

    @app.get("/health")
    async def health() -> dict[str, Any]:
        return {
            "ok": True,
            "service": settings.service_name,
            "version": __version__,
            "demo_mode": dispatcher.demo_mode,
            "orders_enabled": dispatcher.services.orders is not None,
        }

    @app.get("/tools")
    async def tools() -> dict[str, Any]:
        return {"tools": [spec.describe() for spec in get_registered_tools()]}

    @app.post("/tool-call")
    async def tool_call(request: Request) -> dict[str, Any]:
        try:
            body = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            raise HTTPException(status_code=400, detail="Request body must be JSON") from None
        if not isinstance(body, dict):
            raise HTTPException(status_code=400, detail="Request body must be a JSON object")

        call = ToolCall.from_wire(
            body,
            session_id=request.headers.get("x-session-id"),
            user_email=request.headers.get("x-user-email"),
        )
        response = await dispatcher.handle(call)
        return response.to_wire()

    return app
