"""Tool-call correlation for log records.

The dispatcher binds the dialogue engine's ``tool_call_id`` for the
duration of one call; every logger obtained through ``get_call_logger``
stamps it on its records as ``call_id``, so one call can be followed from
the dispatcher through the resolver, cart manager, and gateways.

Usage:
    token = set_call_id("toolu_01abc")
    try:
        get_call_logger(__name__).info("Adding line")  # record.call_id == "toolu_01abc"
    finally:
        reset_call_id(token)
"""

import logging
from contextvars import ContextVar, Token

NO_CALL_ID = "-"

_current_call: ContextVar[str] = ContextVar("current_tool_call", default=NO_CALL_ID)


def set_call_id(call_id: str) -> Token:
    return _current_call.set(call_id)


def reset_call_id(token: Token) -> None:
    """Restore whatever call id was bound before ``set_call_id``."""
    _current_call.reset(token)


def get_call_id() -> str:
    return _current_call.get()


class CallIdFilter(logging.Filter):
    """Stamps ``record.call_id`` with the tool call being handled."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.call_id = _current_call.get()  # type: ignore[attr-defined]
        return True


def get_call_logger(name: str) -> logging.Logger:
    """``logging.getLogger(name)`` with a single CallIdFilter installed."""
    named = logging.getLogger(name)
    if not any(isinstance(existing, CallIdFilter) for existing in named.filters):
        named.addFilter(CallIdFilter())
    return named
