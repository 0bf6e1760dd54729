# src/logging/context.py — v1
"""Per-request logging context (tool, intent key, request id) carried in contextvars."""

from __future__ import annotations

import contextvars
from dataclasses import dataclass
from typing import Any

# Set once per tool invocation; asyncio tasks inherit a copy.
_tool: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "tool", default=None
)
_intent_key: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "intent_key", default=None
)
_request_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "request_id", default=None
)


@dataclass
class LogContext:
    """Immutable snapshot of current logging context."""

    tool: str | None = None
    intent_key: str | None = None
    request_id: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Return non-None fields as dict for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    """Snapshot current context variables."""
    return LogContext(
        tool=_tool.get(),
        intent_key=_intent_key.get(),
        request_id=_request_id.get(),
    )


def set_request_context(
    tool: str, intent_key: str | None = None, request_id: str | None = None
) -> None:
    """Set request-level context (called once per tool invocation)."""
    _tool.set(tool)
    _intent_key.set(intent_key)
    _request_id.set(request_id)


def clear_context() -> None:
    """Reset all context variables."""
    _tool.set(None)
    _intent_key.set(None)
    _request_id.set(None)
