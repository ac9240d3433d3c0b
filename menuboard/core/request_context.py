"""Identifiers of the request being served, read by the JSON log formatter."""
from __future__ import annotations

from contextvars import ContextVar
from dataclasses import dataclass, replace


@dataclass(frozen=True)
class RequestContext:
    request_id: str | None = None
    shop_id: str | None = None
    user_id: str | None = None


_EMPTY = RequestContext()
_CONTEXT: ContextVar[RequestContext] = ContextVar("menuboard_request_context", default=_EMPTY)


def current_request_context() -> RequestContext:
    return _CONTEXT.get()


def bind_request_context(**fields: str | None) -> RequestContext:
    """Overlay the given non-empty ids on the current context."""
    updates = {name: value for name, value in fields.items() if value is not None}
    context = replace(_CONTEXT.get(), **updates)
    _CONTEXT.set(context)
    return context


def clear_request_context() -> None:
    _CONTEXT.set(_EMPTY)
