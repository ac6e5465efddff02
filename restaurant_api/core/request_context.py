"""Per-request identifiers that every log line picks up."""
from __future__ import annotations

from contextvars import ContextVar
from dataclasses import dataclass, replace


@dataclass(frozen=True)
class RequestContext:
    request_id: str | None = None
    restaurant_id: str | None = None
    user_id: str | None = None


_EMPTY = RequestContext()
_CURRENT: ContextVar[RequestContext] = ContextVar("request_context", default=_EMPTY)


def current_request_context() -> RequestContext:
    return _CURRENT.get()


def set_request_context(**fields: str | None) -> RequestContext:
    """Overlay the given identifiers; ``None`` keeps what is already bound."""
    updates = {name: value for name, value in fields.items() if value is not None}
    context = replace(_CURRENT.get(), **updates)
    _CURRENT.set(context)
    return context


def clear_request_context() -> None:
    _CURRENT.set(_EMPTY)
