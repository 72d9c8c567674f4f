"""Handler descriptors stored by the registry."""

from __future__ import annotations

import itertools
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable

if TYPE_CHECKING:
    from pbus_core.middleware import Middleware

__all__ = ["HandlerId", "HandlerEntry", "next_handler_id"]

_ids = itertools.count(1)


@dataclass(frozen=True)
class HandlerId:
    """Opaque identity minted once per registration."""

    value: int
    event: str

    def __str__(self) -> str:
        return f"pbus-handler:{self.event}#{self.value}"


def next_handler_id(event: str) -> HandlerId:
    """Mint an identity that is unique for the lifetime of the process."""

    return HandlerId(value=next(_ids), event=event)


@dataclass(frozen=True)
class HandlerEntry:
    """Immutable descriptor for one registered handler."""

    id: HandlerId
    event: str
    priority: int
    need_await: bool
    original_callback: Callable[..., Any]
    callback: Callable[[Any], Awaitable[None]]
    middleware: Middleware | None = None
