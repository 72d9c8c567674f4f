"""In-memory registry of event handlers."""

from __future__ import annotations

import logging
from typing import Any, Callable

from .entry import HandlerEntry, HandlerId

logger = logging.getLogger(__name__)


class HandlerRegistry:
    """Track handlers per event name, ordered by descending priority.

    Every event keeps two views: a sorted list used to fan an emission out,
    and an identity table used by the drain loop to resolve queued entries.
    Event keys disappear as soon as their last handler is removed.
    """

    def __init__(self) -> None:
        self._by_event: dict[str, list[HandlerEntry]] = {}
        self._lookup: dict[str, dict[HandlerId, HandlerEntry]] = {}

    def register(self, event: str, handler: HandlerEntry) -> None:
        """Insert ``handler`` keeping the event's list priority-descending."""

        handlers = self._by_event.setdefault(event, [])
        handlers.append(handler)
        handlers.sort(key=lambda item: -item.priority)
        self._lookup.setdefault(event, {})[handler.id] = handler
        logger.debug("registered %s (priority=%d)", handler.id, handler.priority)

    def remove_by_id(self, event: str, handler_id: HandlerId) -> None:
        """Remove one handler; unknown identities are ignored."""

        handlers = self._by_event.get(event)
        if handlers is None:
            return
        remaining = [handler for handler in handlers if handler.id != handler_id]
        if remaining:
            self._by_event[event] = remaining
        else:
            del self._by_event[event]

        lookup = self._lookup.get(event)
        if lookup is not None:
            if lookup.pop(handler_id, None) is not None:
                logger.debug("removed %s", handler_id)
            if not lookup:
                del self._lookup[event]

    def remove_by_callback(self, event: str, callback: Callable[..., Any]) -> None:
        """Remove every handler whose original callback equals ``callback``."""

        handlers = self._by_event.get(event)
        if not handlers:
            return
        targets = [handler.id for handler in handlers if handler.original_callback == callback]
        for handler_id in targets:
            self.remove_by_id(event, handler_id)

    def remove_all(self, event: str) -> None:
        self._by_event.pop(event, None)
        self._lookup.pop(event, None)

    def resolve(self, event: str, handler_id: HandlerId) -> HandlerEntry | None:
        lookup = self._lookup.get(event)
        if lookup is None:
            return None
        return lookup.get(handler_id)

    def handlers(self, event: str) -> tuple[HandlerEntry, ...]:
        """Return a snapshot of the handlers for ``event`` in dispatch order."""

        return tuple(self._by_event.get(event, ()))

    def count(self, event: str | None = None) -> int:
        if event is None:
            return sum(len(handlers) for handlers in self._by_event.values())
        return len(self._by_event.get(event, ()))

    def exists(self, event: str | None = None) -> bool:
        if event is None:
            return any(self._by_event.values())
        return bool(self._by_event.get(event))

    def events(self) -> tuple[str, ...]:
        return tuple(self._by_event)

    def clear(self) -> None:
        self._by_event.clear()
        self._lookup.clear()
