"""Public event bus API."""

from __future__ import annotations

import inspect
import logging
from typing import Any, Awaitable, Callable, Mapping, Union

from .config import BusConfig, ConfigResolver
from .diagnostics import DiagnosticSink, LoggingDiagnosticSink
from .engine import DispatchEngine
from .middleware import STAGES, Middleware
from .normalize import normalize_event_name, normalize_need_await, normalize_priority

__all__ = ["EventBus", "EventCallback", "Unsubscribe"]

EventCallback = Callable[[Any], Union[None, Awaitable[None]]]
Unsubscribe = Callable[[], None]
MiddlewareLike = Union[Middleware, Mapping[str, Any]]

_UNSET: Any = object()


class EventBus:
    """Priority-ordered async publish/subscribe bus with middleware.

    Handlers receive the emitted payload object itself. Every handler of one
    emission sees the same object, so mutations made by a higher-priority
    handler are visible to the ones that run after it.
    """

    def __init__(
        self,
        config: BusConfig | None = None,
        *,
        sink: DiagnosticSink | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.config = config or BusConfig()
        self.logger = logger or logging.getLogger(self.config.logger_name)
        self._engine = DispatchEngine(sink=sink or LoggingDiagnosticSink(self.logger))

    @classmethod
    def from_environment(cls, **overrides: Any) -> "EventBus":
        """Build a bus from the config file, ``PBUS_*`` variables and ``overrides``."""

        return cls(ConfigResolver(overrides=overrides).resolve())

    @property
    def engine(self) -> DispatchEngine:
        return self._engine

    def on(
        self,
        event: str,
        callback: EventCallback,
        priority: float = _UNSET,
        need_await: bool = _UNSET,
        middleware: MiddlewareLike | None = None,
    ) -> Unsubscribe:
        """Register ``callback`` for ``event`` and return its unsubscribe function."""

        return self._register(event, callback, priority, need_await, middleware)

    def once(
        self,
        event: str,
        callback: EventCallback,
        priority: float = _UNSET,
        need_await: bool = _UNSET,
        middleware: MiddlewareLike | None = None,
    ) -> Unsubscribe:
        """Like :meth:`on`, but ``callback`` fires at most once."""

        active = True
        unsubscribe: Unsubscribe = lambda: None

        async def fire_once(data: Any) -> None:
            nonlocal active
            if not active:
                return
            active = False
            unsubscribe()
            result = callback(data)
            if inspect.isawaitable(result):
                await result

        unsubscribe = self._register(
            event,
            fire_once,
            priority,
            need_await,
            middleware,
            original_callback=callback,
        )

        def cancel() -> None:
            nonlocal active
            if not active:
                return
            active = False
            unsubscribe()

        return cancel

    def off(self, event: str, callback: EventCallback | None = None) -> None:
        """Remove every handler for ``event``, or only those registered with ``callback``.

        Entries already queued for removed handlers are skipped when dequeued.
        """

        name = normalize_event_name(event)
        if callback is None:
            self._engine.registry.remove_all(name)
            return
        self._engine.registry.remove_by_callback(name, callback)

    def use(self, middleware: MiddlewareLike) -> Unsubscribe:
        """Add global middleware; the returned function removes exactly what was added."""

        stages = Middleware.coerce(middleware) or Middleware()
        cleanups: list[Callable[[], None]] = []
        for stage in STAGES:
            callback = stages.stage(stage)
            if callback is not None:
                cleanups.append(self._engine.add_global_middleware(stage, callback))

        def cleanup() -> None:
            while cleanups:
                cleanups.pop()()

        return cleanup

    async def emit(self, event: str, data: Any = None) -> None:
        """Deliver ``data`` to every handler currently registered for ``event``.

        Returns once the shared queue is drained. When another task's drain
        loop is active, waits for it to go idle. Emitting from a handler or
        middleware of the active loop only enqueues and returns at once.
        Handler and middleware failures go to the diagnostic sink.
        """

        name = normalize_event_name(event)
        await self._engine.emit(name, {} if data is None else data)

    def listener_count(self, event: str | None = None) -> int:
        if event is None:
            return self._engine.registry.count()
        return self._engine.registry.count(normalize_event_name(event))

    def has_listeners(self, event: str | None = None) -> bool:
        if event is None:
            return self._engine.registry.exists()
        return self._engine.registry.exists(normalize_event_name(event))

    def clear(self) -> None:
        """Remove all handlers, all global middleware and every queued entry."""

        self._engine.clear()

    async def join(self) -> None:
        """Wait until queued entries and fire-and-forget handlers have finished."""

        await self._engine.join()

    def _register(
        self,
        event: str,
        callback: EventCallback,
        priority: Any,
        need_await: Any,
        middleware: MiddlewareLike | None,
        *,
        original_callback: EventCallback | None = None,
    ) -> Unsubscribe:
        name = normalize_event_name(event)
        if priority is _UNSET:
            priority = self.config.default_priority
        if need_await is _UNSET:
            need_await = self.config.default_need_await
        handler = self._engine.register(
            name,
            callback,
            priority=normalize_priority(priority),
            need_await=normalize_need_await(need_await),
            middleware=Middleware.coerce(middleware),
            original_callback=original_callback,
        )
        registry = self._engine.registry

        def unsubscribe() -> None:
            registry.remove_by_id(name, handler.id)

        return unsubscribe
