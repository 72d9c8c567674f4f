"""Dispatch engine: fan-out, single-flight drain loop and middleware stages."""

from __future__ import annotations

import asyncio
import contextvars
import inspect
import logging
from enum import Enum
from typing import Any, Awaitable, Callable

from .diagnostics import DiagnosticRecord, DiagnosticSink, LoggingDiagnosticSink
from .middleware import GlobalMiddlewareSet, Middleware, MiddlewareCallback, MiddlewareParams, Stage
from .queue import PriorityQueue, QueueEntry
from .registry import HandlerEntry, HandlerId, HandlerRegistry, next_handler_id

__all__ = ["DispatchEngine", "EngineState", "adapt_callback"]

logger = logging.getLogger(__name__)

# engines whose drain loop the current task is running, or was spawned from
_drain_chain: contextvars.ContextVar[frozenset[DispatchEngine]] = contextvars.ContextVar(
    "pbus_drain_chain", default=frozenset()
)


class EngineState(Enum):
    """Lifecycle of the drain loop."""

    IDLE = "idle"
    DRAINING = "draining"


def adapt_callback(callback: Callable[[Any], Any]) -> Callable[[Any], Awaitable[None]]:
    """Wrap a sync or async callback so it is always awaited the same way."""

    async def adapter(data: Any) -> None:
        result = callback(data)
        if inspect.isawaitable(result):
            await result

    return adapter


class DispatchEngine:
    """Own the registry, the queue and global middleware of one bus.

    Entries from every emission share a single priority queue, so a
    high-priority handler of one event can run before a low-priority handler
    queued earlier for another event. Only one drain loop runs at a time.
    Emissions made from inside it only enqueue; emissions from other tasks
    enqueue and wait for it to go idle.
    """

    def __init__(self, *, sink: DiagnosticSink | None = None) -> None:
        self.registry = HandlerRegistry()
        self.queue = PriorityQueue()
        self.middleware = GlobalMiddlewareSet()
        self.sink: DiagnosticSink = sink or LoggingDiagnosticSink()
        self.state = EngineState.IDLE
        self._idle = asyncio.Event()
        self._idle.set()
        self._tasks: set[asyncio.Task[None]] = set()

    # ---------- Registration ----------

    def register(
        self,
        event: str,
        callback: Callable[[Any], Any],
        *,
        priority: int,
        need_await: bool,
        middleware: Middleware | None = None,
        original_callback: Callable[..., Any] | None = None,
    ) -> HandlerEntry:
        """Register an already-normalized handler and return its descriptor."""

        handler = HandlerEntry(
            id=next_handler_id(event),
            event=event,
            priority=priority,
            need_await=need_await,
            original_callback=original_callback or callback,
            callback=adapt_callback(callback),
            middleware=middleware,
        )
        self.registry.register(event, handler)
        return handler

    def add_global_middleware(
        self, stage: Stage, callback: MiddlewareCallback
    ) -> Callable[[], None]:
        return self.middleware.add(stage, callback)

    def clear(self) -> None:
        """Drop handlers, global middleware and queued entries.

        Units already running keep running; nothing is cancelled.
        """

        self.registry.clear()
        self.middleware.clear()
        self.queue.clear()

    # ---------- Emission ----------

    def enqueue(self, event: str, data: Any) -> int:
        """Push one entry per handler currently registered for ``event``."""

        handlers = self.registry.handlers(event)
        for handler in handlers:
            self.queue.push(
                QueueEntry(
                    event=event,
                    data=data,
                    handler_id=handler.id,
                    priority=handler.priority,
                    need_await=handler.need_await,
                    callback=handler.callback,
                )
            )
        return len(handlers)

    async def emit(self, event: str, data: Any) -> None:
        if not self.registry.exists(event):
            return
        self.enqueue(event, data)
        await self.ensure_processing()

    async def ensure_processing(self) -> None:
        """Drain the queue, or wait for the loop that is already draining it.

        Handlers, middleware and fire-and-forget units started by the active
        loop return at once, since the loop may be awaiting them.
        """

        while self.state is EngineState.DRAINING:
            if self in _drain_chain.get():
                return
            await self._idle.wait()
        if not self.queue:
            return

        self.state = EngineState.DRAINING
        self._idle.clear()
        token = _drain_chain.set(_drain_chain.get() | {self})
        logger.debug("drain loop started with %d queued entries", len(self.queue))
        try:
            while True:
                await self._drain_queue()
                if not self.queue:
                    break
        finally:
            _drain_chain.reset(token)
            self.state = EngineState.IDLE
            self._idle.set()
            logger.debug("drain loop idle")

    async def join(self) -> None:
        """Wait for the drain loop and every fire-and-forget unit to finish.

        Must not be awaited from a handler the drain loop itself is awaiting.
        """

        current = asyncio.current_task()
        while True:
            if not self._idle.is_set():
                await self._idle.wait()
                continue
            pending = {task for task in self._tasks if task is not current}
            if not pending:
                return
            await asyncio.wait(pending)

    @property
    def pending_tasks(self) -> int:
        return len(self._tasks)

    async def _drain_queue(self) -> None:
        while self.queue:
            # let concurrently issued emissions enqueue before choosing the next entry
            await asyncio.sleep(0)
            entry = self.queue.pop()
            if entry is None:
                continue

            handler = self.registry.resolve(entry.event, entry.handler_id)
            if handler is None:
                logger.debug("skipping entry for removed handler %s", entry.handler_id)
                continue

            params = MiddlewareParams(
                event=entry.event,
                data=entry.data,
                need_await=handler.need_await,
                priority=handler.priority,
                handler_id=handler.id,
            )
            await self._run_stage(handler, params, "before")

            execution = self._execute(handler, entry, params)
            if entry.need_await:
                await execution
            else:
                self._spawn(execution)

    def _spawn(self, execution: Awaitable[None]) -> None:
        task = asyncio.get_running_loop().create_task(execution)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _execute(
        self, handler: HandlerEntry, entry: QueueEntry, params: MiddlewareParams
    ) -> None:
        await self._run_stage(handler, params, "processing")
        try:
            await entry.callback(entry.data)
        except Exception as exc:
            self._report(entry.event, "handler", exc, handler.id)
        await self._run_stage(handler, params, "after")

    # ---------- Middleware ----------

    async def _run_stage(
        self, handler: HandlerEntry, params: MiddlewareParams, stage: Stage
    ) -> None:
        own = handler.middleware.stage(stage) if handler.middleware else None
        if own is not None:
            await self._invoke(own, params, f"middleware:{stage}")
        for callback in self.middleware.callbacks(stage):
            await self._invoke(callback, params, f"global:{stage}")

    async def _invoke(
        self, callback: MiddlewareCallback, params: MiddlewareParams, source: str
    ) -> None:
        try:
            result = callback(params)
            if inspect.isawaitable(result):
                await result
        except Exception as exc:
            self._report(params.event, source, exc, params.handler_id)

    def _report(
        self,
        event: str,
        source: str,
        error: BaseException,
        handler_id: HandlerId | None = None,
    ) -> None:
        record = DiagnosticRecord(event=event, source=source, error=error, handler_id=handler_id)
        try:
            self.sink(record)
        except Exception:
            logger.exception("diagnostic sink failed while reporting %s for %r", source, event)
