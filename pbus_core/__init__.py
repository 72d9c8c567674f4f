"""Core runtime pieces of the pbus priority event bus."""

from .config import BusConfig, ConfigResolver, default_config_path
from .diagnostics import DiagnosticRecord, LoggingDiagnosticSink
from .engine import DispatchEngine, EngineState
from .errors import EmptyEventNameError, EventBusError, EventNameTypeError
from .events import EventBus
from .middleware import Middleware, MiddlewareParams
from .normalize import MAX_PRIORITY
from .queue import PriorityQueue, QueueEntry
from .registry import HandlerEntry, HandlerId, HandlerRegistry

__all__ = [
    "BusConfig",
    "ConfigResolver",
    "default_config_path",
    "DiagnosticRecord",
    "LoggingDiagnosticSink",
    "DispatchEngine",
    "EngineState",
    "EventBusError",
    "EventNameTypeError",
    "EmptyEventNameError",
    "EventBus",
    "Middleware",
    "MiddlewareParams",
    "MAX_PRIORITY",
    "PriorityQueue",
    "QueueEntry",
    "HandlerEntry",
    "HandlerId",
    "HandlerRegistry",
]
