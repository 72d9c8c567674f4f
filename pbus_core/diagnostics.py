"""Diagnostic sink that receives handler and middleware failures."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable

if TYPE_CHECKING:
    from pbus_core.registry import HandlerId

__all__ = ["DiagnosticRecord", "DiagnosticSink", "LoggingDiagnosticSink", "DEFAULT_LOGGER_NAME"]

DEFAULT_LOGGER_NAME = "pbus_core.dispatch"


@dataclass(frozen=True)
class DiagnosticRecord:
    """Structured context for a failure swallowed by the dispatch engine.

    ``source`` is ``"handler"``, ``"middleware:<stage>"`` for a handler's own
    stage callback, or ``"global:<stage>"`` for a callback added with ``use``.
    """

    event: str
    source: str
    error: BaseException
    handler_id: HandlerId | None = None

    def as_dict(self) -> dict[str, Any]:
        details: dict[str, Any] = {"event": self.event, "source": self.source}
        if self.handler_id is not None:
            details["handler_id"] = str(self.handler_id)
        return details


DiagnosticSink = Callable[[DiagnosticRecord], None]


class LoggingDiagnosticSink:
    """Default sink writing each record to a stdlib logger."""

    def __init__(self, logger: logging.Logger | str | None = None) -> None:
        if isinstance(logger, logging.Logger):
            self.logger = logger
        else:
            self.logger = logging.getLogger(logger or DEFAULT_LOGGER_NAME)

    def __call__(self, record: DiagnosticRecord) -> None:
        details = record.as_dict()
        self.logger.error(
            "[pbus] %s failed for event %r",
            record.source,
            record.event,
            exc_info=(type(record.error), record.error, record.error.__traceback__),
            extra={"pbus": details},
        )
