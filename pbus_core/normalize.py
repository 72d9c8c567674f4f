"""Input normalization shared by every public entry point of the bus."""

from __future__ import annotations

import math
import numbers
from typing import Any

from .errors import EmptyEventNameError, EventNameTypeError

__all__ = [
    "MAX_PRIORITY",
    "normalize_event_name",
    "normalize_need_await",
    "normalize_priority",
]

MAX_PRIORITY = 2**53 - 1


def normalize_event_name(event: Any) -> str:
    """Return ``event`` stripped of surrounding whitespace.

    Raises :class:`EventNameTypeError` for non-string names and
    :class:`EmptyEventNameError` when nothing is left after stripping.
    """

    if not isinstance(event, str):
        raise EventNameTypeError("Event name must be a string")
    normalized = event.strip()
    if not normalized:
        raise EmptyEventNameError("Event name cannot be empty")
    return normalized


def normalize_priority(priority: Any) -> int:
    """Truncate ``priority`` toward zero and clamp it to ``±MAX_PRIORITY``.

    Anything that is not a finite real number collapses to ``0``, and so do
    ``True`` and ``False``.
    """

    if isinstance(priority, bool):
        return 0
    if isinstance(priority, numbers.Integral):
        value = int(priority)
    elif isinstance(priority, numbers.Real):
        as_float = float(priority)
        if not math.isfinite(as_float):
            return 0
        value = math.trunc(as_float)
    else:
        return 0

    if value > MAX_PRIORITY:
        return MAX_PRIORITY
    if value < -MAX_PRIORITY:
        return -MAX_PRIORITY
    return value


def normalize_need_await(value: Any) -> bool:
    # only the literal True opts into awaiting
    return value is True
