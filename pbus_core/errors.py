"""Errors raised by the pbus core to its callers."""

from __future__ import annotations


class EventBusError(Exception):
    """Base class for event bus errors."""


class EventNameTypeError(EventBusError, TypeError):
    """Raised when an event name is not a string."""


class EmptyEventNameError(EventBusError, ValueError):
    """Raised when an event name is empty after stripping whitespace."""
