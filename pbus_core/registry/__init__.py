"""Convenience exports for the handler registry."""

from .entry import HandlerEntry, HandlerId, next_handler_id
from .registry import HandlerRegistry

__all__ = [
    "HandlerEntry",
    "HandlerId",
    "HandlerRegistry",
    "next_handler_id",
]
