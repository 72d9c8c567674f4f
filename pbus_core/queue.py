"""Array-backed max-heap that orders pending dispatches by priority."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from .registry.entry import HandlerId

__all__ = ["QueueEntry", "PriorityQueue"]


@dataclass(frozen=True)
class QueueEntry:
    """One (emission, handler) pairing waiting to be dispatched.

    ``data`` is the emission's payload object itself, shared by every entry of
    the same emission; a handler that mutates it is seen by the ones after it.
    """

    event: str
    data: Any
    handler_id: HandlerId
    priority: int
    need_await: bool
    callback: Callable[[Any], Awaitable[None]]


class PriorityQueue:
    """Binary max-heap keyed on ``QueueEntry.priority``.

    Equal priorities come out in whatever order the heap structure produces;
    neither FIFO nor LIFO is guaranteed.
    """

    def __init__(self) -> None:
        self._data: list[QueueEntry] = []

    def __len__(self) -> int:
        return len(self._data)

    def __bool__(self) -> bool:
        return bool(self._data)

    def push(self, entry: QueueEntry) -> None:
        self._data.append(entry)
        self._sift_up()

    def pop(self) -> QueueEntry | None:
        """Remove and return the highest-priority entry, or ``None`` when empty."""

        if not self._data:
            return None
        root = self._data[0]
        last = self._data.pop()
        if self._data:
            self._data[0] = last
            self._sift_down()
        return root

    def clear(self) -> None:
        self._data.clear()

    def _sift_up(self) -> None:
        data = self._data
        index = len(data) - 1
        element = data[index]
        while index > 0:
            parent_index = (index - 1) // 2
            parent = data[parent_index]
            if element.priority <= parent.priority:
                break
            data[parent_index], data[index] = element, parent
            index = parent_index

    def _sift_down(self) -> None:
        data = self._data
        length = len(data)
        index = 0
        element = data[0]
        while True:
            left = 2 * index + 1
            right = left + 1
            largest = index
            if left < length and data[left].priority > element.priority:
                largest = left
            if right < length and data[right].priority > data[largest].priority:
                largest = right
            if largest == index:
                break
            data[index], data[largest] = data[largest], element
            index = largest
