"""Middleware stages run around every handler invocation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Literal, Mapping, Union

if TYPE_CHECKING:
    from pbus_core.registry import HandlerId

__all__ = [
    "STAGES",
    "Stage",
    "MiddlewareCallback",
    "MiddlewareParams",
    "Middleware",
    "GlobalMiddlewareSet",
]

Stage = Literal["before", "processing", "after"]
STAGES: tuple[Stage, ...] = ("before", "processing", "after")


@dataclass(frozen=True)
class MiddlewareParams:
    """Arguments handed to every stage callback."""

    event: str
    data: Any
    need_await: bool
    priority: int
    handler_id: HandlerId | None = None


MiddlewareCallback = Callable[[MiddlewareParams], Union[None, Awaitable[None]]]


@dataclass(frozen=True)
class Middleware:
    """Any subset of the three stage callbacks."""

    before: MiddlewareCallback | None = None
    processing: MiddlewareCallback | None = None
    after: MiddlewareCallback | None = None

    @classmethod
    def coerce(cls, value: Middleware | Mapping[str, Any] | None) -> Middleware | None:
        """Accept a ``Middleware`` or a mapping keyed by stage name."""

        if value is None or isinstance(value, Middleware):
            return value
        if isinstance(value, Mapping):
            unknown = set(value) - set(STAGES)
            if unknown:
                raise ValueError(f"unknown middleware stage(s): {', '.join(sorted(unknown))}")
            return cls(**{stage: value.get(stage) for stage in STAGES})
        raise TypeError("middleware must be a Middleware or a mapping of stage callbacks")

    def stage(self, stage: Stage) -> MiddlewareCallback | None:
        return getattr(self, stage)


class GlobalMiddlewareSet:
    """Bus-wide stage callbacks, kept in registration order without duplicates."""

    def __init__(self) -> None:
        self._stages: dict[str, list[MiddlewareCallback]] = {stage: [] for stage in STAGES}

    def add(self, stage: Stage, callback: MiddlewareCallback) -> Callable[[], None]:
        # identity, not hashing: callable instances need not be hashable
        bucket = self._stages[stage]
        if not any(existing is callback for existing in bucket):
            bucket.append(callback)

        def remove() -> None:
            for index, existing in enumerate(bucket):
                if existing is callback:
                    del bucket[index]
                    return

        return remove

    def callbacks(self, stage: Stage) -> tuple[MiddlewareCallback, ...]:
        return tuple(self._stages[stage])

    def __len__(self) -> int:
        return sum(len(bucket) for bucket in self._stages.values())

    def clear(self) -> None:
        for bucket in self._stages.values():
            bucket.clear()
