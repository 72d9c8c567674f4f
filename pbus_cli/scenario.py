"""TOML scenarios that replay registrations and emissions on a fresh bus."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import tomllib

from pbus_core import EventBus
from pbus_core.normalize import normalize_priority


class ScenarioError(Exception):
    """Raised when a scenario file cannot be loaded or validated."""


@dataclass(frozen=True)
class HandlerSpec:
    event: str
    label: str
    priority: Any = 0
    need_await: bool = True
    once: bool = False


@dataclass(frozen=True)
class EmitSpec:
    event: str
    data: dict[str, Any] = field(default_factory=dict)
    concurrent_group: int | None = None


@dataclass(frozen=True)
class TraceStep:
    label: str
    event: str
    priority: int

    def as_dict(self) -> dict[str, Any]:
        return {"label": self.label, "event": self.event, "priority": self.priority}


@dataclass(frozen=True)
class Scenario:
    handlers: tuple[HandlerSpec, ...]
    emits: tuple[EmitSpec, ...]

    @classmethod
    def load(cls, path: Path) -> "Scenario":
        try:
            with path.open("rb") as handle:
                document = tomllib.load(handle)
        except (OSError, tomllib.TOMLDecodeError) as exc:
            raise ScenarioError(f"cannot read scenario {path}: {exc}") from exc
        return cls.from_dict(document)

    @classmethod
    def from_dict(cls, document: dict[str, Any]) -> "Scenario":
        handlers: list[HandlerSpec] = []
        for index, raw in enumerate(document.get("handlers", [])):
            event = _require_event(raw, f"handlers[{index}]")
            need_await = raw.get("need_await", True)
            once = raw.get("once", False)
            for key, value in (("need_await", need_await), ("once", once)):
                if not isinstance(value, bool):
                    raise ScenarioError(f"handlers[{index}].{key} must be a boolean")
            handlers.append(
                HandlerSpec(
                    event=event,
                    label=str(raw.get("label") or f"{event.strip()}#{index}"),
                    priority=raw.get("priority", 0),
                    need_await=need_await,
                    once=once,
                )
            )

        emits: list[EmitSpec] = []
        for index, raw in enumerate(document.get("emit", [])):
            event = _require_event(raw, f"emit[{index}]")
            data = raw.get("data", {})
            if not isinstance(data, dict):
                raise ScenarioError(f"emit[{index}].data must be a table")
            group = raw.get("concurrent_group")
            if group is not None and not isinstance(group, int):
                raise ScenarioError(f"emit[{index}].concurrent_group must be an integer")
            emits.append(EmitSpec(event=event, data=dict(data), concurrent_group=group))

        if not emits:
            raise ScenarioError("scenario declares no [[emit]] entries")
        return cls(handlers=tuple(handlers), emits=tuple(emits))

    def batches(self) -> list[list[EmitSpec]]:
        """Group emissions: a shared ``concurrent_group`` joins the batch of its first member."""

        batches: list[list[EmitSpec]] = []
        by_group: dict[int, list[EmitSpec]] = {}
        for emit in self.emits:
            if emit.concurrent_group is None:
                batches.append([emit])
                continue
            batch = by_group.get(emit.concurrent_group)
            if batch is None:
                batch = by_group[emit.concurrent_group] = []
                batches.append(batch)
            batch.append(emit)
        return batches


def _require_event(raw: Any, where: str) -> str:
    if not isinstance(raw, dict):
        raise ScenarioError(f"{where} must be a table")
    event = raw.get("event")
    if not isinstance(event, str) or not event.strip():
        raise ScenarioError(f"{where}.event must be a non-empty string")
    return event


async def run_scenario(scenario: Scenario, bus: EventBus | None = None) -> list[TraceStep]:
    """Register the scenario's handlers, replay its emissions, return the execution order."""

    bus = bus or EventBus()
    trace: list[TraceStep] = []

    for spec in scenario.handlers:
        register = bus.once if spec.once else bus.on
        register(
            spec.event,
            _recorder(trace, spec),
            priority=spec.priority,
            need_await=spec.need_await,
        )

    for batch in scenario.batches():
        await asyncio.gather(*(bus.emit(emit.event, dict(emit.data)) for emit in batch))
    await bus.join()
    return trace


def _recorder(trace: list[TraceStep], spec: HandlerSpec):
    step = TraceStep(
        label=spec.label,
        event=spec.event.strip(),
        priority=normalize_priority(spec.priority),
    )

    def record(data: Any) -> None:
        trace.append(step)

    return record

