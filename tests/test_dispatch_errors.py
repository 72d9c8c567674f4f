"""Failure isolation: handler and middleware errors never reach the emitter."""

from __future__ import annotations

import logging
from typing import Any

import pytest

from pbus_core import DiagnosticRecord, EventBus, LoggingDiagnosticSink


def _collecting_bus() -> tuple[EventBus, list[DiagnosticRecord]]:
    records: list[DiagnosticRecord] = []
    return EventBus(sink=records.append), records


@pytest.mark.asyncio
async def test_handler_error_is_reported_and_other_handlers_still_run() -> None:
    bus, records = _collecting_bus()
    seen: list[str] = []

    def broken(data: Any) -> None:
        raise RuntimeError("boom")

    bus.on("evt", broken, priority=10, need_await=True)
    bus.on("evt", lambda data: seen.append("ok"), priority=1, need_await=True)
    await bus.emit("evt")

    assert seen == ["ok"]
    (record,) = records
    assert record.event == "evt"
    assert record.source == "handler"
    assert isinstance(record.error, RuntimeError)
    assert record.handler_id == bus.engine.registry.handlers("evt")[0].id


@pytest.mark.asyncio
async def test_fire_and_forget_handler_error_is_reported() -> None:
    bus, records = _collecting_bus()

    async def broken(data: Any) -> None:
        raise ValueError("late failure")

    bus.on("evt", broken, need_await=False)
    await bus.emit("evt")
    await bus.join()

    assert [record.source for record in records] == ["handler"]


@pytest.mark.asyncio
async def test_middleware_errors_are_tagged_by_origin() -> None:
    bus, records = _collecting_bus()
    calls: list[str] = []

    def fail(params: Any) -> None:
        raise RuntimeError("stage failure")

    bus.use({"processing": fail})
    bus.use({"after": lambda params: calls.append("global-after")})
    bus.on(
        "evt",
        lambda data: calls.append("handler"),
        need_await=True,
        middleware={"before": fail, "after": fail},
    )
    await bus.emit("evt")

    assert calls == ["handler", "global-after"]
    assert [record.source for record in records] == [
        "middleware:before",
        "global:processing",
        "middleware:after",
    ]


@pytest.mark.asyncio
async def test_failing_global_callback_does_not_skip_the_next_one() -> None:
    bus, records = _collecting_bus()
    calls: list[str] = []

    async def fail(params: Any) -> None:
        raise RuntimeError("first")

    bus.use({"before": fail})
    bus.use({"before": lambda params: calls.append("second")})
    bus.on("evt", lambda data: calls.append("handler"), need_await=True)
    await bus.emit("evt")

    assert calls == ["second", "handler"]
    assert [record.source for record in records] == ["global:before"]


@pytest.mark.asyncio
async def test_failing_sink_is_logged_and_suppressed(caplog: pytest.LogCaptureFixture) -> None:
    def sink(record: DiagnosticRecord) -> None:
        raise RuntimeError("sink down")

    bus = EventBus(sink=sink)
    seen: list[str] = []

    def broken(data: Any) -> None:
        raise RuntimeError("boom")

    bus.on("evt", broken, priority=2, need_await=True)
    bus.on("evt", lambda data: seen.append("ok"), priority=1, need_await=True)

    with caplog.at_level(logging.ERROR, logger="pbus_core.engine"):
        await bus.emit("evt")

    assert seen == ["ok"]
    assert "diagnostic sink failed" in caplog.text


@pytest.mark.asyncio
async def test_default_sink_logs_structured_record(caplog: pytest.LogCaptureFixture) -> None:
    bus = EventBus()

    def broken(data: Any) -> None:
        raise KeyError("missing")

    bus.on("evt", broken, need_await=True)
    with caplog.at_level(logging.ERROR, logger="pbus_core.dispatch"):
        await bus.emit("evt")

    (log_record,) = [item for item in caplog.records if item.name == "pbus_core.dispatch"]
    assert log_record.levelno == logging.ERROR
    assert log_record.exc_info is not None
    assert log_record.pbus["event"] == "evt"
    assert log_record.pbus["source"] == "handler"
    assert log_record.pbus["handler_id"].startswith("pbus-handler:evt#")


def test_logging_sink_accepts_logger_name() -> None:
    sink = LoggingDiagnosticSink("custom.sink")
    assert sink.logger.name == "custom.sink"
