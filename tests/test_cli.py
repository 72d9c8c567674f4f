"""Smoke tests for the pbus CLI surface."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from pbus_cli import main
from pbus_cli.scenario import Scenario, ScenarioError

SCENARIO = """
[[handlers]]
event = "alpha"
label = "alpha-low"
priority = 1

[[handlers]]
event = "alpha"
label = "alpha-high"
priority = 10

[[handlers]]
event = "beta"
label = "beta-mid"
priority = 5

[[handlers]]
event = "beta"
label = "beta-once"
priority = 2
once = true

[[emit]]
event = "alpha"
concurrent_group = 1

[[emit]]
event = "beta"
concurrent_group = 1

[[emit]]
event = "beta"
"""


@pytest.fixture()
def config_file(tmp_path: Path) -> Path:
    path = tmp_path / "config.toml"
    path.write_text('[bus]\nlog_level = "warning"\n', encoding="utf-8")
    return path


def test_trace_prints_priority_order_across_events(
    tmp_path: Path,
    config_file: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    scenario = tmp_path / "scenario.toml"
    scenario.write_text(SCENARIO, encoding="utf-8")

    code = main(["--config", str(config_file), "trace", str(scenario), "--format", "json"])

    assert code == 0
    steps = json.loads(capsys.readouterr().out)
    assert [step["label"] for step in steps] == [
        "alpha-high",
        "beta-mid",
        "beta-once",
        "alpha-low",
        "beta-mid",
    ]


def test_trace_text_output(
    tmp_path: Path,
    config_file: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    scenario = tmp_path / "scenario.toml"
    scenario.write_text('[[emit]]\nevent = "nobody"\n', encoding="utf-8")

    assert main(["--config", str(config_file), "trace", str(scenario)]) == 0
    assert "No handlers fired." in capsys.readouterr().out


def test_trace_reports_missing_scenario(
    tmp_path: Path,
    config_file: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    code = main(["--config", str(config_file), "trace", str(tmp_path / "nope.toml")])

    assert code == 1
    assert "[pbus:trace] error" in capsys.readouterr().out


def test_config_command_prints_json(
    config_file: Path,
    capsys: pytest.CaptureFixture[str],
) -> None:
    assert main(["--config", str(config_file), "config", "--format", "json"]) == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["path"] == str(config_file)
    assert payload["config"]["log_level"] == "WARNING"


def test_scenario_requires_emissions() -> None:
    with pytest.raises(ScenarioError):
        Scenario.from_dict({"handlers": [{"event": "a"}]})
    with pytest.raises(ScenarioError):
        Scenario.from_dict({"emit": [{"event": "   "}]})


def test_scenario_batches_group_concurrent_emissions() -> None:
    scenario = Scenario.from_dict(
        {
            "emit": [
                {"event": "a", "concurrent_group": 2},
                {"event": "b"},
                {"event": "c", "concurrent_group": 2},
            ]
        }
    )
    assert [[emit.event for emit in batch] for batch in scenario.batches()] == [["a", "c"], ["b"]]


@pytest.mark.parametrize("key", ["need_await", "once"])
def test_scenario_rejects_non_boolean_flags(key: str) -> None:
    with pytest.raises(ScenarioError, match=f"handlers\\[0\\].{key} must be a boolean"):
        Scenario.from_dict({"handlers": [{"event": "a", key: "false"}], "emit": [{"event": "a"}]})


def test_scenario_handler_flags_default() -> None:
    scenario = Scenario.from_dict({"handlers": [{"event": "a"}], "emit": [{"event": "a"}]})
    (handler,) = scenario.handlers
    assert handler.need_await is True
    assert handler.once is False
