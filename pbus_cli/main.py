"""pbus CLI: inspect configuration and trace dispatch order of scenarios."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from pathlib import Path
from typing import Sequence

from pbus_core import EventBus
from pbus_core.config import ConfigResolver

from .scenario import Scenario, ScenarioError, run_scenario

CLI_VERSION = "0.1.0"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pbus",
        description="pbus developer tooling for the priority event bus.",
    )
    parser.add_argument("--version", action="version", version=f"pbus v{CLI_VERSION}")
    parser.add_argument("--config", type=Path, default=None, help="path to a pbus config.toml")
    subparsers = parser.add_subparsers(dest="command")
    subparsers.required = False

    config_cmd = subparsers.add_parser("config", help="show the resolved bus configuration")
    config_cmd.add_argument("--format", choices=("text", "json"), default="text")
    config_cmd.set_defaults(func=_handle_config)

    trace_cmd = subparsers.add_parser("trace", help="run a TOML scenario and print handler order")
    trace_cmd.add_argument("scenario", type=Path, help="scenario file")
    trace_cmd.add_argument("--format", choices=("text", "json"), default="text")
    trace_cmd.set_defaults(func=_handle_trace)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    func = getattr(args, "func", None)
    if func is None:
        parser.print_help()
        return 0
    resolver = ConfigResolver(path=args.config)
    config = resolver.resolve()
    logging.basicConfig(level=getattr(logging, config.log_level, logging.WARNING))
    return func(args, resolver)


def _handle_config(args: argparse.Namespace, resolver: ConfigResolver) -> int:
    config = resolver.resolve()
    path = resolver.config_path()
    if args.format == "json":
        print(json.dumps({"path": str(path), "config": config.as_dict()}, indent=2))
        return 0
    print(f"[pbus:config] file={path}{'' if path.exists() else ' (missing)'}")
    for key, value in config.as_dict().items():
        print(f"  {key:<20} {value}")
    return 0


def _handle_trace(args: argparse.Namespace, resolver: ConfigResolver) -> int:
    try:
        scenario = Scenario.load(args.scenario)
    except ScenarioError as exc:
        print(f"[pbus:trace] error: {exc}")
        return 1

    bus = EventBus(resolver.resolve())
    steps = asyncio.run(run_scenario(scenario, bus))

    if args.format == "json":
        print(json.dumps([step.as_dict() for step in steps], indent=2))
        return 0
    if not steps:
        print("No handlers fired.")
        return 0
    for position, step in enumerate(steps, start=1):
        print(f"{position:>3}. {step.label:<24} event={step.event} priority={step.priority}")
    return 0
