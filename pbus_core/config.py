"""Layered configuration for event bus instances."""

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Mapping

import tomllib
from platformdirs import user_config_dir

from .diagnostics import DEFAULT_LOGGER_NAME
from .normalize import normalize_priority

logger = logging.getLogger(__name__)

DEFAULT_APP_NAME = "pbus"
CONFIG_FILE_NAME = "config.toml"
CONFIG_ENV_VAR = "PBUS_CONFIG"

_ENV_KEY_MAP: dict[str, str] = {
    "default_priority": "PBUS_DEFAULT_PRIORITY",
    "default_need_await": "PBUS_DEFAULT_NEED_AWAIT",
    "logger_name": "PBUS_LOGGER",
    "log_level": "PBUS_LOG_LEVEL",
}
_TRUTHY = {"1", "true", "yes", "on"}


def default_config_path() -> Path:
    """Return the platform-specific default config path for pbus."""

    base_dir = Path(user_config_dir(DEFAULT_APP_NAME, appauthor=False))
    return base_dir / CONFIG_FILE_NAME


@dataclass(frozen=True)
class BusConfig:
    """Settings applied to a bus when registrations omit them."""

    default_priority: int = 0
    default_need_await: bool = False
    logger_name: str = DEFAULT_LOGGER_NAME
    log_level: str = "WARNING"

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


def _coerce_priority(value: Any) -> int:
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return 0
    return normalize_priority(value)


def _coerce_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _TRUTHY


_COERCERS = {
    "default_priority": _coerce_priority,
    "default_need_await": _coerce_bool,
    "logger_name": lambda value: str(value),
    "log_level": lambda value: str(value).upper(),
}


def _load_config_from_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        with path.open("rb") as handle:
            data = tomllib.load(handle)
    except (OSError, tomllib.TOMLDecodeError) as exc:
        logger.warning("ignoring unreadable config %s: %s", path, exc)
        return {}
    section = data.get("bus")
    if isinstance(section, dict):
        data = {**data, **section}
    known = {item.name for item in fields(BusConfig)}
    return {key: value for key, value in data.items() if key in known}


@dataclass
class ConfigResolver:
    """Resolve ``BusConfig`` from defaults, file, environment and overrides."""

    path: Path | None = None
    env: Mapping[str, str] | None = None
    overrides: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.env = os.environ if self.env is None else self.env

    def config_path(self) -> Path:
        if self.path is not None:
            return self.path
        env_path = self.env.get(CONFIG_ENV_VAR)
        if env_path:
            return Path(env_path).expanduser()
        return default_config_path()

    def resolve(self) -> BusConfig:
        values: dict[str, Any] = {}
        values.update(_load_config_from_file(self.config_path()))
        for key, env_key in _ENV_KEY_MAP.items():
            env_value = self.env.get(env_key)
            if env_value is not None and env_value != "":
                values[key] = env_value
        values.update({key: value for key, value in self.overrides.items() if key in _COERCERS})
        coerced = {key: _COERCERS[key](value) for key, value in values.items()}
        return BusConfig(**coerced)
