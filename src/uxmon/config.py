"""Configuration for uxmon."""

import logging
import tomllib
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

MIN_INTERVAL = 0.05  # seconds


class ConfigError(ValueError):
    """Raised when a configuration file is missing, malformed or invalid."""


@dataclass(slots=True, frozen=True)
class MonitorConfig:
    """Tunables for sampling, history and the resource policy."""

    history_size: int = 120
    cpu_interval: float = 0.25  # seconds between CPU samples
    process_interval: float = 1.5  # seconds between process scans
    frame_interval: float = 0.166  # seconds between dashboard frames
    max_cores: int = 128
    max_priority: int = 10
    cpu_threshold: float = 10.0  # percent of one core
    memory_threshold_kb: int = 500_000
    kill_grace: float = 0.2  # seconds between SIGTERM and SIGKILL
    proc_root: str = "/proc"
    sys_root: str = "/sys"
    priorities: tuple[str, ...] = ()
    auto_manage: bool = False

    def __post_init__(self) -> None:
        # Intervals below the minimum would spin the loop
        for name in ("cpu_interval", "process_interval", "frame_interval"):
            value = getattr(self, name)
            if value < MIN_INTERVAL:
                object.__setattr__(self, name, MIN_INTERVAL)
        if self.history_size < 1:
            raise ConfigError("history_size must be at least 1")
        if self.max_cores < 1:
            raise ConfigError("max_cores must be at least 1")
        if self.max_priority < 0:
            raise ConfigError("max_priority must not be negative")
        if self.kill_grace < 0:
            raise ConfigError("kill_grace must not be negative")
        if len(self.priorities) > self.max_priority:
            raise ConfigError(
                f"{len(self.priorities)} priorities exceed max_priority={self.max_priority}"
            )


def _coerce(name: str, value: Any, default: Any) -> Any:
    if isinstance(default, bool):
        if not isinstance(value, bool):
            raise ConfigError(f"{name} must be a boolean")
        return value
    if isinstance(default, int):
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigError(f"{name} must be an integer")
        return value
    if isinstance(default, float):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ConfigError(f"{name} must be a number")
        return float(value)
    if isinstance(default, tuple):
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise ConfigError(f"{name} must be a list of strings")
        return tuple(value)
    if not isinstance(value, str):
        raise ConfigError(f"{name} must be a string")
    return value


def config_from_mapping(data: dict[str, Any]) -> MonitorConfig:
    """Build a config from a ``[uxmon]`` table, rejecting unknown keys."""
    defaults = MonitorConfig()
    known = {f.name for f in fields(MonitorConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(f"Unknown configuration keys: {', '.join(unknown)}")
    values = {name: _coerce(name, value, getattr(defaults, name)) for name, value in data.items()}
    return MonitorConfig(**values)


def load_config(path: str | Path) -> MonitorConfig:
    """
    Load configuration from a TOML file.

    Args:
        path: File with an optional ``[uxmon]`` table.

    Raises:
        ConfigError: If the file is missing, not valid TOML, or has bad values.
    """
    path = Path(path)
    logger.info("Loading configuration from %s", path)
    try:
        with open(path, "rb") as f:
            document = tomllib.load(f)
    except FileNotFoundError as exc:
        raise ConfigError(f"Configuration file not found: {path}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid TOML in {path}: {exc}") from exc

    table = document.get("uxmon", {})
    if not isinstance(table, dict):
        raise ConfigError("[uxmon] must be a table")
    return config_from_mapping(table)
