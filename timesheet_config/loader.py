"""
Configuration Loader (``timesheet_config.loader``).

Responsibility
--------------
Loads the YAML configuration file and parses it into the frozen
``timesheet_config.schema`` dataclasses.  Runtime callers use
``timesheet_config.get_active_config()``; this module is its tooling.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown sections or keys, wrong types, out-of-range values
  -> ``ConfigError``.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import fields, replace
from pathlib import Path
from typing import Any

import yaml

from timesheet_config.schema import (
    ConfigError,
    DatabaseConfig,
    KernelConfig,
    LoggingConfig,
    NotificationsConfig,
)

_SECTIONS: dict[str, type] = {
    "database": DatabaseConfig,
    "logging": LoggingConfig,
    "notifications": NotificationsConfig,
}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ConfigError: if the document is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: top level must be a mapping")
    return data


def _parse_section(name: str, data: Any) -> Any:
    cls = _SECTIONS[name]
    if data is None:
        return cls()
    if not isinstance(data, dict):
        raise ConfigError(f"{name}: expected a mapping, got {type(data).__name__}")
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(f"{name}: unknown keys {', '.join(unknown)}")
    try:
        return cls(**data)
    except TypeError as exc:
        raise ConfigError(f"{name}: {exc}") from exc


def parse_config(data: dict[str, Any], source: str | None = None) -> KernelConfig:
    """Parse a raw mapping into a ``KernelConfig``."""
    unknown = sorted(set(data) - _SECTIONS.keys())
    if unknown:
        raise ConfigError(f"unknown configuration sections: {', '.join(unknown)}")
    return KernelConfig(
        database=_parse_section("database", data.get("database")),
        logging=_parse_section("logging", data.get("logging")),
        notifications=_parse_section("notifications", data.get("notifications")),
        source=source,
    )


def apply_env_overrides(config: KernelConfig, environ: Mapping[str, str]) -> KernelConfig:
    """``DATABASE_URL`` replaces the configured database URL."""
    url = environ.get("DATABASE_URL")
    if url:
        return replace(config, database=replace(config.database, url=url))
    return config
