"""
timesheet_config -- single public entrypoint for runtime configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No kernel component reads configuration
    files or environment variables directly.

Architecture position:
    Configuration -- sits above ``timesheet_kernel``.  The kernel MUST
    NEVER import from ``timesheet_config``; ``bridges`` in this package
    turn configuration into kernel objects.

Resolution order:
    1. the ``path`` argument
    2. the ``TIMESHEET_CONFIG`` environment variable
    3. ``defaults.yaml`` shipped with this package
    ``DATABASE_URL`` then overrides the database URL.

Failure modes:
    - ``FileNotFoundError`` -- the selected file does not exist.
    - ``ConfigError`` (a ``ValueError``) -- invalid values.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path

from timesheet_config.loader import apply_env_overrides, load_yaml_file, parse_config
from timesheet_config.schema import (
    ConfigError,
    DatabaseConfig,
    KernelConfig,
    LoggingConfig,
    NotificationsConfig,
)

_logger = logging.getLogger("timesheet_kernel.config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"


def get_active_config(
    path: Path | str | None = None,
    environ: Mapping[str, str] | None = None,
) -> KernelConfig:
    """The ONLY public configuration entrypoint."""
    env = os.environ if environ is None else environ
    selected = Path(path or env.get("TIMESHEET_CONFIG") or DEFAULT_CONFIG_PATH)

    config = parse_config(load_yaml_file(selected), source=str(selected))
    config = apply_env_overrides(config, env)

    _logger.info(
        "config_loaded",
        extra={
            "config_source": str(selected),
            "database_backend": config.database.url.split(":", 1)[0],
            "log_level": config.logging.level,
        },
    )
    return config


__all__ = [
    "ConfigError",
    "DatabaseConfig",
    "KernelConfig",
    "LoggingConfig",
    "NotificationsConfig",
    "DEFAULT_CONFIG_PATH",
    "get_active_config",
]
