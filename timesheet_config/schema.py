"""
KernelConfig schema.

Frozen dataclasses for the runtime configuration of the timesheet kernel.
The loader parses YAML into these types; the bridges turn them into kernel
objects.
"""

from __future__ import annotations

from dataclasses import dataclass, field

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class ConfigError(ValueError):
    """A configuration value is missing or invalid."""


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DatabaseConfig:
    url: str = "sqlite://"
    echo: bool = False
    pool_size: int = 20
    max_overflow: int = 10
    pool_timeout: int = 30
    pool_recycle: int = 1800

    def __post_init__(self) -> None:
        if not self.url:
            raise ConfigError("database.url must not be empty")
        for name in ("pool_size", "max_overflow", "pool_timeout", "pool_recycle"):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                raise ConfigError(f"database.{name} must be a non-negative integer, got {value!r}")
        if self.pool_size == 0:
            raise ConfigError("database.pool_size must be at least 1")


@dataclass(frozen=True)
class LoggingConfig:
    level: str = "INFO"

    def __post_init__(self) -> None:
        if self.level.upper() not in _LOG_LEVELS:
            raise ConfigError(
                f"logging.level must be one of {', '.join(_LOG_LEVELS)}, got {self.level!r}"
            )


@dataclass(frozen=True)
class NotificationsConfig:
    root_domain: str = "http://localhost:8080"
    sender: str | None = None
    max_parallel: int = 4

    def __post_init__(self) -> None:
        if not self.root_domain:
            raise ConfigError("notifications.root_domain must not be empty")
        if not isinstance(self.max_parallel, int) or self.max_parallel < 1:
            raise ConfigError(
                f"notifications.max_parallel must be a positive integer, got {self.max_parallel!r}"
            )


@dataclass(frozen=True)
class KernelConfig:
    """The complete runtime configuration."""

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    notifications: NotificationsConfig = field(default_factory=NotificationsConfig)
    source: str | None = None
