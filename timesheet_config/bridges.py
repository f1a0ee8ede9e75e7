"""
Config -> Kernel Bridges.

Functions that turn a ``KernelConfig`` into kernel objects.  They live here
(the producer) because the kernel must NEVER import timesheet_config.

Usage:
    from timesheet_config import get_active_config
    from timesheet_config.bridges import build_coordinator

    coordinator = build_coordinator(get_active_config())
"""

from __future__ import annotations

from timesheet_config.schema import KernelConfig
from timesheet_kernel.db.engine import (
    create_tables,
    get_session_factory,
    init_engine_from_url,
)
from timesheet_kernel.domain.clock import Clock
from timesheet_kernel.logging_config import configure_logging
from timesheet_kernel.notifications import NotificationDispatcher
from timesheet_kernel.services.workflow_coordinator import (
    NotificationSettings,
    WorkflowCoordinator,
)


def init_database(config: KernelConfig, create_schema: bool = False) -> None:
    db = config.database
    engine = init_engine_from_url(
        db.url,
        echo=db.echo,
        pool_size=db.pool_size,
        max_overflow=db.max_overflow,
        pool_timeout=db.pool_timeout,
        pool_recycle=db.pool_recycle,
    )
    if create_schema:
        create_tables(engine)


def notification_settings(config: KernelConfig) -> NotificationSettings:
    n = config.notifications
    return NotificationSettings(
        root_domain=n.root_domain,
        sender=n.sender,
        max_parallel=n.max_parallel,
    )


def build_coordinator(
    config: KernelConfig,
    clock: Clock | None = None,
    dispatcher: NotificationDispatcher | None = None,
    create_schema: bool = False,
) -> WorkflowCoordinator:
    """Configure logging, initialise the engine, and wire a coordinator."""
    configure_logging(level=config.logging.level.upper())
    init_database(config, create_schema=create_schema)
    return WorkflowCoordinator(
        get_session_factory(),
        clock=clock,
        dispatcher=dispatcher,
        notifications=notification_settings(config),
    )
