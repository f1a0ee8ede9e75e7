"""Database layer - engine, base classes, and column types."""

from timesheet_kernel.db.base import UUID, Base, TrackedBase
from timesheet_kernel.db.engine import (
    build_engine,
    create_tables,
    get_engine,
    get_session,
    get_session_factory,
    init_engine_from_url,
    session_scope,
)
from timesheet_kernel.db.types import UTCDateTime, UUIDString

__all__ = [
    "build_engine",
    "init_engine_from_url",
    "get_engine",
    "get_session",
    "get_session_factory",
    "session_scope",
    "create_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UTCDateTime",
    "UUID",
]
