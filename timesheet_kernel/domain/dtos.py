"""
Data transfer objects for the timesheet kernel.

Responsibility
--------------
Frozen value objects passed between the coordinator, the services, the
selectors and callers.  ORM models convert to these via ``to_dto()`` so that
nothing outside a transaction ever holds a live ORM row.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from uuid import UUID

from timesheet_kernel.domain.statuses import (
    EntryStatus,
    LedgerStatus,
    TimesheetStatus,
)


# =========================================================================
# Entries
# =========================================================================


@dataclass(frozen=True)
class EntryDraft:
    """Client input for creating (``entry_id is None``) or updating an entry.

    ``status`` may only be Open or Submitted; Submitted starts the approval
    pipeline immediately.
    """

    timesheet_id: UUID
    project_id: UUID
    start: datetime
    end: datetime | None = None
    status: EntryStatus = EntryStatus.OPEN
    entry_id: UUID | None = None

    @property
    def is_create(self) -> bool:
        return self.entry_id is None


@dataclass(frozen=True)
class EntryInfo:
    """Immutable view of a persisted entry."""

    id: UUID
    timesheet_id: UUID
    project_id: UUID
    start: datetime
    end: datetime | None
    status: EntryStatus
    final_approver_id: UUID | None = None


# =========================================================================
# Stages
# =========================================================================


@dataclass(frozen=True)
class StageSpec:
    """One element of a requested stage list.

    ``stage_id`` references an existing stage to keep or rename; ``None``
    creates a new stage.  ``approver_ids`` of ``None`` leaves an existing
    stage's approvers untouched (a new stage starts with none).
    """

    display_name: str
    stage_id: UUID | None = None
    approver_ids: frozenset[UUID] | None = None


@dataclass(frozen=True)
class StageInfo:
    """Immutable view of a stage and its approver set."""

    id: UUID
    project_id: UUID
    sequence: int
    display_name: str
    approver_ids: frozenset[UUID] = field(default_factory=frozenset)


@dataclass(frozen=True)
class ProjectInfo:
    id: UUID
    name: str
    active: bool
    stages: tuple[StageInfo, ...] = ()


# =========================================================================
# Ledger and timesheets
# =========================================================================


@dataclass(frozen=True)
class LedgerEntryInfo:
    """Immutable view of one decision request (entry, stage)."""

    id: UUID
    entry_id: UUID
    stage_id: UUID
    status: LedgerStatus
    approver_id: UUID | None = None
    responded_at: datetime | None = None
    comment: str | None = None
    created_at: datetime | None = None

    @property
    def is_resolved(self) -> bool:
        return self.status is not LedgerStatus.PENDING


@dataclass(frozen=True)
class TimesheetInfo:
    """Immutable view of a timesheet with its entries."""

    id: UUID
    employee_id: UUID
    week_start: datetime
    status: TimesheetStatus
    entries: tuple[EntryInfo, ...] = ()
