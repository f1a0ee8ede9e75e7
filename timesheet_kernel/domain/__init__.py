"""
Pure domain layer.

Value objects and rules for the approval workflow with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- I/O (other than SystemClock)

All domain objects are immutable and deterministic.
"""

from timesheet_kernel.domain.aggregation import aggregate
from timesheet_kernel.domain.clock import (
    Clock,
    DeterministicClock,
    SystemClock,
    week_start,
)
from timesheet_kernel.domain.dtos import (
    EntryDraft,
    EntryInfo,
    LedgerEntryInfo,
    ProjectInfo,
    StageInfo,
    StageSpec,
    TimesheetInfo,
)
from timesheet_kernel.domain.entry_rules import (
    EntryWindow,
    check_entry_window,
    entries_overlap,
    find_overlap,
    require_aware,
    validate_range,
)
from timesheet_kernel.domain.snapshots import EntrySnapshot, SnapshotDiff, diff
from timesheet_kernel.domain.stage_rules import (
    PlannedStage,
    ReconfigurationPlan,
    first_stage,
    next_stage,
    plan_reconfiguration,
    plan_renames,
)
from timesheet_kernel.domain.statuses import (
    EntryStatus,
    LedgerStatus,
    TimesheetStatus,
)

__all__ = [
    "aggregate",
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "week_start",
    "EntryDraft",
    "EntryInfo",
    "LedgerEntryInfo",
    "ProjectInfo",
    "StageInfo",
    "StageSpec",
    "TimesheetInfo",
    "EntryWindow",
    "check_entry_window",
    "entries_overlap",
    "find_overlap",
    "require_aware",
    "validate_range",
    "EntrySnapshot",
    "SnapshotDiff",
    "diff",
    "PlannedStage",
    "ReconfigurationPlan",
    "first_stage",
    "next_stage",
    "plan_reconfiguration",
    "plan_renames",
    "EntryStatus",
    "LedgerStatus",
    "TimesheetStatus",
]
