"""
Before/after snapshots for the WorkflowCoordinator.

The coordinator captures an immutable snapshot of every entry an operation
may touch, applies the operation, captures again, and diffs the two to find
which timesheets need their status recomputed.  Entries that disappear
(deleted) or appear (created) count as changes, as does an entry moved to
another timesheet.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from uuid import UUID

from timesheet_kernel.domain.statuses import EntryStatus, TimesheetStatus


@dataclass(frozen=True)
class EntrySnapshot:
    entry_id: UUID
    timesheet_id: UUID
    status: EntryStatus


@dataclass(frozen=True)
class SnapshotDiff:
    """Entries whose status changed and the timesheets that hold them."""

    changed_entry_ids: frozenset[UUID]
    touched_timesheet_ids: frozenset[UUID]

    @property
    def is_empty(self) -> bool:
        return not self.changed_entry_ids


def index_snapshots(
    snapshots: Iterable[EntrySnapshot],
) -> dict[UUID, EntrySnapshot]:
    return {s.entry_id: s for s in snapshots}


def diff(
    before: Mapping[UUID, EntrySnapshot],
    after: Mapping[UUID, EntrySnapshot],
) -> SnapshotDiff:
    """Compare two snapshot maps keyed by entry id."""
    changed: set[UUID] = set()
    timesheets: set[UUID] = set()

    for entry_id in before.keys() | after.keys():
        old = before.get(entry_id)
        new = after.get(entry_id)
        if old == new:
            continue
        changed.add(entry_id)
        if old is not None:
            timesheets.add(old.timesheet_id)
        if new is not None:
            timesheets.add(new.timesheet_id)

    return SnapshotDiff(
        changed_entry_ids=frozenset(changed),
        touched_timesheet_ids=frozenset(timesheets),
    )


def needs_attention_transitions(
    before: Mapping[UUID, TimesheetStatus],
    after: Mapping[UUID, TimesheetStatus],
) -> frozenset[UUID]:
    """Timesheets that became Needs Attention (and were not already)."""
    return frozenset(
        timesheet_id
        for timesheet_id, status in after.items()
        if status is TimesheetStatus.NEEDS_ATTENTION
        and before.get(timesheet_id) is not TimesheetStatus.NEEDS_ATTENTION
    )
