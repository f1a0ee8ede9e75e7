"""
Module: timesheet_kernel.selectors.timesheet_selector
Responsibility: Timesheet reads and the entry snapshots the
    WorkflowCoordinator diffs around every mutation.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - ``entry_snapshots(..., lock=True)`` takes SELECT ... FOR UPDATE on every
      entry in scope, so concurrent mutations of the same rows serialize at
      READ COMMITTED.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.orm import selectinload

from timesheet_kernel.domain.dtos import EntryInfo, TimesheetInfo
from timesheet_kernel.domain.snapshots import EntrySnapshot, index_snapshots
from timesheet_kernel.domain.statuses import EntryStatus
from timesheet_kernel.exceptions import TimesheetNotFoundError
from timesheet_kernel.models.timesheet import Entry, Timesheet
from timesheet_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class SnapshotScope:
    """Which entries a mutation may touch."""

    entry_ids: frozenset[UUID] = field(default_factory=frozenset)
    timesheet_ids: frozenset[UUID] = field(default_factory=frozenset)
    project_ids: frozenset[UUID] = field(default_factory=frozenset)

    @property
    def is_empty(self) -> bool:
        return not (self.entry_ids or self.timesheet_ids or self.project_ids)


class TimesheetSelector(BaseSelector):

    def get(self, timesheet_id: UUID) -> TimesheetInfo:
        timesheet = self.session.scalars(
            select(Timesheet)
            .where(Timesheet.id == timesheet_id)
            .options(selectinload(Timesheet.entries))
        ).one_or_none()
        if timesheet is None:
            raise TimesheetNotFoundError(str(timesheet_id))
        return timesheet.to_dto()

    def entries(self, timesheet_id: UUID) -> list[EntryInfo]:
        rows = self.session.scalars(
            select(Entry)
            .where(Entry.timesheet_id == timesheet_id)
            .order_by(Entry.start_time)
        ).all()
        return [row.to_dto() for row in rows]

    def entry_snapshots(
        self,
        scope: SnapshotScope,
        lock: bool = False,
    ) -> dict[UUID, EntrySnapshot]:
        if scope.is_empty:
            return {}

        clauses = []
        if scope.entry_ids:
            clauses.append(Entry.id.in_(list(scope.entry_ids)))
        if scope.timesheet_ids:
            clauses.append(Entry.timesheet_id.in_(list(scope.timesheet_ids)))
        if scope.project_ids:
            clauses.append(Entry.project_id.in_(list(scope.project_ids)))

        stmt = select(Entry.id, Entry.timesheet_id, Entry.status).where(or_(*clauses))
        if lock:
            stmt = stmt.with_for_update()

        return index_snapshots(
            EntrySnapshot(
                entry_id=row.id,
                timesheet_id=row.timesheet_id,
                status=EntryStatus(row.status),
            )
            for row in self.session.execute(stmt)
        )

    def timesheets_by_id(self, timesheet_ids: Iterable[UUID]) -> dict[UUID, TimesheetInfo]:
        ids = list(set(timesheet_ids))
        if not ids:
            return {}
        rows = self.session.scalars(
            select(Timesheet)
            .where(Timesheet.id.in_(ids))
            .options(selectinload(Timesheet.entries))
        ).all()
        return {row.id: row.to_dto() for row in rows}
