"""
EntryService -- owner-side operations on timesheets and entries.

Responsibility:
    Get-or-create weekly timesheets, create/update/delete entries (running
    the Entry Validator), and submit timesheets into the approval pipeline.

Architecture position:
    Kernel > Services.  Flush-only.  Delegates pipeline entry to
    ApprovalPipeline.

Invariants enforced:
    - start < end for every entry with an end.
    - No overlapping entries on one timesheet (checked on direct
      create/update only, never on pipeline transitions).
    - Only the timesheet owner edits its entries, and only while the entry
      is Open or Rejected.
    - Clients set entry status to Open or Submitted only.

Failure modes:
    - TimesheetNotFoundError / EntryNotFoundError / ProjectNotFoundError
    - NotTimesheetOwnerError
    - NaiveTimestampError / InvalidRangeError / EntryOverlapError
    - MissingEndTimeError
    - InvalidEntryStatusError / ProjectInactiveError / EntryLockedError
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import delete, select

from timesheet_kernel.domain.clock import week_start
from timesheet_kernel.domain.dtos import EntryDraft
from timesheet_kernel.domain.entry_rules import (
    EntryWindow,
    check_entry_window,
    require_aware,
)
from timesheet_kernel.domain.statuses import (
    CLIENT_SETTABLE_ENTRY_STATUSES,
    EDITABLE_ENTRY_STATUSES,
    EntryStatus,
    TimesheetStatus,
)
from timesheet_kernel.exceptions import (
    EntryLockedError,
    EntryNotFoundError,
    InvalidEntryStatusError,
    MissingEndTimeError,
    NotTimesheetOwnerError,
    ProjectInactiveError,
    ProjectNotFoundError,
    TimesheetNotFoundError,
)
from timesheet_kernel.logging_config import get_logger
from timesheet_kernel.models.ledger import LedgerEntry
from timesheet_kernel.models.project import Project
from timesheet_kernel.models.timesheet import Entry, Timesheet
from timesheet_kernel.services.approval_pipeline import (
    ApprovalPipeline,
    transition_entry,
)
from timesheet_kernel.services.base import BaseService

logger = get_logger("services.entry")


class EntryService(BaseService):
    """Timesheet-owner operations."""

    def __init__(self, session, pipeline: ApprovalPipeline, clock=None):
        super().__init__(session, clock)
        self.pipeline = pipeline

    # ------------------------------------------------------------------
    # Timesheets
    # ------------------------------------------------------------------

    def open_timesheet(self, employee_id: UUID, as_of: datetime | None = None) -> Timesheet:
        """Get or create the employee's timesheet for the week containing ``as_of``."""
        if as_of is not None:
            require_aware("as_of", as_of)
        week = week_start(as_of or self.clock.now())
        timesheet = self.session.scalars(
            select(Timesheet).where(
                Timesheet.employee_id == employee_id,
                Timesheet.week_start == week,
            )
        ).one_or_none()
        if timesheet is not None:
            return timesheet

        timesheet = Timesheet(
            employee_id=employee_id,
            week_start=week,
            status=TimesheetStatus.OPEN.value,
        )
        self.session.add(timesheet)
        self.session.flush()
        logger.info(
            "timesheet_created",
            extra={
                "timesheet_id": str(timesheet.id),
                "employee_id": str(employee_id),
                "week_start": week,
            },
        )
        return timesheet

    def owned_timesheet(self, timesheet_id: UUID, actor_id: UUID) -> Timesheet:
        timesheet = self.session.get(Timesheet, timesheet_id)
        if timesheet is None:
            raise TimesheetNotFoundError(str(timesheet_id))
        if timesheet.employee_id != actor_id:
            raise NotTimesheetOwnerError(str(timesheet_id), str(actor_id))
        return timesheet

    def _sibling_windows(self, timesheet_id: UUID) -> list[EntryWindow]:
        entries = self.session.scalars(
            select(Entry).where(Entry.timesheet_id == timesheet_id)
        ).all()
        return [e.window() for e in entries]

    def _active_project(self, project_id: UUID) -> Project:
        project = self.session.get(Project, project_id)
        if project is None:
            raise ProjectNotFoundError(str(project_id))
        if not project.active:
            raise ProjectInactiveError(str(project_id))
        return project

    # ------------------------------------------------------------------
    # Entries
    # ------------------------------------------------------------------

    def save_entry(self, draft: EntryDraft, actor_id: UUID) -> Entry:
        """
        Create or update an entry.

        A requested status of Submitted starts the approval pipeline, so the
        returned entry may already be Pending or Approved.
        """
        requested = EntryStatus(draft.status)
        if requested not in CLIENT_SETTABLE_ENTRY_STATUSES:
            raise InvalidEntryStatusError(str(getattr(draft.status, "value", draft.status)))

        timesheet = self.owned_timesheet(draft.timesheet_id, actor_id)

        if draft.is_create:
            entry = None
        else:
            entry = self.session.get(Entry, draft.entry_id)
            if entry is None:
                raise EntryNotFoundError(str(draft.entry_id))
            self.owned_timesheet(entry.timesheet_id, actor_id)
            if entry.entry_status not in EDITABLE_ENTRY_STATUSES:
                raise EntryLockedError(str(entry.id), entry.status)

        self._active_project(draft.project_id)

        window = EntryWindow(start=draft.start, end=draft.end, entry_id=draft.entry_id)
        check_entry_window(timesheet.id, window, self._sibling_windows(timesheet.id))

        if requested is EntryStatus.SUBMITTED and draft.end is None:
            raise MissingEndTimeError([str(draft.entry_id or "new entry")])

        if entry is None:
            entry = Entry(
                timesheet_id=timesheet.id,
                project_id=draft.project_id,
                start_time=draft.start,
                end_time=draft.end,
                status=EntryStatus.OPEN.value,
            )
            self.session.add(entry)
            event = "entry_created"
        else:
            entry.timesheet_id = timesheet.id
            entry.project_id = draft.project_id
            entry.start_time = draft.start
            entry.end_time = draft.end
            entry.status = EntryStatus.OPEN.value
            event = "entry_updated"
        self.session.flush()

        logger.info(
            event,
            extra={
                "entry_id": str(entry.id),
                "timesheet_id": str(timesheet.id),
                "project_id": str(draft.project_id),
                "requested_status": requested.value,
            },
        )

        if requested is EntryStatus.SUBMITTED:
            transition_entry(entry, EntryStatus.SUBMITTED)
            self.pipeline.start(entry)

        return entry

    def delete_entry(self, entry_id: UUID, actor_id: UUID) -> UUID:
        """Delete an Open or Rejected entry with its ledger history.  Returns its timesheet id."""
        entry = self.session.get(Entry, entry_id)
        if entry is None:
            raise EntryNotFoundError(str(entry_id))
        self.owned_timesheet(entry.timesheet_id, actor_id)
        if entry.entry_status not in EDITABLE_ENTRY_STATUSES:
            raise EntryLockedError(str(entry.id), entry.status)

        timesheet_id = entry.timesheet_id
        self.session.execute(delete(LedgerEntry).where(LedgerEntry.entry_id == entry_id))
        self.session.delete(entry)
        self.session.flush()

        logger.info(
            "entry_deleted",
            extra={"entry_id": str(entry_id), "timesheet_id": str(timesheet_id)},
        )
        return timesheet_id

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def submit_timesheet(self, timesheet_id: UUID, actor_id: UUID) -> Timesheet:
        """
        Submit every Open or Rejected entry of the timesheet.

        Entries already in the pipeline or approved are left alone.  Every
        entry must have an end time.
        """
        timesheet = self.owned_timesheet(timesheet_id, actor_id)
        entries = self.session.scalars(
            select(Entry)
            .where(Entry.timesheet_id == timesheet_id)
            .order_by(Entry.start_time)
        ).all()

        missing = [str(e.id) for e in entries if e.end_time is None]
        if missing:
            raise MissingEndTimeError(missing)

        submitted = 0
        for entry in entries:
            if entry.entry_status in EDITABLE_ENTRY_STATUSES:
                transition_entry(entry, EntryStatus.SUBMITTED)
                self.pipeline.start(entry)
                submitted += 1

        self.session.flush()
        logger.info(
            "timesheet_submitted",
            extra={
                "timesheet_id": str(timesheet_id),
                "entry_count": len(entries),
                "submitted_count": submitted,
            },
        )
        return timesheet
