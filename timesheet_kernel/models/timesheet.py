"""
Module: timesheet_kernel.models.timesheet
Responsibility: ORM persistence for weekly timesheets and their time entries.
Architecture position: Kernel > Models.  May import from db/ and domain/.

Invariants enforced:
    - UNIQUE(employee_id, week_start): one timesheet per employee per week.
    - Status columns are limited to their enumerations by check constraints.
    - end_time > start_time when present (check constraint; the Entry
      Validator rejects violations earlier with a typed error).
    - Timesheet.status is derived.  Only TimesheetStatusService writes it.

Failure modes:
    - IntegrityError on duplicate week or out-of-range status.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from timesheet_kernel.db.base import TrackedBase
from timesheet_kernel.db.types import UTCDateTime, UUIDString
from timesheet_kernel.domain.dtos import EntryInfo, TimesheetInfo
from timesheet_kernel.domain.entry_rules import EntryWindow
from timesheet_kernel.domain.statuses import (
    PERSISTED_ENTRY_STATUSES,
    EntryStatus,
    TimesheetStatus,
)


def _in_list(column: str, values) -> str:
    quoted = ", ".join(f"'{v.value}'" for v in values)
    return f"{column} IN ({quoted})"


class Timesheet(TrackedBase):
    """One employee's week of logged work."""

    __tablename__ = "timesheets"

    __table_args__ = (
        UniqueConstraint("employee_id", "week_start", name="uq_timesheets_employee_week"),
        CheckConstraint(
            _in_list("status", TimesheetStatus),
            name="ck_timesheets_valid_status",
        ),
    )

    employee_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    week_start: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    status: Mapped[str] = mapped_column(
        String(50), nullable=False, default=TimesheetStatus.OPEN.value,
    )

    entries: Mapped[list["Entry"]] = relationship(
        "Entry",
        back_populates="timesheet",
        order_by="Entry.start_time",
    )

    @property
    def timesheet_status(self) -> TimesheetStatus:
        return TimesheetStatus(self.status)

    def __repr__(self) -> str:
        return (
            f"<Timesheet {self.id} employee={self.employee_id} "
            f"week={self.week_start.date()} status={self.status}>"
        )

    def to_dto(self) -> TimesheetInfo:
        return TimesheetInfo(
            id=self.id,
            employee_id=self.employee_id,
            week_start=self.week_start,
            status=self.timesheet_status,
            entries=tuple(e.to_dto() for e in self.entries),
        )


class Entry(TrackedBase):
    """
    A single logged work interval.

    Contract:
        Editable by the timesheet owner only while Open or Rejected.  All
        other status changes are made by the approval pipeline.
        ``final_approver_id`` is set only when the entry reaches Approved.
    """

    __tablename__ = "entries"

    __table_args__ = (
        CheckConstraint(
            _in_list("status", PERSISTED_ENTRY_STATUSES),
            name="ck_entries_valid_status",
        ),
        CheckConstraint(
            "end_time IS NULL OR end_time > start_time",
            name="ck_entries_strict_range",
        ),
        Index("ix_entries_timesheet", "timesheet_id"),
        Index("ix_entries_project_status", "project_id", "status"),
    )

    timesheet_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("timesheets.id", ondelete="CASCADE"),
        nullable=False,
    )
    project_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
    )
    start_time: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    end_time: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    status: Mapped[str] = mapped_column(
        String(50), nullable=False, default=EntryStatus.OPEN.value,
    )
    final_approver_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    timesheet: Mapped["Timesheet"] = relationship("Timesheet", back_populates="entries")

    @property
    def entry_status(self) -> EntryStatus:
        return EntryStatus(self.status)

    def window(self) -> EntryWindow:
        return EntryWindow(start=self.start_time, end=self.end_time, entry_id=self.id)

    def __repr__(self) -> str:
        return f"<Entry {self.id} timesheet={self.timesheet_id} status={self.status}>"

    def to_dto(self) -> EntryInfo:
        return EntryInfo(
            id=self.id,
            timesheet_id=self.timesheet_id,
            project_id=self.project_id,
            start=self.start_time,
            end=self.end_time,
            status=self.entry_status,
            final_approver_id=self.final_approver_id,
        )
