"""
Module: timesheet_kernel.models.ledger
Responsibility: ORM persistence for the approval ledger -- one decision
    request per (entry, stage).
Architecture position: Kernel > Models.  May import from db/, domain/ and
    exceptions.

Invariants enforced:
    - At most one Pending row per entry: partial unique index
      ``uq_ledger_entries_one_pending`` (PostgreSQL and SQLite).
    - Status values limited by check constraint.
    - A resolved row (``responded_at`` set) is immutable history: the
      ``before_update`` listener below rejects any column change.  Deletes are
      allowed so that stage removal and project deactivation can cascade.

Failure modes:
    - IntegrityError on a second Pending row for one entry.
    - ImmutabilityViolationError on UPDATE of a resolved row.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    ForeignKey,
    Index,
    String,
    Text,
    event,
    inspect,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from timesheet_kernel.db.base import TrackedBase
from timesheet_kernel.db.types import UTCDateTime, UUIDString
from timesheet_kernel.domain.dtos import LedgerEntryInfo
from timesheet_kernel.domain.statuses import LedgerStatus
from timesheet_kernel.exceptions import ImmutabilityViolationError
from timesheet_kernel.models.project import Stage
from timesheet_kernel.models.timesheet import Entry

_PENDING_ONLY = text("status = 'Pending'")


class LedgerEntry(TrackedBase):
    """
    Decision request binding one entry to one stage.

    Contract:
        Created Pending.  Resolved exactly once to Approved or Rejected, at
        which point ``approver_id`` and ``responded_at`` are set (and
        ``comment`` for rejections).  Never updated afterwards.
    """

    __tablename__ = "ledger_entries"

    __table_args__ = (
        CheckConstraint(
            "status IN ('Pending', 'Approved', 'Rejected')",
            name="ck_ledger_entries_valid_status",
        ),
        CheckConstraint(
            "(status = 'Pending') = (responded_at IS NULL)",
            name="ck_ledger_entries_resolution",
        ),
        Index(
            "uq_ledger_entries_one_pending",
            "entry_id",
            unique=True,
            postgresql_where=_PENDING_ONLY,
            sqlite_where=_PENDING_ONLY,
        ),
        Index("ix_ledger_entries_stage_status", "stage_id", "status"),
        Index("ix_ledger_entries_entry", "entry_id", "responded_at"),
    )

    entry_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("entries.id", ondelete="CASCADE"),
        nullable=False,
    )
    stage_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("stages.id", ondelete="CASCADE"),
        nullable=False,
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=LedgerStatus.PENDING.value,
    )
    approver_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    responded_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)

    entry: Mapped["Entry"] = relationship("Entry")
    stage: Mapped["Stage"] = relationship("Stage")

    @property
    def ledger_status(self) -> LedgerStatus:
        return LedgerStatus(self.status)

    @property
    def is_resolved(self) -> bool:
        return self.responded_at is not None

    def __repr__(self) -> str:
        return (
            f"<LedgerEntry {self.id} entry={self.entry_id} "
            f"stage={self.stage_id} status={self.status}>"
        )

    def to_dto(self) -> LedgerEntryInfo:
        return LedgerEntryInfo(
            id=self.id,
            entry_id=self.entry_id,
            stage_id=self.stage_id,
            status=self.ledger_status,
            approver_id=self.approver_id,
            responded_at=self.responded_at,
            comment=self.comment,
            created_at=self.created_at,
        )


# =============================================================================
# ORM-Level Immutability for Resolved Rows
# =============================================================================


def _loaded_value(target, key: str):
    history = inspect(target).attrs[key].history
    if history.deleted:
        return history.deleted[0]
    if history.unchanged:
        return history.unchanged[0]
    return None


@event.listens_for(LedgerEntry, "before_update")
def prevent_resolved_ledger_update(mapper, connection, target):
    """Reject changes to a ledger row that was already resolved when loaded."""
    state = inspect(target)
    changed = [
        attr.key
        for attr in mapper.column_attrs
        if state.attrs[attr.key].history.has_changes()
    ]
    if not changed:
        return
    if _loaded_value(target, "responded_at") is not None:
        raise ImmutabilityViolationError(
            entity_type="LedgerEntry",
            entity_id=str(target.id),
            reason=f"Resolved ledger entries are immutable -- cannot modify {', '.join(sorted(changed))}",
        )
