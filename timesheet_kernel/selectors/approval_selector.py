"""
Module: timesheet_kernel.selectors.approval_selector
Responsibility: Read paths over the approval ledger -- an entry's decision
    history and an approver's work queue.
Architecture position: Kernel > Selectors.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select

from timesheet_kernel.domain.dtos import LedgerEntryInfo
from timesheet_kernel.domain.statuses import EntryStatus, LedgerStatus
from timesheet_kernel.exceptions import EntryNotFoundError
from timesheet_kernel.models.ledger import LedgerEntry
from timesheet_kernel.models.project import StageApprover
from timesheet_kernel.models.timesheet import Entry
from timesheet_kernel.selectors.base import BaseSelector


class ApprovalSelector(BaseSelector):

    def entry_history(self, entry_id: UUID) -> list[LedgerEntryInfo]:
        """
        Resolved ledger entries for one entry, newest response first.

        Pending rows are not history and are excluded.

        Raises:
            EntryNotFoundError: if the entry does not exist.
        """
        if self.session.get(Entry, entry_id) is None:
            raise EntryNotFoundError(str(entry_id))

        rows = self.session.scalars(
            select(LedgerEntry)
            .where(
                LedgerEntry.entry_id == entry_id,
                LedgerEntry.status != LedgerStatus.PENDING.value,
            )
            .order_by(LedgerEntry.responded_at.desc(), LedgerEntry.created_at.desc())
        ).all()
        return [row.to_dto() for row in rows]

    def pending_for_approver(self, approver_id: UUID) -> list[LedgerEntryInfo]:
        """Pending ledger entries on stages ``approver_id`` approves, oldest first."""
        rows = self.session.scalars(
            select(LedgerEntry)
            .join(StageApprover, StageApprover.stage_id == LedgerEntry.stage_id)
            .join(Entry, Entry.id == LedgerEntry.entry_id)
            .where(
                StageApprover.approver_id == approver_id,
                LedgerEntry.status == LedgerStatus.PENDING.value,
                Entry.status != EntryStatus.REJECTED.value,
            )
            .order_by(LedgerEntry.created_at, LedgerEntry.id)
        ).all()
        return [row.to_dto() for row in rows]

    def entry_ids_for(self, ledger_entry_ids: list[UUID]) -> set[UUID]:
        """Entry ids referenced by the given ledger entries (unknown ids ignored)."""
        if not ledger_entry_ids:
            return set()
        return set(
            self.session.scalars(
                select(LedgerEntry.entry_id).where(LedgerEntry.id.in_(ledger_entry_ids))
            ).all()
        )
