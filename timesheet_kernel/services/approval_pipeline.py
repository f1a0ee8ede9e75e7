"""
ApprovalPipeline -- advances entries through their project's stages.

Responsibility:
    * ``start``: a Submitted entry either auto-approves (project has no
      stages) or gets a Pending ledger entry at the first stage.
    * ``batch_approve``: resolves a batch of Pending ledger entries for one
      actor, creating the next-stage request or approving the entry.
    * ``reject_one``: resolves one ledger entry to Rejected and rejects the
      entry.

Architecture position:
    Kernel > Services.  Flush-only; the WorkflowCoordinator owns the
    transaction and recomputes timesheet status afterwards.

Invariants enforced:
    - At most one Pending ledger entry per entry (also a DB index).
    - Resolved ledger entries are never modified.
    - A batch is validated completely before any row changes, so a
      failing batch applies nothing.

Batch validation order:
    1. every id exists                      (LedgerEntryNotFoundError)
    2. actor approves every referenced stage (NotStageApproverError)
    3. one attributable actor                (MultipleActorsError)
    4. every row still Pending               (LedgerEntryAlreadyResolvedError)

    A row is attributed to its recorded ``approver_id`` when one is set,
    otherwise to the acting identity.
"""

from __future__ import annotations

from collections.abc import Sequence
from uuid import UUID

from sqlalchemy import select

from timesheet_kernel.domain.stage_rules import first_stage, next_stage
from timesheet_kernel.domain.dtos import StageInfo
from timesheet_kernel.domain.statuses import (
    EntryStatus,
    LedgerStatus,
    can_transition,
)
from timesheet_kernel.exceptions import (
    EntryLockedError,
    LedgerEntryAlreadyResolvedError,
    LedgerEntryNotFoundError,
    MultipleActorsError,
    NotStageApproverError,
    RejectionCommentRequiredError,
)
from timesheet_kernel.logging_config import get_logger
from timesheet_kernel.models.ledger import LedgerEntry
from timesheet_kernel.models.project import Stage
from timesheet_kernel.models.timesheet import Entry
from timesheet_kernel.services.base import BaseService

logger = get_logger("services.approval_pipeline")


def transition_entry(entry: Entry, target: EntryStatus) -> None:
    """Move ``entry`` to ``target`` or raise EntryLockedError."""
    current = entry.entry_status
    if not can_transition(current, target):
        raise EntryLockedError(str(entry.id), entry.status)
    entry.status = target.value


class ApprovalPipeline(BaseService):

    def _project_stages(self, project_id: UUID) -> list[StageInfo]:
        stages = self.session.scalars(
            select(Stage).where(Stage.project_id == project_id).order_by(Stage.sequence)
        ).all()
        return [s.to_dto() for s in stages]

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def start(self, entry: Entry) -> LedgerEntry | None:
        """
        Enter the pipeline for a Submitted entry.

        Returns the created stage-0 ledger entry, or None when the project
        has no stages and the entry was approved immediately.
        """
        stage = first_stage(self._project_stages(entry.project_id))
        if stage is None:
            transition_entry(entry, EntryStatus.APPROVED)
            self.session.flush()
            logger.info(
                "entry_auto_approved",
                extra={"entry_id": str(entry.id), "project_id": str(entry.project_id)},
            )
            return None

        ledger_entry = LedgerEntry(
            entry_id=entry.id,
            stage_id=stage.id,
            status=LedgerStatus.PENDING.value,
        )
        self.session.add(ledger_entry)
        transition_entry(entry, EntryStatus.PENDING)
        self.session.flush()
        logger.info(
            "approval_requested",
            extra={
                "entry_id": str(entry.id),
                "stage_id": str(stage.id),
                "stage_sequence": stage.sequence,
            },
        )
        return ledger_entry

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def _load_ledger_entries(self, ledger_entry_ids: Sequence[UUID]) -> list[LedgerEntry]:
        ids = list(dict.fromkeys(ledger_entry_ids))
        rows = self.session.scalars(
            select(LedgerEntry).where(LedgerEntry.id.in_(ids)).with_for_update()
        ).all()
        by_id = {row.id: row for row in rows}
        missing = [str(i) for i in ids if i not in by_id]
        if missing:
            raise LedgerEntryNotFoundError(missing)
        return [by_id[i] for i in ids]

    @staticmethod
    def _check_approver(row: LedgerEntry, actor_id: UUID) -> None:
        if actor_id not in row.stage.approver_ids:
            raise NotStageApproverError(str(row.stage_id), str(actor_id))

    @staticmethod
    def _check_pending(row: LedgerEntry) -> None:
        if row.ledger_status is not LedgerStatus.PENDING:
            raise LedgerEntryAlreadyResolvedError(str(row.id), row.status)

    def batch_approve(
        self,
        ledger_entry_ids: Sequence[UUID],
        actor_id: UUID,
    ) -> list[LedgerEntry]:
        """
        Approve every ledger entry in the batch on behalf of ``actor_id``.

        Returns the resolved rows in request order.  New next-stage rows are
        flushed but not returned.
        """
        rows = self._load_ledger_entries(ledger_entry_ids)

        for row in rows:
            self._check_approver(row, actor_id)

        actors = {row.approver_id or actor_id for row in rows}
        if len(actors) > 1:
            raise MultipleActorsError(sorted(str(a) for a in actors))

        for row in rows:
            self._check_pending(row)

        now = self.clock.now()
        for row in rows:
            row.status = LedgerStatus.APPROVED.value
            row.approver_id = actor_id
            row.responded_at = now
        # Resolve before inserting successors so the one-pending index holds.
        self.session.flush()

        stages_by_project: dict[UUID, list[StageInfo]] = {}
        for row in rows:
            entry = row.entry
            if entry.project_id not in stages_by_project:
                stages_by_project[entry.project_id] = self._project_stages(entry.project_id)
            following = next_stage(stages_by_project[entry.project_id], row.stage.sequence)

            if following is None:
                transition_entry(entry, EntryStatus.APPROVED)
                entry.final_approver_id = actor_id
                logger.info(
                    "entry_approved",
                    extra={"entry_id": str(entry.id), "final_approver_id": str(actor_id)},
                )
            else:
                self.session.add(
                    LedgerEntry(
                        entry_id=entry.id,
                        stage_id=following.id,
                        status=LedgerStatus.PENDING.value,
                    )
                )
                logger.info(
                    "approval_advanced",
                    extra={
                        "entry_id": str(entry.id),
                        "from_stage_id": str(row.stage_id),
                        "to_stage_id": str(following.id),
                    },
                )

        self.session.flush()
        logger.info(
            "ledger_entries_approved",
            extra={"count": len(rows), "approver_id": str(actor_id)},
        )
        return rows

    def reject_one(
        self,
        ledger_entry_id: UUID,
        actor_id: UUID,
        comment: str,
    ) -> LedgerEntry:
        """Reject one ledger entry with a mandatory comment."""
        text = (comment or "").strip()
        if not text:
            raise RejectionCommentRequiredError(str(ledger_entry_id))

        (row,) = self._load_ledger_entries([ledger_entry_id])
        self._check_approver(row, actor_id)
        self._check_pending(row)

        row.status = LedgerStatus.REJECTED.value
        row.approver_id = actor_id
        row.responded_at = self.clock.now()
        row.comment = text
        transition_entry(row.entry, EntryStatus.REJECTED)
        self.session.flush()

        logger.info(
            "ledger_entry_rejected",
            extra={
                "ledger_entry_id": str(row.id),
                "entry_id": str(row.entry_id),
                "stage_id": str(row.stage_id),
                "approver_id": str(actor_id),
            },
        )
        return row
