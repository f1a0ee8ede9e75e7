"""
StageReconfigurationService -- atomic replacement of a project's pipeline.

Responsibility:
    Applies a validated ``ReconfigurationPlan`` (see
    ``domain.stage_rules``): deletes removed stages with their ledger rows,
    resets in-flight entries of the project to Open, and upserts the
    requested stages with contiguous sequences.  Also handles rename-only
    changes and approver membership.

Architecture position:
    Kernel > Services.  Flush-only.

Invariants enforced:
    - Stage sequences are 0..n-1 after every operation.
    - A rename-only change (same ids, same order) never deletes a stage and
      never resets an entry.
    - Any other change resets every non-Approved entry of the project to
      Open and discards its Pending ledger rows.

Sequence updates run in two phases (temporary negative positions, then
final positions) so that UNIQUE(project_id, sequence) holds after every
flush.
"""

from __future__ import annotations

from collections.abc import Sequence
from uuid import UUID

from sqlalchemy import delete, select

from timesheet_kernel.domain.dtos import StageSpec
from timesheet_kernel.domain.stage_rules import (
    ReconfigurationPlan,
    plan_reconfiguration,
    plan_renames,
)
from timesheet_kernel.domain.statuses import EntryStatus, LedgerStatus
from timesheet_kernel.exceptions import (
    ApproverExistsError,
    ApproverNotFoundError,
    ProjectNotFoundError,
    StageNotFoundError,
)
from timesheet_kernel.logging_config import get_logger
from timesheet_kernel.models.ledger import LedgerEntry
from timesheet_kernel.models.project import Project, Stage, StageApprover
from timesheet_kernel.models.timesheet import Entry
from timesheet_kernel.services.base import BaseService

logger = get_logger("services.stage")


class StageReconfigurationService(BaseService):

    def _locked_project(self, project_id: UUID) -> Project:
        project = self.session.scalars(
            select(Project).where(Project.id == project_id).with_for_update()
        ).one_or_none()
        if project is None:
            raise ProjectNotFoundError(str(project_id))
        return project

    def _stage(self, stage_id: UUID) -> Stage:
        stage = self.session.get(Stage, stage_id)
        if stage is None:
            raise StageNotFoundError(str(stage_id))
        return stage

    @staticmethod
    def _sync_approvers(stage: Stage, approver_ids: frozenset[UUID] | None) -> None:
        if approver_ids is None:
            return
        current = {a.approver_id: a for a in stage.approvers}
        for approver_id, row in current.items():
            if approver_id not in approver_ids:
                stage.approvers.remove(row)
        for approver_id in sorted(approver_ids - current.keys(), key=str):
            stage.approvers.append(StageApprover(approver_id=approver_id))

    # ------------------------------------------------------------------
    # Full reconfiguration
    # ------------------------------------------------------------------

    def set_stages(self, project_id: UUID, specs: Sequence[StageSpec]) -> list[Stage]:
        """Replace the project's stage list.  Returns the stages in order."""
        project = self._locked_project(project_id)
        plan = plan_reconfiguration(
            project_id, [s.to_dto() for s in project.stages], specs,
        )

        reset_count = 0
        if not plan.rename_only:
            reset_count = self._discard_in_flight(project, plan)

        self._apply_plan(project, plan)

        logger.info(
            "stage_reconfiguration_applied",
            extra={
                "project_id": str(project_id),
                "rename_only": plan.rename_only,
                "stage_count": len(plan.stages),
                "deleted_stage_count": len(plan.deleted_stage_ids),
                "reset_entry_count": reset_count,
            },
        )
        return ordered_stages(project)

    def _discard_in_flight(self, project: Project, plan: ReconfigurationPlan) -> int:
        if plan.deleted_stage_ids:
            self.session.execute(
                delete(LedgerEntry).where(
                    LedgerEntry.stage_id.in_(list(plan.deleted_stage_ids))
                )
            )

        entries = self.session.scalars(
            select(Entry)
            .where(
                Entry.project_id == project.id,
                Entry.status != EntryStatus.APPROVED.value,
            )
            .with_for_update()
        ).all()
        entry_ids = [e.id for e in entries]
        if entry_ids:
            self.session.execute(
                delete(LedgerEntry).where(
                    LedgerEntry.entry_id.in_(entry_ids),
                    LedgerEntry.status == LedgerStatus.PENDING.value,
                )
            )
        for entry in entries:
            entry.status = EntryStatus.OPEN.value

        for stage in list(project.stages):
            if stage.id in plan.deleted_stage_ids:
                project.stages.remove(stage)
        self.session.flush()
        return len(entries)

    def _apply_plan(self, project: Project, plan: ReconfigurationPlan) -> None:
        by_id = {s.id: s for s in project.stages}
        kept = [(planned, by_id[planned.stage_id]) for planned in plan.stages if not planned.is_new]

        if not plan.rename_only:
            for offset, (_, stage) in enumerate(kept):
                stage.sequence = -(offset + 1)
            self.session.flush()

        for planned, stage in kept:
            stage.sequence = planned.sequence
            stage.display_name = planned.display_name
            self._sync_approvers(stage, planned.approver_ids)
        self.session.flush()

        for planned in plan.stages:
            if not planned.is_new:
                continue
            stage = Stage(sequence=planned.sequence, display_name=planned.display_name)
            project.stages.append(stage)
            self._sync_approvers(stage, planned.approver_ids or frozenset())
        self.session.flush()

    # ------------------------------------------------------------------
    # Names and approvers
    # ------------------------------------------------------------------

    def rename_stages(
        self,
        project_id: UUID,
        renames: Sequence[tuple[UUID, str]],
    ) -> list[Stage]:
        project = self._locked_project(project_id)
        names = plan_renames([s.to_dto() for s in project.stages], renames)
        for stage in project.stages:
            if stage.id in names:
                stage.display_name = names[stage.id]
        self.session.flush()
        logger.info(
            "stages_renamed",
            extra={"project_id": str(project_id), "stage_count": len(names)},
        )
        return ordered_stages(project)

    def add_approver(self, stage_id: UUID, approver_id: UUID) -> Stage:
        stage = self._stage(stage_id)
        if approver_id in stage.approver_ids:
            raise ApproverExistsError(str(stage_id), str(approver_id))
        stage.approvers.append(StageApprover(approver_id=approver_id))
        self.session.flush()
        logger.info(
            "stage_approver_added",
            extra={"stage_id": str(stage_id), "approver_id": str(approver_id)},
        )
        return stage

    def remove_approver(self, stage_id: UUID, approver_id: UUID) -> Stage:
        stage = self._stage(stage_id)
        row = next((a for a in stage.approvers if a.approver_id == approver_id), None)
        if row is None:
            raise ApproverNotFoundError(str(stage_id), str(approver_id))
        stage.approvers.remove(row)
        self.session.flush()
        logger.info(
            "stage_approver_removed",
            extra={"stage_id": str(stage_id), "approver_id": str(approver_id)},
        )
        return stage


def ordered_stages(project: Project) -> list[Stage]:
    return sorted(project.stages, key=lambda s: s.sequence)