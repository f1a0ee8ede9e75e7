"""
ProjectService -- project lifecycle as seen by the approval workflow.

Responsibility:
    Registers projects and deactivates them.  Deactivation is the only path
    that removes Approved entries: the project's stages, approvers, ledger
    rows and entries are all deleted, and the WorkflowCoordinator recomputes
    every timesheet that lost an entry.

Architecture position:
    Kernel > Services.  Flush-only.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import delete, select

from timesheet_kernel.exceptions import ProjectNotFoundError
from timesheet_kernel.logging_config import get_logger
from timesheet_kernel.models.ledger import LedgerEntry
from timesheet_kernel.models.project import Project, Stage
from timesheet_kernel.models.timesheet import Entry
from timesheet_kernel.services.base import BaseService

logger = get_logger("services.project")


class ProjectService(BaseService):

    def create_project(self, name: str, active: bool = True) -> Project:
        project = Project(name=name, active=active)
        self.session.add(project)
        self.session.flush()
        logger.info(
            "project_created",
            extra={"project_id": str(project.id), "project_name": name},
        )
        return project

    def deactivate_project(self, project_id: UUID) -> Project:
        """Mark inactive and delete everything hanging off the project."""
        project = self.session.scalars(
            select(Project).where(Project.id == project_id).with_for_update()
        ).one_or_none()
        if project is None:
            raise ProjectNotFoundError(str(project_id))

        entry_ids = select(Entry.id).where(Entry.project_id == project_id)
        stage_ids = select(Stage.id).where(Stage.project_id == project_id)

        # Entries and ledger rows are never loaded as objects in this session.

        ledger_deleted = self.session.execute(
            delete(LedgerEntry)
            .where(
                LedgerEntry.entry_id.in_(entry_ids)
                | LedgerEntry.stage_id.in_(stage_ids)
            )
            .execution_options(synchronize_session=False)
        ).rowcount
        entries_deleted = self.session.execute(
            delete(Entry)
            .where(Entry.project_id == project_id)
            .execution_options(synchronize_session=False)
        ).rowcount

        stage_count = len(project.stages)
        project.stages.clear()
        project.active = False
        self.session.flush()

        logger.info(
            "project_deactivated",
            extra={
                "project_id": str(project_id),
                "deleted_stage_count": stage_count,
                "deleted_entry_count": entries_deleted,
                "deleted_ledger_entry_count": ledger_deleted,
            },
        )
        return project
