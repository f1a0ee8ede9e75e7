"""Services for the timesheet kernel (write side)."""

from timesheet_kernel.services.approval_pipeline import ApprovalPipeline
from timesheet_kernel.services.entry_service import EntryService
from timesheet_kernel.services.project_service import ProjectService
from timesheet_kernel.services.stage_service import StageReconfigurationService
from timesheet_kernel.services.timesheet_status_service import TimesheetStatusService
from timesheet_kernel.services.workflow_coordinator import (
    NotificationSettings,
    WorkflowCoordinator,
)

__all__ = [
    "ApprovalPipeline",
    "EntryService",
    "NotificationSettings",
    "ProjectService",
    "StageReconfigurationService",
    "TimesheetStatusService",
    "WorkflowCoordinator",
]
