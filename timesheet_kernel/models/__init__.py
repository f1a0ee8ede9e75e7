"""ORM models for the timesheet kernel."""

from timesheet_kernel.models.ledger import LedgerEntry
from timesheet_kernel.models.project import Project, Stage, StageApprover
from timesheet_kernel.models.timesheet import Entry, Timesheet

__all__ = [
    "Project",
    "Stage",
    "StageApprover",
    "Timesheet",
    "Entry",
    "LedgerEntry",
]
