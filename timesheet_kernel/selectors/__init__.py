"""Read-only selectors for the timesheet kernel."""

from timesheet_kernel.selectors.approval_selector import ApprovalSelector
from timesheet_kernel.selectors.base import BaseSelector
from timesheet_kernel.selectors.timesheet_selector import SnapshotScope, TimesheetSelector

__all__ = [
    "BaseSelector",
    "ApprovalSelector",
    "TimesheetSelector",
    "SnapshotScope",
]
