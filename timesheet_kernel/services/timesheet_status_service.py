"""
TimesheetStatusService -- writes derived timesheet status.

Responsibility:
    Loads the entry statuses of the given timesheets, runs the pure
    Aggregator, and stores the result.  This is the only writer of
    ``Timesheet.status`` apart from the explicit submit of an empty
    timesheet.

Architecture position:
    Kernel > Services.  Flush-only.

Invariants enforced:
    Timesheet status is a deterministic function of its entries and is
    recomputed in the same transaction as the entry change.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import select

from timesheet_kernel.domain.aggregation import aggregate
from timesheet_kernel.domain.statuses import TimesheetStatus
from timesheet_kernel.logging_config import get_logger
from timesheet_kernel.models.timesheet import Entry, Timesheet
from timesheet_kernel.services.base import BaseService

logger = get_logger("services.timesheet_status")


class TimesheetStatusService(BaseService):

    def current_statuses(self, timesheet_ids: Iterable[UUID]) -> dict[UUID, TimesheetStatus]:
        ids = set(timesheet_ids)
        if not ids:
            return {}
        rows = self.session.execute(
            select(Timesheet.id, Timesheet.status).where(Timesheet.id.in_(list(ids)))
        ).all()
        return {row.id: TimesheetStatus(row.status) for row in rows}

    def recompute(self, timesheet_ids: Iterable[UUID]) -> dict[UUID, TimesheetStatus]:
        """
        Recompute and store the status of each timesheet.

        Returns the new status per timesheet id.  Ids that no longer exist
        are skipped.
        """
        ids = set(timesheet_ids)
        if not ids:
            return {}

        timesheets = self.session.scalars(
            select(Timesheet).where(Timesheet.id.in_(list(ids)))
        ).all()

        statuses: dict[UUID, list[str]] = defaultdict(list)
        for timesheet_id, status in self.session.execute(
            select(Entry.timesheet_id, Entry.status).where(Entry.timesheet_id.in_(list(ids)))
        ):
            statuses[timesheet_id].append(status)

        result: dict[UUID, TimesheetStatus] = {}
        for timesheet in timesheets:
            new_status = aggregate(statuses.get(timesheet.id, ()))
            if timesheet.status != new_status.value:
                logger.info(
                    "timesheet_status_changed",
                    extra={
                        "timesheet_id": str(timesheet.id),
                        "from_status": timesheet.status,
                        "to_status": new_status.value,
                    },
                )
                timesheet.status = new_status.value
            result[timesheet.id] = new_status

        self.session.flush()
        return result

    def mark_submitted(self, timesheet: Timesheet) -> None:
        """Explicit submit of a timesheet that has no entries."""
        timesheet.status = TimesheetStatus.SUBMITTED.value
        self.session.flush()
