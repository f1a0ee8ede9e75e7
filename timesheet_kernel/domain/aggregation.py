"""
Timesheet Status Aggregator.

Pure derivation of a timesheet's status from the multiset of its entries'
statuses.  First matching rule wins:

1. any Rejected or unrecognised status -> Needs Attention
2. any Open -> Open
3. Approved mixed with Submitted/Pending -> Under Review
4. all Approved -> Approved
5. all Submitted/Pending -> Submitted

A timesheet with no entries is Open.
"""

from __future__ import annotations

from collections.abc import Iterable

from timesheet_kernel.domain.statuses import (
    IN_FLIGHT_ENTRY_STATUSES,
    EntryStatus,
    TimesheetStatus,
)


def _normalise(status: EntryStatus | str) -> EntryStatus:
    if isinstance(status, EntryStatus):
        return status
    return EntryStatus(status)


def aggregate(statuses: Iterable[EntryStatus | str]) -> TimesheetStatus:
    """Derive the timesheet status for the given entry statuses."""
    present = {_normalise(s) for s in statuses}

    if not present:
        return TimesheetStatus.OPEN

    if EntryStatus.REJECTED in present or EntryStatus.UNKNOWN in present:
        return TimesheetStatus.NEEDS_ATTENTION

    if EntryStatus.OPEN in present:
        return TimesheetStatus.OPEN

    in_flight = bool(present & IN_FLIGHT_ENTRY_STATUSES)
    approved = EntryStatus.APPROVED in present

    if approved and in_flight:
        return TimesheetStatus.UNDER_REVIEW
    if approved:
        return TimesheetStatus.APPROVED
    return TimesheetStatus.SUBMITTED
