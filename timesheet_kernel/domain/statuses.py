"""
Status enumerations for entries, ledger entries and timesheets.

Responsibility
--------------
Closed enumerations for every status column plus the entry lifecycle state
machine.  Values are the human-readable strings stored in the database.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* ``ENTRY_TRANSITIONS`` defines the only legal entry status changes.
  Approved is terminal.
* An unrecognised stored entry status maps to ``EntryStatus.UNKNOWN``
  instead of raising, so the Aggregator can route it to Needs Attention.
"""

from __future__ import annotations

from enum import Enum


class EntryStatus(str, Enum):
    """Lifecycle states of a time entry."""

    OPEN = "Open"
    SUBMITTED = "Submitted"
    PENDING = "Pending"
    REJECTED = "Rejected"
    APPROVED = "Approved"
    UNKNOWN = "Unknown"

    @classmethod
    def _missing_(cls, value: object) -> EntryStatus:
        return cls.UNKNOWN


class LedgerStatus(str, Enum):
    """States of one decision request (entry, stage)."""

    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class TimesheetStatus(str, Enum):
    """Derived timesheet states."""

    OPEN = "Open"
    SUBMITTED = "Submitted"
    UNDER_REVIEW = "Under Review"
    APPROVED = "Approved"
    NEEDS_ATTENTION = "Needs Attention"


# Statuses a persisted entry may hold (UNKNOWN is never written).
PERSISTED_ENTRY_STATUSES: tuple[EntryStatus, ...] = tuple(
    s for s in EntryStatus if s is not EntryStatus.UNKNOWN
)

# Entries waiting on the approval pipeline.
IN_FLIGHT_ENTRY_STATUSES: frozenset[EntryStatus] = frozenset({
    EntryStatus.SUBMITTED,
    EntryStatus.PENDING,
})

# Statuses the owner may edit or delete in.
EDITABLE_ENTRY_STATUSES: frozenset[EntryStatus] = frozenset({
    EntryStatus.OPEN,
    EntryStatus.REJECTED,
})

# Statuses a client may request directly on create/update.
CLIENT_SETTABLE_ENTRY_STATUSES: frozenset[EntryStatus] = frozenset({
    EntryStatus.OPEN,
    EntryStatus.SUBMITTED,
})

ENTRY_TRANSITIONS: dict[EntryStatus, frozenset[EntryStatus]] = {
    EntryStatus.OPEN: frozenset({EntryStatus.SUBMITTED}),
    EntryStatus.SUBMITTED: frozenset({
        EntryStatus.PENDING,
        EntryStatus.APPROVED,
        EntryStatus.OPEN,
    }),
    EntryStatus.PENDING: frozenset({
        EntryStatus.APPROVED,
        EntryStatus.REJECTED,
        EntryStatus.OPEN,
    }),
    EntryStatus.REJECTED: frozenset({
        EntryStatus.SUBMITTED,
        EntryStatus.OPEN,
    }),
    EntryStatus.APPROVED: frozenset(),
    EntryStatus.UNKNOWN: frozenset({EntryStatus.OPEN}),
}


def can_transition(current: EntryStatus, target: EntryStatus) -> bool:
    """True if ``current -> target`` is a legal entry transition (or a no-op)."""
    return current == target or target in ENTRY_TRANSITIONS.get(current, frozenset())
