"""
Entry Validator rules.

Responsibility
--------------
Temporal rules applied to a single candidate entry before it is persisted:
strict start/end ordering and the open-ended overlap test against the other
entries of the same timesheet.

Architecture position
---------------------
**Kernel domain layer** -- pure functions.  ZERO I/O.  The EntryService
loads sibling windows and calls ``check_entry_window``.

Overlap semantics
-----------------
An entry without an end is still running.  Candidate ``A`` does NOT overlap
existing ``B`` iff any of:

* ``A.end`` exists and ``A.end <= B.start``
* ``B.end`` exists and ``A.start >= B.end``
* ``A.end`` is absent and ``A.start < B.start``
* ``B.end`` is absent and ``A.start >= B.start``

Every other combination is an overlap.  A consequence is that two open-ended
entries never conflict with each other.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from timesheet_kernel.exceptions import (
    EntryOverlapError,
    InvalidRangeError,
    NaiveTimestampError,
)


@dataclass(frozen=True)
class EntryWindow:
    """The time interval occupied by an entry."""

    start: datetime
    end: datetime | None = None
    entry_id: UUID | None = None


def require_aware(field_name: str, value: datetime) -> None:
    if value.tzinfo is None or value.utcoffset() is None:
        raise NaiveTimestampError(field_name, value)


def validate_range(start: datetime, end: datetime | None) -> None:
    """
    Both instants must be timezone-aware, and ``end`` (when present) strictly
    after ``start``.

    Raises:
        NaiveTimestampError: ``start`` or ``end`` has no timezone.
        InvalidRangeError: ``end`` is not after ``start``.
    """
    require_aware("start", start)
    if end is None:
        return
    require_aware("end", end)
    if end <= start:
        raise InvalidRangeError(start, end)


def entries_overlap(candidate: EntryWindow, existing: EntryWindow) -> bool:
    """True if ``candidate`` overlaps ``existing`` (see module docstring)."""
    if candidate.end is not None and candidate.end <= existing.start:
        return False
    if existing.end is not None and candidate.start >= existing.end:
        return False
    if candidate.end is None and candidate.start < existing.start:
        return False
    if existing.end is None and candidate.start >= existing.start:
        return False
    return True


def find_overlap(
    candidate: EntryWindow,
    others: Iterable[EntryWindow],
) -> EntryWindow | None:
    """First window in ``others`` that ``candidate`` overlaps, skipping itself."""
    for other in others:
        if candidate.entry_id is not None and other.entry_id == candidate.entry_id:
            continue
        if entries_overlap(candidate, other):
            return other
    return None


def check_entry_window(
    timesheet_id: UUID,
    candidate: EntryWindow,
    others: Iterable[EntryWindow],
) -> None:
    """
    Run both Entry Validator rules.

    Raises:
        NaiveTimestampError: start or end has no timezone.
        InvalidRangeError: end is present and not after start.
        EntryOverlapError: another entry on the timesheet overlaps.
    """
    validate_range(candidate.start, candidate.end)
    conflict = find_overlap(candidate, others)
    if conflict is not None:
        raise EntryOverlapError(str(timesheet_id), str(conflict.entry_id))
