"""
Typed Exception Hierarchy for the Timesheet Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (the HTTP layer, batch jobs, tests) must react to workflow errors
precisely. Every error therefore has:
  1. A TYPED exception class (catch by type, not message)
  2. A CODE attribute (machine-readable, API-safe)
  3. A STATUS attribute (the HTTP-equivalent status the API layer maps to)
  4. Structured DATA attributes (ids, timestamps) instead of message parsing

Example:
    try:
        coordinator.batch_approve(ids, actor_id)
    except NotStageApproverError as e:
        api_response(status=e.status, code=e.code, stage=e.stage_id)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    TimesheetKernelError (base)
    |
    +-- ValidationError                        400
    |   +-- InvalidRangeError
    |   +-- NaiveTimestampError
    |   +-- EntryOverlapError
    |   +-- MissingEndTimeError
    |   +-- InvalidEntryStatusError
    |   +-- ProjectInactiveError
    |   +-- StageDisplayNameRequiredError
    |   +-- RejectionCommentRequiredError
    |
    +-- ForbiddenError                         403
    |   +-- NotTimesheetOwnerError
    |   +-- NotStageApproverError
    |
    +-- NotFoundError                          404
    |   +-- EntryNotFoundError
    |   +-- TimesheetNotFoundError
    |   +-- LedgerEntryNotFoundError
    |   +-- ProjectNotFoundError
    |   +-- StageNotFoundError
    |   +-- ApproverNotFoundError
    |
    +-- ConflictError                          409
    |   +-- MultipleActorsError
    |   +-- LedgerEntryAlreadyResolvedError
    |   +-- StageBelongsToAnotherProjectError
    |   +-- DuplicateStageNameError
    |   +-- ApproverExistsError
    |   +-- DuplicateStageReferenceError
    |   +-- EntryLockedError
    |   +-- ImmutabilityViolationError
    |
    +-- InternalError                          500

===============================================================================
PROPAGATION
===============================================================================

Any exception raised inside a WorkflowCoordinator transaction rolls the whole
transaction back. Kernel errors propagate unchanged; anything else is logged
with a reference token and surfaced as InternalError so callers never see raw
persistence internals. Notification failures never reach this hierarchy.
"""

from datetime import datetime


class TimesheetKernelError(Exception):
    """
    Base exception for all timesheet kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "TIMESHEET_KERNEL_ERROR"
    status: int = 500


# Category bases


class ValidationError(TimesheetKernelError):
    """Malformed or inconsistent input; rejected before anything persists."""

    code: str = "VALIDATION_ERROR"
    status: int = 400


class ForbiddenError(TimesheetKernelError):
    """Actor lacks owner or approver rights for the operation."""

    code: str = "FORBIDDEN"
    status: int = 403


class NotFoundError(TimesheetKernelError):
    """A referenced row does not exist."""

    code: str = "NOT_FOUND"
    status: int = 404


class ConflictError(TimesheetKernelError):
    """The request conflicts with current state."""

    code: str = "CONFLICT"
    status: int = 409


class InternalError(TimesheetKernelError):
    """
    Unexpected failure (usually persistence).

    The message never includes internals; `reference` correlates the
    caller-visible error with the logged traceback.
    """

    code: str = "INTERNAL_ERROR"
    status: int = 500

    def __init__(self, reference: str, operation: str):
        self.reference = reference
        self.operation = operation
        super().__init__(
            "We have encountered an error. Please contact a server admin "
            f"with reference #{reference}."
        )


# Validation


class InvalidRangeError(ValidationError):
    """Entry end time is not strictly after its start time."""

    code: str = "INVALID_RANGE"

    def __init__(self, start: datetime, end: datetime):
        self.start = start
        self.end = end
        super().__init__(
            f"Start time must be before end time: start={start.isoformat()}, "
            f"end={end.isoformat()}"
        )


class NaiveTimestampError(ValidationError):
    """A timestamp was supplied without a timezone."""

    code: str = "NAIVE_TIMESTAMP"

    def __init__(self, field_name: str, value: datetime):
        self.field_name = field_name
        self.value = value
        super().__init__(
            f"{field_name} must carry a timezone offset, got {value.isoformat()}"
        )


class EntryOverlapError(ValidationError):
    """Entry overlaps another entry on the same timesheet."""

    code: str = "ENTRY_OVERLAP"

    def __init__(self, timesheet_id: str, conflicting_entry_id: str):
        self.timesheet_id = timesheet_id
        self.conflicting_entry_id = conflicting_entry_id
        super().__init__(
            f"Entry overlaps with existing entry {conflicting_entry_id} "
            f"on timesheet {timesheet_id}"
        )


class MissingEndTimeError(ValidationError):
    """Submission requires every entry to have an end time."""

    code: str = "MISSING_END_TIME"

    def __init__(self, entry_ids: list[str]):
        self.entry_ids = entry_ids
        super().__init__(
            "Timesheet cannot be submitted -- all entries must have an end time "
            f"(missing on {len(entry_ids)} entr{'y' if len(entry_ids) == 1 else 'ies'})"
        )


class InvalidEntryStatusError(ValidationError):
    """Client attempted to set a status only the pipeline may set."""

    code: str = "INVALID_ENTRY_STATUS"

    def __init__(self, requested_status: str):
        self.requested_status = requested_status
        super().__init__(
            f"Entry status cannot be set to '{requested_status}' by a client"
        )


class ProjectInactiveError(ValidationError):
    """Entries cannot be logged against an inactive project."""

    code: str = "PROJECT_INACTIVE"

    def __init__(self, project_id: str):
        self.project_id = project_id
        super().__init__(f"Project {project_id} is inactive")


class StageDisplayNameRequiredError(ValidationError):
    """A stage spec has an empty display name."""

    code: str = "STAGE_DISPLAY_NAME_REQUIRED"

    def __init__(self, position: int):
        self.position = position
        super().__init__(f"Display name required for stage at position {position}")


class RejectionCommentRequiredError(ValidationError):
    """Rejecting a ledger entry requires a non-empty comment."""

    code: str = "REJECTION_COMMENT_REQUIRED"

    def __init__(self, ledger_entry_id: str):
        self.ledger_entry_id = ledger_entry_id
        super().__init__(f"A comment is required to reject {ledger_entry_id}")


# Forbidden


class NotTimesheetOwnerError(ForbiddenError):
    """Actor is not the employee who owns the timesheet."""

    code: str = "NOT_TIMESHEET_OWNER"

    def __init__(self, timesheet_id: str, actor_id: str):
        self.timesheet_id = timesheet_id
        self.actor_id = actor_id
        super().__init__(f"Actor {actor_id} does not own timesheet {timesheet_id}")


class NotStageApproverError(ForbiddenError):
    """Actor is not an approver on the stage of a ledger entry."""

    code: str = "NOT_STAGE_APPROVER"

    def __init__(self, stage_id: str, actor_id: str):
        self.stage_id = stage_id
        self.actor_id = actor_id
        super().__init__(f"Actor {actor_id} is not an approver on stage {stage_id}")


# Not found


class EntryNotFoundError(NotFoundError):
    code: str = "ENTRY_NOT_FOUND"

    def __init__(self, entry_id: str):
        self.entry_id = entry_id
        super().__init__(f"Entry not found: {entry_id}")


class TimesheetNotFoundError(NotFoundError):
    code: str = "TIMESHEET_NOT_FOUND"

    def __init__(self, timesheet_id: str):
        self.timesheet_id = timesheet_id
        super().__init__(f"Timesheet not found: {timesheet_id}")


class LedgerEntryNotFoundError(NotFoundError):
    code: str = "LEDGER_ENTRY_NOT_FOUND"

    def __init__(self, ledger_entry_ids: list[str]):
        self.ledger_entry_ids = ledger_entry_ids
        super().__init__(f"Ledger entries not found: {', '.join(ledger_entry_ids)}")


class ProjectNotFoundError(NotFoundError):
    code: str = "PROJECT_NOT_FOUND"

    def __init__(self, project_id: str):
        self.project_id = project_id
        super().__init__(f"Project not found: {project_id}")


class StageNotFoundError(NotFoundError):
    code: str = "STAGE_NOT_FOUND"

    def __init__(self, stage_id: str):
        self.stage_id = stage_id
        super().__init__(f"Stage not found: {stage_id}")


class ApproverNotFoundError(NotFoundError):
    code: str = "APPROVER_NOT_FOUND"

    def __init__(self, stage_id: str, approver_id: str):
        self.stage_id = stage_id
        self.approver_id = approver_id
        super().__init__(f"Approver {approver_id} not found on stage {stage_id}")


# Conflict


class MultipleActorsError(ConflictError):
    """
    A batch would attribute approvals to more than one identity.

    A transaction acts on behalf of exactly one approver.
    """

    code: str = "MULTIPLE_ACTORS"

    def __init__(self, actor_ids: list[str]):
        self.actor_ids = actor_ids
        super().__init__(
            "Approvals can only be approved by a single approver at a time: "
            f"{', '.join(actor_ids)}"
        )


class LedgerEntryAlreadyResolvedError(ConflictError):
    code: str = "LEDGER_ENTRY_ALREADY_RESOLVED"

    def __init__(self, ledger_entry_id: str, status: str):
        self.ledger_entry_id = ledger_entry_id
        self.ledger_status = status
        super().__init__(
            f"Ledger entry {ledger_entry_id} is already resolved ({status})"
        )


class StageBelongsToAnotherProjectError(ConflictError):
    code: str = "STAGE_BELONGS_TO_ANOTHER_PROJECT"

    def __init__(self, stage_id: str, project_id: str):
        self.stage_id = stage_id
        self.project_id = project_id
        super().__init__(
            f"Approval stage {stage_id} does not belong to project {project_id}"
        )


class DuplicateStageNameError(ConflictError):
    code: str = "DUPLICATE_STAGE_NAME"

    def __init__(self, display_name: str):
        self.display_name = display_name
        super().__init__(f"Display name must be unique: '{display_name}'")


class ApproverExistsError(ConflictError):
    code: str = "APPROVER_EXISTS"

    def __init__(self, stage_id: str, approver_id: str):
        self.stage_id = stage_id
        self.approver_id = approver_id
        super().__init__(f"Approver {approver_id} already exists on stage {stage_id}")


class EntryLockedError(ConflictError):
    """Entry is in the approval pipeline or approved and cannot be edited."""

    code: str = "ENTRY_LOCKED"

    def __init__(self, entry_id: str, status: str):
        self.entry_id = entry_id
        self.entry_status = status
        super().__init__(f"Entry {entry_id} cannot be modified while {status}")


class ImmutabilityViolationError(ConflictError):
    """Attempt to modify a resolved ledger entry."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(f"Cannot modify {entity_type} {entity_id}: {reason}")


class DuplicateStageReferenceError(ConflictError):
    """The same existing stage id appears more than once in a stage list."""

    code: str = "DUPLICATE_STAGE_REFERENCE"

    def __init__(self, stage_id: str):
        self.stage_id = stage_id
        super().__init__(f"Approval stage {stage_id} is referenced more than once")
