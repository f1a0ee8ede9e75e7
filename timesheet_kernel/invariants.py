"""
Kernel Invariants Contract.

These invariants are structural law for the approval workflow. They are
enforced by the domain rules, the flush-only services, and the database
constraints. No configuration value may switch them off.

This module exists solely to declare these invariants explicitly. The
enforcement is distributed across domain/entry_rules.py,
domain/aggregation.py, services/approval_pipeline.py,
services/stage_service.py, models/ledger.py and
services/workflow_coordinator.py.
"""

from enum import Enum, unique


@unique
class WorkflowInvariant(str, Enum):
    """Non-configurable invariants enforced by the kernel."""

    STRICT_RANGE = "strict_range"
    """Every entry with an end time has start < end. Enforced by
    domain.entry_rules.validate_range before any write."""

    NO_OVERLAP = "no_overlap"
    """No two entries on one timesheet overlap. Enforced by
    domain.entry_rules.find_overlap on direct create/update."""

    SINGLE_PENDING = "single_pending"
    """At most one Pending ledger entry per entry. Enforced by the pipeline
    and a partial unique index on ledger_entries."""

    RESOLVED_IMMUTABLE = "resolved_immutable"
    """A ledger entry with a response timestamp is never updated. Enforced by
    an ORM before_update listener (models.ledger)."""

    DERIVED_TIMESHEET_STATUS = "derived_timesheet_status"
    """Timesheet status is recomputed from its entries in the same
    transaction as any entry status change."""

    CONTIGUOUS_STAGES = "contiguous_stages"
    """Stage sequence numbers are 0..n-1 per project. Enforced by
    StageReconfigurationService and UNIQUE(project_id, sequence)."""

    ATOMIC_MUTATION = "atomic_mutation"
    """Every mutating operation commits as one unit or not at all. Enforced
    by WorkflowCoordinator."""


# All invariants as a frozenset for programmatic checks.
ALL_WORKFLOW_INVARIANTS: frozenset[WorkflowInvariant] = frozenset(WorkflowInvariant)

# The kernel package may not import from these packages.
# This is enforced by tests/architecture/test_kernel_boundary.py.
FORBIDDEN_KERNEL_IMPORTS: tuple[str, ...] = ("timesheet_config",)
