"""
WorkflowCoordinator -- the consistency boundary of the approval workflow.

Responsibility:
    Every public workflow operation runs here as one database transaction
    through the same ordered steps:

        1. capture   -- lock and snapshot every entry the operation may touch
        2. apply     -- validator / pipeline / reconfiguration services
        3. cascade   -- re-snapshot, diff, recompute touched timesheets
        4. derive    -- convert results to DTOs, find Needs Attention
                        transitions
        5. commit    -- all or nothing
        6. notify    -- after commit, outside the transaction

Architecture position:
    Kernel > Services -- imperative shell, owns transaction boundaries.
    The only kernel class that commits (through ``session_scope``).

Invariants enforced:
    - Atomicity: any exception rolls back the whole operation.
    - Derived timesheet status is recomputed before commit for exactly the
      timesheets whose entries changed.
    - Notification failures never affect the committed result.

Failure modes:
    - TimesheetKernelError subclasses propagate unchanged.
    - Any other exception is logged with a reference token and re-raised as
      InternalError(reference).

Usage:
    coordinator = WorkflowCoordinator(session_factory, clock=SystemClock())
    ledger = coordinator.batch_approve([ledger_id], actor_id=approver)
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any, TypeVar
from uuid import UUID, uuid4

from sqlalchemy.orm import Session, sessionmaker

from timesheet_kernel.db.engine import session_scope
from timesheet_kernel.domain.clock import Clock, SystemClock
from timesheet_kernel.domain.dtos import (
    EntryDraft,
    EntryInfo,
    LedgerEntryInfo,
    ProjectInfo,
    StageInfo,
    StageSpec,
    TimesheetInfo,
)
from timesheet_kernel.domain.snapshots import diff, needs_attention_transitions
from timesheet_kernel.exceptions import InternalError, TimesheetKernelError
from timesheet_kernel.logging_config import LogContext, get_logger
from timesheet_kernel.notifications import (
    LoggingNotificationDispatcher,
    NeedsAttentionNotice,
    NotificationDispatcher,
    build_needs_attention_notice,
    dispatch_all,
)
from timesheet_kernel.selectors.approval_selector import ApprovalSelector
from timesheet_kernel.selectors.timesheet_selector import SnapshotScope, TimesheetSelector
from timesheet_kernel.services.approval_pipeline import ApprovalPipeline
from timesheet_kernel.services.entry_service import EntryService
from timesheet_kernel.services.project_service import ProjectService
from timesheet_kernel.services.stage_service import StageReconfigurationService
from timesheet_kernel.services.timesheet_status_service import TimesheetStatusService

logger = get_logger("services.workflow_coordinator")

T = TypeVar("T")


@dataclass(frozen=True)
class NotificationSettings:
    root_domain: str = "http://localhost:8080"
    sender: str | None = None
    max_parallel: int = 4


class _UnitOfWork:
    """Services and selectors bound to one transaction's session."""

    def __init__(self, session: Session, clock: Clock):
        self.session = session
        self.pipeline = ApprovalPipeline(session, clock)
        self.entries = EntryService(session, self.pipeline, clock)
        self.status = TimesheetStatusService(session, clock)
        self.stages = StageReconfigurationService(session, clock)
        self.projects = ProjectService(session, clock)
        self.timesheets = TimesheetSelector(session)
        self.approvals = ApprovalSelector(session)


def _to_dto(value: Any) -> Any:
    if value is None or isinstance(value, UUID):
        return value
    if isinstance(value, (list, tuple)):
        return [_to_dto(v) for v in value]
    to_dto = getattr(value, "to_dto", None)
    if to_dto is not None:
        return to_dto()
    return value


class WorkflowCoordinator:
    """Transactional entry point for every workflow operation."""

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        clock: Clock | None = None,
        dispatcher: NotificationDispatcher | None = None,
        notifications: NotificationSettings | None = None,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()
        self._dispatcher = dispatcher or LoggingNotificationDispatcher()
        self._notifications = notifications or NotificationSettings()

    # ------------------------------------------------------------------
    # Transaction plumbing
    # ------------------------------------------------------------------

    def _run(
        self,
        operation: str,
        body: Callable[[_UnitOfWork], T],
        actor_id: UUID | None = None,
        after_commit: Callable[[], None] | None = None,
        **context: UUID | None,
    ) -> T:
        """
        Run ``body`` in one transaction with the operation's log context bound.

        ``context`` adds the timesheet or entry the caller already knows.
        ``after_commit`` runs once the transaction has committed, still inside
        the bound context.
        """
        with LogContext.bind(
            correlation_id=uuid4().hex,
            actor_id=actor_id,
            operation=operation,
            **context,
        ):
            try:
                with session_scope(self._session_factory) as session:
                    value = body(_UnitOfWork(session, self._clock))
            except TimesheetKernelError as exc:
                logger.info(
                    "workflow_operation_rejected",
                    extra={"error_code": exc.code, "error_status": exc.status},
                )
                raise
            except Exception as exc:
                reference = uuid4().hex[:12].upper()
                logger.error(
                    "workflow_operation_failed",
                    extra={"reference": reference},
                    exc_info=True,
                )
                raise InternalError(reference, operation) from exc

            if after_commit is not None:
                after_commit()
            return value

    def _notify(self, notices: Sequence[NeedsAttentionNotice]) -> None:
        """Send committed Needs Attention notices.  Never raises."""
        if not notices:
            return
        try:
            report = dispatch_all(
                self._dispatcher, notices, self._notifications.max_parallel
            )
        except Exception:
            logger.error(
                "notification_dispatch_aborted",
                extra={"notice_count": len(notices)},
                exc_info=True,
            )
            return
        if report.failed:
            logger.warning(
                "notifications_undelivered",
                extra={"failed_timesheet_ids": [str(t) for t in report.failed]},
            )

    def _mutate(
        self,
        operation: str,
        apply: Callable[[_UnitOfWork], Any],
        scope: SnapshotScope | Callable[[_UnitOfWork], SnapshotScope] = SnapshotScope(),
        actor_id: UUID | None = None,
        **context: UUID | None,
    ) -> Any:
        notices: list[NeedsAttentionNotice] = []

        def body(unit: _UnitOfWork) -> Any:
            resolved = scope(unit) if callable(scope) else scope
            # Ledger-addressed operations learn their entry from the scope.
            entry_id = None
            if "entry_id" not in context and len(resolved.entry_ids) == 1:
                (entry_id,) = resolved.entry_ids
            with LogContext.bind(entry_id=entry_id):
                return cascade(unit, resolved)

        def cascade(unit: _UnitOfWork, resolved: SnapshotScope) -> Any:
            before = unit.timesheets.entry_snapshots(resolved, lock=True)
            statuses_before = unit.status.current_statuses(
                {s.timesheet_id for s in before.values()} | set(resolved.timesheet_ids)
            )

            result = apply(unit)
            unit.session.flush()

            after = unit.timesheets.entry_snapshots(resolved)
            changes = diff(before, after)
            statuses_after = unit.status.recompute(changes.touched_timesheet_ids)
            flagged = needs_attention_transitions(statuses_before, statuses_after)

            unit.session.expire_all()
            value = _to_dto(result)
            notices.extend(
                build_needs_attention_notice(
                    info,
                    self._notifications.root_domain,
                    self._notifications.sender,
                )
                for info in unit.timesheets.timesheets_by_id(flagged).values()
            )

            logger.info(
                "workflow_operation_applied",
                extra={
                    "changed_entry_count": len(changes.changed_entry_ids),
                    "touched_timesheet_count": len(changes.touched_timesheet_ids),
                    "needs_attention_count": len(flagged),
                },
            )
            return value

        return self._run(
            operation,
            body,
            actor_id,
            after_commit=lambda: self._notify(notices),
            **context,
        )

    # ------------------------------------------------------------------
    # Timesheets and entries
    # ------------------------------------------------------------------

    def open_timesheet(self, employee_id: UUID, as_of: datetime | None = None) -> TimesheetInfo:
        return self._mutate(
            "open_timesheet",
            lambda unit: unit.entries.open_timesheet(employee_id, as_of),
            actor_id=employee_id,
        )

    def get_timesheet(self, timesheet_id: UUID) -> TimesheetInfo:
        return self._run(
            "get_timesheet",
            lambda unit: unit.timesheets.get(timesheet_id),
        )

    def save_entry(self, draft: EntryDraft, actor_id: UUID) -> EntryInfo:
        """CreateOrUpdateEntry."""
        scope = SnapshotScope(
            entry_ids=frozenset({draft.entry_id}) if draft.entry_id else frozenset(),
            timesheet_ids=frozenset({draft.timesheet_id}),
        )
        return self._mutate(
            "save_entry",
            lambda unit: unit.entries.save_entry(draft, actor_id),
            scope=scope,
            actor_id=actor_id,
            timesheet_id=draft.timesheet_id,
            entry_id=draft.entry_id,
        )

    def delete_entry(self, entry_id: UUID, actor_id: UUID) -> None:
        def apply(unit: _UnitOfWork) -> None:
            unit.entries.delete_entry(entry_id, actor_id)

        self._mutate(
            "delete_entry",
            apply,
            scope=SnapshotScope(entry_ids=frozenset({entry_id})),
            actor_id=actor_id,
            entry_id=entry_id,
        )

    def submit_timesheet(self, timesheet_id: UUID, actor_id: UUID) -> TimesheetInfo:
        def apply(unit: _UnitOfWork):
            timesheet = unit.entries.submit_timesheet(timesheet_id, actor_id)
            if not unit.timesheets.entries(timesheet_id):
                unit.status.mark_submitted(timesheet)
            return timesheet

        return self._mutate(
            "submit_timesheet",
            apply,
            scope=SnapshotScope(timesheet_ids=frozenset({timesheet_id})),
            actor_id=actor_id,
            timesheet_id=timesheet_id,
        )

    # ------------------------------------------------------------------
    # Approvals
    # ------------------------------------------------------------------

    def batch_approve(
        self,
        ledger_entry_ids: Sequence[UUID],
        actor_id: UUID,
    ) -> list[LedgerEntryInfo]:
        ids = list(ledger_entry_ids)
        return self._mutate(
            "batch_approve",
            lambda unit: unit.pipeline.batch_approve(ids, actor_id),
            scope=lambda unit: SnapshotScope(
                entry_ids=frozenset(unit.approvals.entry_ids_for(ids))
            ),
            actor_id=actor_id,
        )

    def reject_one(
        self,
        ledger_entry_id: UUID,
        actor_id: UUID,
        comment: str,
    ) -> LedgerEntryInfo:
        return self._mutate(
            "reject_one",
            lambda unit: unit.pipeline.reject_one(ledger_entry_id, actor_id, comment),
            scope=lambda unit: SnapshotScope(
                entry_ids=frozenset(unit.approvals.entry_ids_for([ledger_entry_id]))
            ),
            actor_id=actor_id,
        )

    def get_entry_approval_history(self, entry_id: UUID) -> list[LedgerEntryInfo]:
        return self._run(
            "get_entry_approval_history",
            lambda unit: unit.approvals.entry_history(entry_id),
        )

    def get_pending_approvals(self, approver_id: UUID) -> list[LedgerEntryInfo]:
        return self._run(
            "get_pending_approvals",
            lambda unit: unit.approvals.pending_for_approver(approver_id),
            actor_id=approver_id,
        )

    # ------------------------------------------------------------------
    # Projects and stages
    # ------------------------------------------------------------------

    def create_project(self, name: str, active: bool = True) -> ProjectInfo:
        return self._mutate(
            "create_project",
            lambda unit: unit.projects.create_project(name, active),
        )

    def set_project_stages(
        self,
        project_id: UUID,
        specs: Sequence[StageSpec],
    ) -> list[StageInfo]:
        specs = list(specs)
        return self._mutate(
            "set_project_stages",
            lambda unit: unit.stages.set_stages(project_id, specs),
            scope=SnapshotScope(project_ids=frozenset({project_id})),
        )

    def rename_stages(
        self,
        project_id: UUID,
        renames: Sequence[tuple[UUID, str]],
    ) -> list[StageInfo]:
        renames = list(renames)
        return self._mutate(
            "rename_stages",
            lambda unit: unit.stages.rename_stages(project_id, renames),
        )

    def add_stage_approver(self, stage_id: UUID, approver_id: UUID) -> StageInfo:
        return self._mutate(
            "add_stage_approver",
            lambda unit: unit.stages.add_approver(stage_id, approver_id),
        )

    def remove_stage_approver(self, stage_id: UUID, approver_id: UUID) -> StageInfo:
        return self._mutate(
            "remove_stage_approver",
            lambda unit: unit.stages.remove_approver(stage_id, approver_id),
        )

    def deactivate_project(self, project_id: UUID) -> None:
        def apply(unit: _UnitOfWork) -> None:
            unit.projects.deactivate_project(project_id)

        self._mutate(
            "deactivate_project",
            apply,
            scope=SnapshotScope(project_ids=frozenset({project_id})),
        )
