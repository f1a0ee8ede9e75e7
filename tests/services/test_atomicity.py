"""
Transaction boundary behaviour of the WorkflowCoordinator.

Covers rollback on unexpected failures, the InternalError reference token,
database-level ledger guards and post-commit notification delivery.
"""

from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError

from tests.conftest import at
from timesheet_kernel.domain.dtos import EntryDraft
from timesheet_kernel.domain.statuses import EntryStatus, LedgerStatus, TimesheetStatus
from timesheet_kernel.exceptions import (
    ImmutabilityViolationError,
    InternalError,
    NotTimesheetOwnerError,
    RejectionCommentRequiredError,
)
from timesheet_kernel.models.ledger import LedgerEntry
from timesheet_kernel.services.timesheet_status_service import TimesheetStatusService
from timesheet_kernel.services import workflow_coordinator


@pytest.fixture
def review(make_project, approver_a, approver_b):
    return make_project([("Lead", {approver_a}), ("Finance", {approver_b})])


class TestRollback:

    def test_unexpected_failure_rolls_back(
        self, coordinator, review, add_entry, approver_a, timesheet, monkeypatch, captured_logs,
    ):
        project, _ = review
        add_entry(project.id, at(9), at(10), status=EntryStatus.SUBMITTED)
        (request,) = coordinator.get_pending_approvals(approver_a)

        def explode(self, timesheet_ids):
            raise RuntimeError("connection reset")

        monkeypatch.setattr(TimesheetStatusService, "recompute", explode)

        with pytest.raises(InternalError) as exc_info:
            coordinator.batch_approve([request.id], approver_a)

        error = exc_info.value
        assert error.status == 500
        assert error.operation == "batch_approve"
        assert len(error.reference) == 12
        assert error.reference in str(error)
        assert "connection reset" not in str(error)

        monkeypatch.undo()
        assert [r.id for r in coordinator.get_pending_approvals(approver_a)] == [request.id]
        assert coordinator.get_timesheet(timesheet.id).entries[0].status is EntryStatus.PENDING

        (record,) = [r for r in captured_logs() if r["message"] == "workflow_operation_failed"]
        assert record["reference"] == error.reference
        assert record["exc_type"] == "RuntimeError"

    def test_kernel_error_logged_and_propagated(
        self, coordinator, review, add_entry, approver_a, captured_logs,
    ):
        project, _ = review
        add_entry(project.id, at(9), at(10), status=EntryStatus.SUBMITTED)
        (request,) = coordinator.get_pending_approvals(approver_a)

        with pytest.raises(RejectionCommentRequiredError):
            coordinator.reject_one(request.id, approver_a, "")

        (record,) = [r for r in captured_logs() if r["message"] == "workflow_operation_rejected"]
        assert record["error_code"] == RejectionCommentRequiredError.code
        assert record["operation"] == "reject_one"


class TestOperationLogContext:

    def _applied(self, records, operation):
        return [
            r for r in records
            if r["message"] == "workflow_operation_applied" and r["operation"] == operation
        ]

    def test_save_entry_records_carry_timesheet(
        self, coordinator, review, add_entry, timesheet, employee_id, captured_logs,
    ):
        project, _ = review
        entry = add_entry(project.id, at(9), at(10))
        coordinator.save_entry(
            EntryDraft(timesheet.id, project.id, at(9), at(11), entry_id=entry.id),
            actor_id=employee_id,
        )

        created, updated = self._applied(captured_logs(), "save_entry")
        assert created["timesheet_id"] == str(timesheet.id)
        assert "entry_id" not in created
        assert updated["timesheet_id"] == str(timesheet.id)
        assert updated["entry_id"] == str(entry.id)
        assert updated["actor_id"] == str(employee_id)
        assert created["correlation_id"] != updated["correlation_id"]

    def test_delete_entry_records_carry_entry(
        self, coordinator, review, add_entry, employee_id, captured_logs,
    ):
        project, _ = review
        entry = add_entry(project.id, at(9), at(10))
        coordinator.delete_entry(entry.id, employee_id)

        (record,) = self._applied(captured_logs(), "delete_entry")
        assert record["entry_id"] == str(entry.id)

    def test_submit_timesheet_records_carry_timesheet(
        self, coordinator, timesheet, employee_id, captured_logs,
    ):
        coordinator.submit_timesheet(timesheet.id, employee_id)

        (record,) = self._applied(captured_logs(), "submit_timesheet")
        assert record["timesheet_id"] == str(timesheet.id)

    def test_reject_one_records_carry_entry(
        self, coordinator, review, add_entry, approver_a, captured_logs,
    ):
        project, _ = review
        entry = add_entry(project.id, at(9), at(10), status=EntryStatus.SUBMITTED)
        (request,) = coordinator.get_pending_approvals(approver_a)
        coordinator.reject_one(request.id, approver_a, "Split by task")

        records = captured_logs()
        (applied,) = self._applied(records, "reject_one")
        assert applied["entry_id"] == str(entry.id)
        (rejected,) = [r for r in records if r["message"] == "ledger_entry_rejected"]
        assert rejected["entry_id"] == str(entry.id)

    def test_rejected_operation_carries_context(
        self, coordinator, review, timesheet, captured_logs,
    ):
        project, _ = review
        with pytest.raises(NotTimesheetOwnerError):
            coordinator.save_entry(
                EntryDraft(timesheet.id, project.id, at(9), at(10)), actor_id=uuid4(),
            )

        (record,) = [r for r in captured_logs() if r["message"] == "workflow_operation_rejected"]
        assert record["timesheet_id"] == str(timesheet.id)
        assert record["error_status"] == 403


class TestLedgerGuards:

    def test_resolved_row_is_immutable(self, coordinator, session_factory, review, add_entry, approver_a):
        project, _ = review
        add_entry(project.id, at(9), at(10), status=EntryStatus.SUBMITTED)
        (request,) = coordinator.get_pending_approvals(approver_a)
        coordinator.batch_approve([request.id], approver_a)

        with session_factory() as session:
            row = session.get(LedgerEntry, request.id)
            assert row.ledger_status is LedgerStatus.APPROVED
            row.comment = "rewritten"
            with pytest.raises(ImmutabilityViolationError):
                session.flush()
            session.rollback()

    def test_single_pending_row_per_entry(
        self, coordinator, session_factory, review, add_entry, approver_a,
    ):
        project, (_, finance) = review
        entry = add_entry(project.id, at(9), at(10), status=EntryStatus.SUBMITTED)

        with session_factory() as session:
            session.add(
                LedgerEntry(
                    entry_id=entry.id,
                    stage_id=finance.id,
                    status=LedgerStatus.PENDING.value,
                )
            )
            with pytest.raises(IntegrityError):
                session.flush()
            session.rollback()


class TestNotifications:

    def _reject_only_entry(self, coordinator, project_id, add_entry, approver_a, hour=9):
        add_entry(project_id, at(hour), at(hour + 1), status=EntryStatus.SUBMITTED)
        (request,) = coordinator.get_pending_approvals(approver_a)
        coordinator.reject_one(request.id, approver_a, "Please split by task")

    def test_notice_content(self, coordinator, review, add_entry, approver_a, dispatcher, employee_id):
        project, _ = review
        self._reject_only_entry(coordinator, project.id, add_entry, approver_a)

        (notice,) = dispatcher.notices
        assert notice.employee_id == employee_id
        assert notice.sender == "timesheets@example.com"
        assert "2024-01-01" in notice.subject
        assert notice.link in notice.body

    def test_no_repeat_while_still_flagged(self, coordinator, review, add_entry, approver_a, dispatcher):
        project, _ = review
        self._reject_only_entry(coordinator, project.id, add_entry, approver_a)
        self._reject_only_entry(coordinator, project.id, add_entry, approver_a, hour=11)

        assert len(dispatcher.notices) == 1

    def test_one_notice_per_timesheet(
        self, coordinator, review, add_entry, approver_a, dispatcher, timesheet, employee_id,
    ):
        project, _ = review
        other = coordinator.open_timesheet(employee_id, at(9, day=7))
        add_entry(project.id, at(9), at(10), status=EntryStatus.SUBMITTED)
        add_entry(project.id, at(9, day=7), at(10, day=7), status=EntryStatus.SUBMITTED, timesheet_id=other.id)
        for request in coordinator.get_pending_approvals(approver_a):
            coordinator.reject_one(request.id, approver_a, "Redo")

        assert {n.timesheet_id for n in dispatcher.notices} == {timesheet.id, other.id}

    def test_dispatch_failure_does_not_fail_operation(
        self, coordinator, review, add_entry, approver_a, dispatcher, timesheet, captured_logs,
    ):
        project, _ = review
        dispatcher.fail_for.add(timesheet.id)

        self._reject_only_entry(coordinator, project.id, add_entry, approver_a)

        assert dispatcher.notices == []
        assert coordinator.get_timesheet(timesheet.id).status is TimesheetStatus.NEEDS_ATTENTION
        messages = [r["message"] for r in captured_logs()]
        assert "notification_dispatch_failed" in messages
        (summary,) = [r for r in captured_logs() if r["message"] == "notifications_dispatched"]
        assert summary["failed_count"] == 1

    def test_dispatch_failure_logged_within_operation_context(
        self, coordinator, review, add_entry, approver_a, dispatcher, timesheet, captured_logs,
    ):
        project, _ = review
        dispatcher.fail_for.add(timesheet.id)

        self._reject_only_entry(coordinator, project.id, add_entry, approver_a)

        records = captured_logs()
        (failed,) = [r for r in records if r["message"] == "notification_dispatch_failed"]
        (applied,) = [
            r for r in records
            if r["message"] == "workflow_operation_applied" and r["operation"] == "reject_one"
        ]
        assert failed["operation"] == "reject_one"
        assert failed["correlation_id"] == applied["correlation_id"]
        assert failed["timesheet_id"] == str(timesheet.id)
        (undelivered,) = [r for r in records if r["message"] == "notifications_undelivered"]
        assert undelivered["failed_timesheet_ids"] == [str(timesheet.id)]

    def test_dispatch_crash_does_not_escape_committed_operation(
        self, coordinator, review, add_entry, approver_a, timesheet, monkeypatch, captured_logs,
    ):
        project, _ = review
        add_entry(project.id, at(9), at(10), status=EntryStatus.SUBMITTED)
        (request,) = coordinator.get_pending_approvals(approver_a)

        def crash(*args, **kwargs):
            raise RuntimeError("executor shut down")

        monkeypatch.setattr(workflow_coordinator, "dispatch_all", crash)

        rejected = coordinator.reject_one(request.id, approver_a, "Split by task")

        assert rejected.status is LedgerStatus.REJECTED
        assert coordinator.get_timesheet(timesheet.id).status is TimesheetStatus.NEEDS_ATTENTION
        records = captured_logs()
        (aborted,) = [r for r in records if r["message"] == "notification_dispatch_aborted"]
        assert aborted["operation"] == "reject_one"
        assert aborted["notice_count"] == 1
        assert aborted["exc_type"] == "RuntimeError"
        assert "workflow_operation_failed" not in [r["message"] for r in records]

    def test_no_notice_without_transition(self, coordinator, review, add_entry, approver_a, dispatcher):
        project, _ = review
        add_entry(project.id, at(9), at(10), status=EntryStatus.SUBMITTED)
        coordinator.batch_approve(
            [r.id for r in coordinator.get_pending_approvals(approver_a)], approver_a,
        )
        assert dispatcher.notices == []
