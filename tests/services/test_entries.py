"""
Owner-side entry operations: create/update/delete, edit locks, submission.
"""

from datetime import datetime, timedelta
from uuid import uuid4

import pytest

from tests.conftest import WEEK_START, at
from timesheet_kernel.domain.dtos import EntryDraft
from timesheet_kernel.domain.statuses import EntryStatus, LedgerStatus, TimesheetStatus
from timesheet_kernel.exceptions import (
    EntryLockedError,
    EntryNotFoundError,
    InvalidEntryStatusError,
    InvalidRangeError,
    MissingEndTimeError,
    NaiveTimestampError,
    NotTimesheetOwnerError,
    ProjectInactiveError,
    ProjectNotFoundError,
    TimesheetNotFoundError,
)


@pytest.fixture
def project(make_project, approver_a):
    project, _ = make_project([("Review", {approver_a})])
    return project


class TestOpenTimesheet:

    def test_get_or_create(self, coordinator, employee_id):
        first = coordinator.open_timesheet(employee_id, at(9, day=1))
        again = coordinator.open_timesheet(employee_id, at(17, day=4))
        assert first.id == again.id
        assert first.week_start == WEEK_START
        assert first.status is TimesheetStatus.OPEN

    def test_new_week_new_timesheet(self, coordinator, employee_id):
        this_week = coordinator.open_timesheet(employee_id, at(9))
        next_week = coordinator.open_timesheet(employee_id, at(9, day=7))
        assert this_week.id != next_week.id
        assert next_week.week_start == WEEK_START + timedelta(days=7)

    def test_defaults_to_clock(self, coordinator, employee_id):
        assert coordinator.open_timesheet(employee_id).week_start == WEEK_START

    def test_naive_as_of_rejected(self, coordinator, employee_id):
        with pytest.raises(NaiveTimestampError) as exc_info:
            coordinator.open_timesheet(employee_id, datetime(2024, 1, 3, 9))
        assert exc_info.value.field_name == "as_of"
        assert exc_info.value.status == 400


class TestSaveEntry:

    def test_create_open_entry(self, add_entry, project, timesheet, coordinator):
        entry = add_entry(project.id, at(9), at(10))
        assert entry.status is EntryStatus.OPEN
        assert entry.timesheet_id == timesheet.id
        assert coordinator.get_timesheet(timesheet.id).status is TimesheetStatus.OPEN

    def test_running_entry_allowed(self, add_entry, project):
        assert add_entry(project.id, at(9)).end is None

    def test_update_moves_times(self, coordinator, add_entry, project, timesheet, employee_id):
        entry = add_entry(project.id, at(9), at(10))
        updated = coordinator.save_entry(
            EntryDraft(
                timesheet_id=timesheet.id,
                project_id=project.id,
                start=at(9, 30),
                end=at(10, 30),
                entry_id=entry.id,
            ),
            actor_id=employee_id,
        )
        assert updated.id == entry.id
        assert updated.start == at(9, 30)

    def test_update_does_not_overlap_itself(self, coordinator, add_entry, project, timesheet, employee_id):
        entry = add_entry(project.id, at(9), at(10))
        coordinator.save_entry(
            EntryDraft(timesheet.id, project.id, at(9), at(11), entry_id=entry.id),
            actor_id=employee_id,
        )

    def test_invalid_range(self, add_entry, project):
        with pytest.raises(InvalidRangeError):
            add_entry(project.id, at(10), at(10))

    def test_naive_times_rejected_on_empty_timesheet(
        self, coordinator, add_entry, project, timesheet, captured_logs,
    ):
        with pytest.raises(NaiveTimestampError) as exc_info:
            add_entry(project.id, datetime(2024, 1, 3, 9), datetime(2024, 1, 3, 10))

        assert exc_info.value.status == 400
        assert exc_info.value.field_name == "start"
        assert coordinator.get_timesheet(timesheet.id).entries == ()
        messages = [r["message"] for r in captured_logs()]
        assert "workflow_operation_rejected" in messages
        assert "workflow_operation_failed" not in messages

    def test_naive_end_rejected_beside_aware_entry(self, coordinator, add_entry, project, timesheet):
        existing = add_entry(project.id, at(9), at(10))

        with pytest.raises(NaiveTimestampError) as exc_info:
            add_entry(project.id, at(11), datetime(2024, 1, 1, 12))

        assert exc_info.value.field_name == "end"
        assert [e.id for e in coordinator.get_timesheet(timesheet.id).entries] == [existing.id]

    def test_naive_times_rejected_beside_aware_entry(self, coordinator, add_entry, project, timesheet):
        add_entry(project.id, at(11), at(12))
        with pytest.raises(NaiveTimestampError):
            add_entry(project.id, datetime(2024, 1, 3, 9), datetime(2024, 1, 3, 10))
        assert len(coordinator.get_timesheet(timesheet.id).entries) == 1

    def test_pipeline_status_not_settable(self, add_entry, project):
        with pytest.raises(InvalidEntryStatusError) as exc_info:
            add_entry(project.id, at(9), at(10), status=EntryStatus.APPROVED)
        assert exc_info.value.requested_status == "Approved"

    def test_submitted_requires_end(self, add_entry, project):
        with pytest.raises(MissingEndTimeError):
            add_entry(project.id, at(9), status=EntryStatus.SUBMITTED)

    def test_not_owner(self, coordinator, project, timesheet):
        with pytest.raises(NotTimesheetOwnerError):
            coordinator.save_entry(
                EntryDraft(timesheet.id, project.id, at(9), at(10)), actor_id=uuid4(),
            )

    def test_unknown_timesheet(self, coordinator, project, employee_id):
        with pytest.raises(TimesheetNotFoundError):
            coordinator.save_entry(
                EntryDraft(uuid4(), project.id, at(9), at(10)), actor_id=employee_id,
            )

    def test_unknown_project(self, add_entry):
        with pytest.raises(ProjectNotFoundError):
            add_entry(uuid4(), at(9), at(10))

    def test_inactive_project(self, coordinator, add_entry, project):
        coordinator.deactivate_project(project.id)
        with pytest.raises(ProjectInactiveError):
            add_entry(project.id, at(9), at(10))

    def test_pending_entry_locked(self, coordinator, add_entry, project, timesheet, employee_id):
        entry = add_entry(project.id, at(9), at(10), status=EntryStatus.SUBMITTED)
        with pytest.raises(EntryLockedError) as exc_info:
            coordinator.save_entry(
                EntryDraft(timesheet.id, project.id, at(9), at(11), entry_id=entry.id),
                actor_id=employee_id,
            )
        assert exc_info.value.entry_status == "Pending"
        assert exc_info.value.status == 409

    def test_rejected_entry_resubmits_from_first_stage(
        self, coordinator, add_entry, project, timesheet, employee_id, approver_a,
    ):
        entry = add_entry(project.id, at(9), at(10), status=EntryStatus.SUBMITTED)
        (request,) = coordinator.get_pending_approvals(approver_a)
        coordinator.reject_one(request.id, approver_a, "Too long")

        resubmitted = coordinator.save_entry(
            EntryDraft(
                timesheet.id, project.id, at(9), at(9, 45),
                status=EntryStatus.SUBMITTED, entry_id=entry.id,
            ),
            actor_id=employee_id,
        )

        assert resubmitted.status is EntryStatus.PENDING
        (again,) = coordinator.get_pending_approvals(approver_a)
        assert again.id != request.id
        assert again.stage_id == request.stage_id
        history = coordinator.get_entry_approval_history(entry.id)
        assert [h.status for h in history] == [LedgerStatus.REJECTED]
        assert coordinator.get_timesheet(timesheet.id).status is TimesheetStatus.SUBMITTED


    def test_move_to_another_week(
        self, coordinator, add_entry, project, timesheet, employee_id, approver_a,
    ):
        entry = add_entry(project.id, at(9), at(10), status=EntryStatus.SUBMITTED)
        (request,) = coordinator.get_pending_approvals(approver_a)
        coordinator.reject_one(request.id, approver_a, "Wrong week")
        next_week = coordinator.open_timesheet(employee_id, at(9, day=7))

        moved = coordinator.save_entry(
            EntryDraft(next_week.id, project.id, at(9, day=7), at(10, day=7), entry_id=entry.id),
            actor_id=employee_id,
        )

        assert moved.timesheet_id == next_week.id
        old = coordinator.get_timesheet(timesheet.id)
        assert old.entries == ()
        assert old.status is TimesheetStatus.OPEN
        assert coordinator.get_timesheet(next_week.id).status is TimesheetStatus.OPEN

    def test_move_to_foreign_timesheet(self, coordinator, add_entry, project, employee_id):
        entry = add_entry(project.id, at(9), at(10))
        foreign = coordinator.open_timesheet(uuid4(), at(9))
        with pytest.raises(NotTimesheetOwnerError):
            coordinator.save_entry(
                EntryDraft(foreign.id, project.id, at(9), at(10), entry_id=entry.id),
                actor_id=employee_id,
            )


class TestDeleteEntry:

    def test_delete_open(self, coordinator, add_entry, project, timesheet, employee_id):
        entry = add_entry(project.id, at(9), at(10))
        coordinator.delete_entry(entry.id, employee_id)
        assert coordinator.get_timesheet(timesheet.id).entries == ()

    def test_delete_unknown(self, coordinator, employee_id):
        with pytest.raises(EntryNotFoundError):
            coordinator.delete_entry(uuid4(), employee_id)

    def test_delete_requires_owner(self, coordinator, add_entry, project):
        entry = add_entry(project.id, at(9), at(10))
        with pytest.raises(NotTimesheetOwnerError):
            coordinator.delete_entry(entry.id, uuid4())

    def test_delete_pending_locked(self, coordinator, add_entry, project, employee_id):
        entry = add_entry(project.id, at(9), at(10), status=EntryStatus.SUBMITTED)
        with pytest.raises(EntryLockedError):
            coordinator.delete_entry(entry.id, employee_id)

    def test_delete_rejected_recomputes_timesheet(
        self, coordinator, add_entry, project, timesheet, employee_id, approver_a,
    ):
        entry = add_entry(project.id, at(9), at(10), status=EntryStatus.SUBMITTED)
        (request,) = coordinator.get_pending_approvals(approver_a)
        coordinator.reject_one(request.id, approver_a, "Duplicate")
        assert coordinator.get_timesheet(timesheet.id).status is TimesheetStatus.NEEDS_ATTENTION

        coordinator.delete_entry(entry.id, employee_id)

        assert coordinator.get_timesheet(timesheet.id).status is TimesheetStatus.OPEN
        with pytest.raises(EntryNotFoundError):
            coordinator.get_entry_approval_history(entry.id)


class TestSubmitTimesheet:

    def test_submits_open_entries(
        self, coordinator, add_entry, project, timesheet, employee_id, approver_a,
    ):
        add_entry(project.id, at(9), at(10))
        add_entry(project.id, at(11), at(12))

        sheet = coordinator.submit_timesheet(timesheet.id, employee_id)

        assert sheet.status is TimesheetStatus.SUBMITTED
        assert {e.status for e in sheet.entries} == {EntryStatus.PENDING}
        assert len(coordinator.get_pending_approvals(approver_a)) == 2

    def test_running_entry_blocks_submission(
        self, coordinator, add_entry, project, timesheet, employee_id,
    ):
        add_entry(project.id, at(9), at(10))
        running = add_entry(project.id, at(11))

        with pytest.raises(MissingEndTimeError) as exc_info:
            coordinator.submit_timesheet(timesheet.id, employee_id)

        assert exc_info.value.entry_ids == [str(running.id)]
        sheet = coordinator.get_timesheet(timesheet.id)
        assert {e.status for e in sheet.entries} == {EntryStatus.OPEN}

    def test_empty_timesheet_marked_submitted(self, coordinator, timesheet, employee_id):
        sheet = coordinator.submit_timesheet(timesheet.id, employee_id)
        assert sheet.status is TimesheetStatus.SUBMITTED
        assert sheet.entries == ()

    def test_only_owner_submits(self, coordinator, timesheet):
        with pytest.raises(NotTimesheetOwnerError):
            coordinator.submit_timesheet(timesheet.id, uuid4())

    def test_pipeline_entries_untouched(
        self, coordinator, add_entry, project, timesheet, employee_id, approver_a,
    ):
        add_entry(project.id, at(9), at(10), status=EntryStatus.SUBMITTED)
        (request,) = coordinator.get_pending_approvals(approver_a)

        coordinator.submit_timesheet(timesheet.id, employee_id)

        assert [r.id for r in coordinator.get_pending_approvals(approver_a)] == [request.id]
