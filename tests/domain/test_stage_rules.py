"""
Stage ordering and reconfiguration planning.
"""

from uuid import uuid4

import pytest

from timesheet_kernel.domain.dtos import StageInfo, StageSpec
from timesheet_kernel.domain.stage_rules import (
    first_stage,
    next_stage,
    plan_reconfiguration,
    plan_renames,
)
from timesheet_kernel.exceptions import (
    DuplicateStageNameError,
    DuplicateStageReferenceError,
    StageBelongsToAnotherProjectError,
    StageDisplayNameRequiredError,
    StageNotFoundError,
)

PROJECT_ID = uuid4()


def stage(sequence, name):
    return StageInfo(id=uuid4(), project_id=PROJECT_ID, sequence=sequence, display_name=name)


@pytest.fixture
def stages():
    return [stage(0, "Manager"), stage(1, "Finance"), stage(2, "Director")]


class TestOrdering:

    def test_first_stage_empty(self):
        assert first_stage([]) is None

    def test_first_stage_lowest_sequence(self, stages):
        assert first_stage(list(reversed(stages))).display_name == "Manager"

    def test_next_stage(self, stages):
        assert next_stage(stages, 0).display_name == "Finance"
        assert next_stage(stages, 2) is None

    def test_next_stage_skips_gaps(self):
        survivors = [stage(0, "A"), stage(3, "D")]
        assert next_stage(survivors, 0).display_name == "D"
        assert next_stage(survivors, 1).display_name == "D"


class TestPlanReconfiguration:

    def test_same_ids_same_order_is_rename_only(self, stages):
        specs = [StageSpec(display_name=f"{s.display_name}!", stage_id=s.id) for s in stages]
        plan = plan_reconfiguration(PROJECT_ID, stages, specs)
        assert plan.rename_only
        assert plan.deleted_stage_ids == frozenset()
        assert [p.display_name for p in plan.stages] == ["Manager!", "Finance!", "Director!"]

    def test_reorder_is_not_rename_only(self, stages):
        specs = [StageSpec(display_name=s.display_name, stage_id=s.id) for s in reversed(stages)]
        plan = plan_reconfiguration(PROJECT_ID, stages, specs)
        assert not plan.rename_only
        assert [p.sequence for p in plan.stages] == [0, 1, 2]
        assert plan.stages[0].stage_id == stages[2].id

    def test_removed_stage_is_deleted(self, stages):
        specs = [StageSpec(display_name=s.display_name, stage_id=s.id) for s in stages[1:]]
        plan = plan_reconfiguration(PROJECT_ID, stages, specs)
        assert not plan.rename_only
        assert plan.deleted_stage_ids == frozenset({stages[0].id})
        assert plan.kept_stage_ids == frozenset({stages[1].id, stages[2].id})

    def test_new_stage(self, stages):
        specs = [StageSpec(display_name=s.display_name, stage_id=s.id) for s in stages]
        specs.append(StageSpec(display_name="Payroll", approver_ids=frozenset({uuid4()})))
        plan = plan_reconfiguration(PROJECT_ID, stages, specs)
        assert not plan.rename_only
        assert plan.stages[-1].is_new
        assert plan.stages[-1].sequence == 3

    def test_names_are_stripped(self):
        plan = plan_reconfiguration(PROJECT_ID, [], [StageSpec(display_name="  Review  ")])
        assert plan.stages[0].display_name == "Review"

    def test_empty_name_rejected(self):
        with pytest.raises(StageDisplayNameRequiredError) as exc_info:
            plan_reconfiguration(PROJECT_ID, [], [StageSpec("A"), StageSpec("   ")])
        assert exc_info.value.position == 1

    def test_duplicate_name_conflict(self):
        with pytest.raises(DuplicateStageNameError) as exc_info:
            plan_reconfiguration(PROJECT_ID, [], [StageSpec("A"), StageSpec(" A")])
        assert exc_info.value.status == 409

    def test_foreign_stage_conflict(self, stages):
        with pytest.raises(StageBelongsToAnotherProjectError):
            plan_reconfiguration(PROJECT_ID, stages, [StageSpec("X", stage_id=uuid4())])

    def test_repeated_reference_conflict(self, stages):
        specs = [StageSpec("A", stage_id=stages[0].id), StageSpec("B", stage_id=stages[0].id)]
        with pytest.raises(DuplicateStageReferenceError):
            plan_reconfiguration(PROJECT_ID, stages, specs)

    def test_empty_list_on_empty_project_is_rename_only(self):
        assert plan_reconfiguration(PROJECT_ID, [], []).rename_only


class TestPlanRenames:

    def test_rename(self, stages):
        names = plan_renames(stages, [(stages[1].id, " Accounts ")])
        assert names == {stages[1].id: "Accounts"}

    def test_swap_names(self, stages):
        names = plan_renames(
            stages,
            [(stages[0].id, "Finance"), (stages[1].id, "Manager")],
        )
        assert names[stages[0].id] == "Finance"

    def test_clash_with_unchanged_stage(self, stages):
        with pytest.raises(DuplicateStageNameError):
            plan_renames(stages, [(stages[0].id, "Director")])

    def test_unknown_stage(self, stages):
        with pytest.raises(StageNotFoundError):
            plan_renames(stages, [(uuid4(), "X")])
