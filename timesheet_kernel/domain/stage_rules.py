"""
Stage ordering and reconfiguration planning.

Responsibility
--------------
* Locate the first stage and the next surviving stage of a project's
  pipeline.  Sequence numbers may have gaps while a reconfiguration is in
  progress, so "next" means the smallest sequence greater than the current
  one, never ``current + 1``.
* Validate a requested stage list and turn it into a ``ReconfigurationPlan``
  that the StageReconfigurationService applies.
* Validate a rename-only request.

Architecture position
---------------------
**Kernel domain layer** -- pure functions.  ZERO I/O.

Invariants enforced
-------------------
* Display names are stripped, non-empty and unique within a request.
* A referenced stage id must already belong to the project.
* Planned sequences are contiguous from zero.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from uuid import UUID

from timesheet_kernel.domain.dtos import StageInfo, StageSpec
from timesheet_kernel.exceptions import (
    DuplicateStageNameError,
    DuplicateStageReferenceError,
    StageBelongsToAnotherProjectError,
    StageDisplayNameRequiredError,
    StageNotFoundError,
)


# =========================================================================
# Ordering
# =========================================================================


def ordered(stages: Sequence[StageInfo]) -> list[StageInfo]:
    return sorted(stages, key=lambda s: s.sequence)


def first_stage(stages: Sequence[StageInfo]) -> StageInfo | None:
    """Lowest-sequence stage, or None when the project auto-approves."""
    if not stages:
        return None
    return min(stages, key=lambda s: s.sequence)


def next_stage(stages: Sequence[StageInfo], current_sequence: int) -> StageInfo | None:
    """The surviving stage after ``current_sequence``, or None if it was last."""
    later = [s for s in stages if s.sequence > current_sequence]
    if not later:
        return None
    return min(later, key=lambda s: s.sequence)


# =========================================================================
# Reconfiguration
# =========================================================================


@dataclass(frozen=True)
class PlannedStage:
    """Target state of one stage after reconfiguration."""

    sequence: int
    display_name: str
    stage_id: UUID | None = None
    approver_ids: frozenset[UUID] | None = None

    @property
    def is_new(self) -> bool:
        return self.stage_id is None


@dataclass(frozen=True)
class ReconfigurationPlan:
    """
    What a stage reconfiguration will do.

    ``rename_only`` is True when the requested ids equal the existing ids in
    the existing order.  Such a plan deletes nothing and resets no entries.
    """

    project_id: UUID
    stages: tuple[PlannedStage, ...]
    deleted_stage_ids: frozenset[UUID]
    rename_only: bool

    @property
    def kept_stage_ids(self) -> frozenset[UUID]:
        return frozenset(s.stage_id for s in self.stages if s.stage_id is not None)


def _clean_names(names: Sequence[str]) -> list[str]:
    cleaned: list[str] = []
    seen: set[str] = set()
    for position, raw in enumerate(names):
        name = (raw or "").strip()
        if not name:
            raise StageDisplayNameRequiredError(position)
        if name in seen:
            raise DuplicateStageNameError(name)
        seen.add(name)
        cleaned.append(name)
    return cleaned


def plan_reconfiguration(
    project_id: UUID,
    existing: Sequence[StageInfo],
    specs: Sequence[StageSpec],
) -> ReconfigurationPlan:
    """
    Validate ``specs`` against the project's current stages.

    Raises:
        StageDisplayNameRequiredError: a name is empty after stripping.
        DuplicateStageNameError: two specs share a display name.
        StageBelongsToAnotherProjectError: a referenced id is not one of the
            project's stages.
        DuplicateStageReferenceError: the same id is referenced twice.
    """
    names = _clean_names([spec.display_name for spec in specs])
    existing_ids = {s.id for s in existing}

    referenced: set[UUID] = set()
    planned: list[PlannedStage] = []
    for sequence, (spec, name) in enumerate(zip(specs, names)):
        if spec.stage_id is not None:
            if spec.stage_id not in existing_ids:
                raise StageBelongsToAnotherProjectError(
                    str(spec.stage_id), str(project_id)
                )
            if spec.stage_id in referenced:
                raise DuplicateStageReferenceError(str(spec.stage_id))
            referenced.add(spec.stage_id)
        planned.append(
            PlannedStage(
                sequence=sequence,
                display_name=name,
                stage_id=spec.stage_id,
                approver_ids=(
                    frozenset(spec.approver_ids)
                    if spec.approver_ids is not None
                    else None
                ),
            )
        )

    current_order = [s.id for s in ordered(existing)]
    requested_order = [p.stage_id for p in planned]

    return ReconfigurationPlan(
        project_id=project_id,
        stages=tuple(planned),
        deleted_stage_ids=frozenset(existing_ids - referenced),
        rename_only=requested_order == current_order,
    )


def plan_renames(
    existing: Sequence[StageInfo],
    renames: Sequence[tuple[UUID, str]],
) -> dict[UUID, str]:
    """
    Validate a names-only change and return ``{stage_id: new_name}``.

    Names must stay unique across the whole project after the change, so
    stages not mentioned keep their current names in the uniqueness check.

    Raises:
        StageNotFoundError: an id is not one of the project's stages.
        DuplicateStageReferenceError: the same id is listed twice.
        StageDisplayNameRequiredError / DuplicateStageNameError
    """
    by_id = {s.id: s for s in existing}
    requested: dict[UUID, str] = {}
    for stage_id, name in renames:
        if stage_id not in by_id:
            raise StageNotFoundError(str(stage_id))
        if stage_id in requested:
            raise DuplicateStageReferenceError(str(stage_id))
        requested[stage_id] = name

    final_names = [
        requested.get(stage.id, stage.display_name) for stage in ordered(existing)
    ]
    cleaned = _clean_names(final_names)
    return {
        stage.id: name
        for stage, name in zip(ordered(existing), cleaned)
        if stage.id in requested
    }
