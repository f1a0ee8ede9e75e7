"""
Module: timesheet_kernel.models.project
Responsibility: ORM persistence for projects, their ordered approval stages,
    and the approver identities attached to each stage.
Architecture position: Kernel > Models.  May import from db/ and domain/.

Invariants enforced:
    - UNIQUE(project_id, sequence): no two stages share a position.
      Contiguity (0..n-1) is maintained by StageReconfigurationService.
    - UNIQUE(stage_id, approver_id): an identity approves a stage at most once.
    - A project exclusively owns its stages; a stage exclusively owns its
      approver rows (ON DELETE CASCADE plus ORM delete-orphan).

Failure modes:
    - IntegrityError on duplicate sequence or duplicate approver.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from timesheet_kernel.db.base import TrackedBase
from timesheet_kernel.db.types import UUIDString
from timesheet_kernel.domain.dtos import ProjectInfo, StageInfo


class Project(TrackedBase):
    """A project against which time is logged."""

    __tablename__ = "projects"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    stages: Mapped[list["Stage"]] = relationship(
        "Stage",
        back_populates="project",
        order_by="Stage.sequence",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<Project {self.id} {self.name!r} active={self.active}>"

    def to_dto(self) -> ProjectInfo:
        return ProjectInfo(
            id=self.id,
            name=self.name,
            active=self.active,
            stages=tuple(s.to_dto() for s in self.stages),
        )


class Stage(TrackedBase):
    """
    One step of a project's linear approval pipeline.

    Contract:
        ``sequence`` is the zero-based position within the project.  A project
        with zero stages auto-approves submitted entries.
    """

    __tablename__ = "stages"

    __table_args__ = (
        UniqueConstraint("project_id", "sequence", name="uq_stages_project_sequence"),
        Index("ix_stages_project", "project_id"),
    )

    project_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)

    project: Mapped["Project"] = relationship("Project", back_populates="stages")
    approvers: Mapped[list["StageApprover"]] = relationship(
        "StageApprover",
        back_populates="stage",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
    )

    @property
    def approver_ids(self) -> frozenset[UUID]:
        return frozenset(a.approver_id for a in self.approvers)

    def __repr__(self) -> str:
        return f"<Stage {self.id} project={self.project_id} #{self.sequence} {self.display_name!r}>"

    def to_dto(self) -> StageInfo:
        return StageInfo(
            id=self.id,
            project_id=self.project_id,
            sequence=self.sequence,
            display_name=self.display_name,
            approver_ids=self.approver_ids,
        )


class StageApprover(TrackedBase):
    """An identity permitted to approve or reject at a stage."""

    __tablename__ = "stage_approvers"

    __table_args__ = (
        UniqueConstraint("stage_id", "approver_id", name="uq_stage_approvers_identity"),
        Index("ix_stage_approvers_approver", "approver_id"),
    )

    stage_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("stages.id", ondelete="CASCADE"),
        nullable=False,
    )
    approver_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    stage: Mapped["Stage"] = relationship("Stage", back_populates="approvers")

    def __repr__(self) -> str:
        return f"<StageApprover stage={self.stage_id} approver={self.approver_id}>"
