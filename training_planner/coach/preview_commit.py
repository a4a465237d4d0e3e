"""Approve/reject lifecycle of a previewed batch of plan edits.

State machine per plan::

    idle -> preview_held -> (committed | rejected | expired)

At most one preview is held per plan. Only ``approve`` has a durable side
effect, and it either applies the whole batch and bumps the plan version or
leaves the plan untouched. Failed commits are never retried automatically.
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Literal

from loguru import logger

from training_planner.config.settings import settings
from training_planner.core.errors import (
    ExpiredPreviewError,
    ModificationApplyError,
    PlanEngineError,
    PreviewAlreadyHeldError,
    UnknownPreviewError,
    VersionConflictError,
)
from training_planner.plans.modify.apply import apply_modifications
from training_planner.plans.modify.types import PreviewSet
from training_planner.plans.plan import TrainingPlan
from training_planner.plans.repository import PlanRepository
from training_planner.plans.revision.builder import PlanRevisionBuilder
from training_planner.plans.revision.types import PlanRevision

PreviewState = Literal["idle", "preview_held", "committed", "rejected", "expired"]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_utc(dt: datetime) -> datetime:
    """Convert datetime to UTC, assuming UTC for naive values."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@dataclass(frozen=True)
class CommitResult:
    preview_id: str
    plan: TrainingPlan
    revision: PlanRevision


class PreviewCommitController:
    """Holds at most one preview for a plan and commits it on approval.

    Args:
        plan_id: Plan this controller guards
        repository: Plan persistence
        clock: Returns the current UTC time; injected so expiry is testable
        ttl: Maximum preview lifetime; a planner-supplied expiry is never extended past it
    """

    def __init__(
        self,
        plan_id: str,
        repository: PlanRepository,
        *,
        clock: Callable[[], datetime] = utc_now,
        ttl: timedelta | None = None,
    ) -> None:
        self.plan_id = plan_id
        self._repository = repository
        self._clock = clock
        self._ttl = ttl or timedelta(minutes=settings.preview_ttl_minutes)
        self._held: PreviewSet | None = None
        self.state: PreviewState = "idle"

    @property
    def held(self) -> PreviewSet | None:
        return self._held

    def _now(self) -> datetime:
        return to_utc(self._clock())

    def _finish(self, outcome: PreviewState) -> None:
        held = self._held
        self._held = None
        self.state = outcome
        logger.info(
            "Preview finished",
            plan_id=self.plan_id,
            preview_id=held.preview_id if held else None,
            outcome=outcome,
        )

    def _expire_if_stale(self) -> None:
        if self._held is not None and self._now() > self._held.expires_at:
            self._finish("expired")

    def has_live_preview(self) -> bool:
        self._expire_if_stale()
        return self._held is not None

    def hold_preview(self, preview: PreviewSet) -> PreviewSet:
        """Hold a preview until it is approved, rejected, or expires.

        Raises:
            PreviewAlreadyHeldError: If another live preview is held for this plan
            PlanEngineError: If the preview belongs to a different plan
        """
        if preview.plan_id is not None and preview.plan_id != self.plan_id:
            raise PlanEngineError(
                f"Preview {preview.preview_id} belongs to plan {preview.plan_id}",
                code="preview_plan_mismatch",
            )
        self._expire_if_stale()
        if self._held is not None:
            raise PreviewAlreadyHeldError(self.plan_id, self._held.preview_id)

        deadline = self._now() + self._ttl
        expires_at = min(to_utc(preview.expires_at), deadline)
        held = preview.model_copy(update={"expires_at": expires_at, "plan_id": self.plan_id})
        self._held = held
        self.state = "preview_held"
        logger.info(
            "Preview held",
            plan_id=self.plan_id,
            preview_id=held.preview_id,
            basis_version=held.basis_version,
            modifications=len(held.modifications),
            expires_at=expires_at.isoformat(),
        )
        return held

    def approve(self, preview_id: str, *, basis_version: int | None = None) -> CommitResult:
        """Commit the held preview.

        Args:
            preview_id: Preview being approved
            basis_version: Version the client saw when approving, if it sent one

        Returns:
            CommitResult with the plan as read back after the commit

        Raises:
            ExpiredPreviewError: If the held preview is past its expiry
            UnknownPreviewError: If no preview with this id is held
            VersionConflictError: If the plan moved since the preview was computed
            ModificationApplyError: If any modification in the batch cannot be applied
        """
        held = self._held
        if held is None:
            raise UnknownPreviewError(preview_id)

        now = self._now()
        if now > held.expires_at:
            self._finish("expired")
            raise ExpiredPreviewError(held.preview_id)

        if preview_id != held.preview_id:
            raise UnknownPreviewError(preview_id)

        if basis_version is not None and basis_version != held.basis_version:
            self._finish("idle")
            raise VersionConflictError(held.basis_version, basis_version)

        plan = self._repository.get(self.plan_id)
        if plan.version != held.basis_version:
            logger.warning(
                "Preview is stale, plan moved on",
                plan_id=self.plan_id,
                preview_id=held.preview_id,
                basis_version=held.basis_version,
                current_version=plan.version,
            )
            self._finish("idle")
            raise VersionConflictError(held.basis_version, plan.version)

        builder = PlanRevisionBuilder(plan_id=self.plan_id, preview_id=held.preview_id, from_version=plan.version)
        try:
            days = apply_modifications(plan.days, held.modifications, start_date=plan.start_date, revision=builder)
        except ModificationApplyError:
            self._finish("idle")
            raise

        committed = plan.with_days(days, version=plan.version + 1)
        revision = builder.finalize(created_at=now)
        try:
            stored = self._repository.save_commit(committed, basis_version=held.basis_version, revision=revision)
        except VersionConflictError:
            self._finish("idle")
            raise

        self._finish("committed")
        return CommitResult(preview_id=held.preview_id, plan=stored, revision=revision)

    def reject(self, preview_id: str) -> None:
        """Discard the held preview without touching the plan.

        Raises:
            UnknownPreviewError: If no preview with this id is held
        """
        held = self._held
        if held is None or held.preview_id != preview_id:
            raise UnknownPreviewError(preview_id)
        self._finish("rejected")
