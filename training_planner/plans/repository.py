"""Repository for training plans and their revision log.

Single responsibility: database operations only. Plans are read back as
TrainingPlan aggregates, so the week grid is always recomputed from the
stored day list rather than trusted from storage.
"""

from collections.abc import Callable
from contextlib import AbstractContextManager
from datetime import datetime, timezone

from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from training_planner.core.errors import CommitVerificationError, PlanNotFoundError, VersionConflictError
from training_planner.db.models import PlanRevisionRecord, TrainingPlanRecord
from training_planner.db.session import get_session
from training_planner.plans.plan import TrainingPlan
from training_planner.plans.revision.types import PlanRevision, RevisionDelta

SessionFactory = Callable[[], AbstractContextManager[Session]]


def _serialize_days(plan: TrainingPlan) -> list[dict]:
    return [record.model_dump(mode="json") for record in plan.days.values()]


def _serialize_weeks(plan: TrainingPlan) -> list[dict]:
    return [week.model_dump(mode="json") for week in plan.weeks]


def _plan_from_record(record: TrainingPlanRecord) -> TrainingPlan:
    return TrainingPlan(
        plan_id=record.plan_id,
        user_id=record.user_id,
        start_date=record.start_date,
        version=record.version,
        days=list(record.days or []),
    )


def _revision_from_record(record: PlanRevisionRecord) -> PlanRevision:
    affected = None
    if record.affected_start and record.affected_end:
        affected = {"start": record.affected_start, "end": record.affected_end}
    return PlanRevision(
        revision_id=record.revision_id,
        plan_id=record.plan_id,
        preview_id=record.preview_id,
        from_version=record.from_version,
        to_version=record.to_version,
        created_at=record.created_at,
        deltas=tuple(RevisionDelta.model_validate(d) for d in record.deltas or []),
        affected_range=affected,
    )


class PlanRepository:
    """Reads and writes TrainingPlan aggregates.

    Args:
        session_factory: Context manager factory yielding a SQLAlchemy session
            that commits on exit (defaults to ``get_session``)
    """

    def __init__(self, session_factory: SessionFactory | None = None) -> None:
        self._session_factory = session_factory or get_session

    def create(self, plan: TrainingPlan) -> TrainingPlan:
        now = datetime.now(timezone.utc)
        with self._session_factory() as session:
            session.add(
                TrainingPlanRecord(
                    plan_id=plan.plan_id,
                    user_id=plan.user_id,
                    start_date=plan.start_date,
                    version=plan.version,
                    days=_serialize_days(plan),
                    weeks=_serialize_weeks(plan),
                    created_at=now,
                    updated_at=now,
                )
            )
        logger.info("Training plan created", plan_id=plan.plan_id, user_id=plan.user_id, days=len(plan.days))
        return self.get(plan.plan_id)

    def get(self, plan_id: str, *, user_id: str | None = None) -> TrainingPlan:
        """Load a plan; a plan owned by someone else is reported as not found."""
        with self._session_factory() as session:
            record = session.get(TrainingPlanRecord, plan_id)
            if record is None or (user_id is not None and record.user_id != user_id):
                raise PlanNotFoundError(plan_id)
            return _plan_from_record(record)

    def save_commit(
        self,
        plan: TrainingPlan,
        *,
        basis_version: int,
        revision: PlanRevision | None = None,
    ) -> TrainingPlan:
        """Persist a committed plan with a compare-and-swap on ``version``.

        Args:
            plan: New plan state; its version must be ``basis_version + 1``
            basis_version: Version the edits were computed against
            revision: Optional audit record stored in the same transaction

        Returns:
            The plan as read back after the commit

        Raises:
            VersionConflictError: If the stored version is no longer ``basis_version``
            CommitVerificationError: If the read-back does not show the commit
        """
        if plan.version != basis_version + 1:
            raise ValueError(f"Committed plan must be v{basis_version + 1}, got v{plan.version}")

        with self._session_factory() as session:
            result = session.execute(
                update(TrainingPlanRecord)
                .where(TrainingPlanRecord.plan_id == plan.plan_id)
                .where(TrainingPlanRecord.version == basis_version)
                .values(
                    version=plan.version,
                    days=_serialize_days(plan),
                    weeks=_serialize_weeks(plan),
                    updated_at=datetime.now(timezone.utc),
                )
            )
            if result.rowcount != 1:
                current = session.get(TrainingPlanRecord, plan.plan_id)
                if current is None:
                    raise PlanNotFoundError(plan.plan_id)
                raise VersionConflictError(basis_version, current.version)

            if revision is not None:
                session.add(
                    PlanRevisionRecord(
                        revision_id=revision.revision_id,
                        plan_id=revision.plan_id,
                        preview_id=revision.preview_id,
                        from_version=revision.from_version,
                        to_version=revision.to_version,
                        deltas=[delta.model_dump(mode="json") for delta in revision.deltas],
                        affected_start=(revision.affected_range or {}).get("start"),
                        affected_end=(revision.affected_range or {}).get("end"),
                        created_at=revision.created_at,
                    )
                )

        stored = self.get(plan.plan_id)
        if stored.version < plan.version:
            logger.error(
                "Committed plan did not read back at the committed version",
                plan_id=plan.plan_id,
                expected_version=plan.version,
                stored_version=stored.version,
            )
            raise CommitVerificationError(plan.plan_id, plan.version, stored.version)

        logger.info("Training plan committed", plan_id=plan.plan_id, version=stored.version)
        return stored

    def list_revisions(self, plan_id: str) -> list[PlanRevision]:
        """Revisions for a plan, oldest first."""
        with self._session_factory() as session:
            records = session.execute(
                select(PlanRevisionRecord)
                .where(PlanRevisionRecord.plan_id == plan_id)
                .order_by(PlanRevisionRecord.to_version)
            ).scalars()
            return [_revision_from_record(record) for record in records]
