"""PlanRevisionBuilder - constructs immutable PlanRevision records.

Used by the commit path to record every field that changed.
"""

import uuid
from datetime import datetime

from training_planner.plans.revision.types import PlanRevision, RevisionDelta, RevisionField


class PlanRevisionBuilder:
    """Builder for creating PlanRevision records.

    Usage:
        builder = PlanRevisionBuilder(plan_id="p1", preview_id="pv1", from_version=3)
        builder.add_delta(date="2024-06-14", operation="cancel", field="workout", old="Tempo 5k", new="Rest")
        revision = builder.finalize(created_at=now)
    """

    def __init__(self, *, plan_id: str, preview_id: str, from_version: int) -> None:
        self.plan_id = plan_id
        self.preview_id = preview_id
        self.from_version = from_version
        self.deltas: list[RevisionDelta] = []

    def add_delta(
        self,
        *,
        date: str,
        operation: str,
        field: RevisionField,
        old: str | None = None,
        new: str | None = None,
    ) -> None:
        """Add a field change delta. Unchanged values are not recorded."""
        if old == new:
            return
        self.deltas.append(
            RevisionDelta(
                date=date,
                operation=operation,
                field=field,
                old=old,
                new=new,
            )
        )

    def finalize(self, *, created_at: datetime) -> PlanRevision:
        """Finalize and return the PlanRevision.

        The revision always moves the plan forward by exactly one version.
        """
        dates = sorted({delta.date for delta in self.deltas})
        return PlanRevision(
            revision_id=str(uuid.uuid4()),
            plan_id=self.plan_id,
            preview_id=self.preview_id,
            from_version=self.from_version,
            to_version=self.from_version + 1,
            created_at=created_at,
            deltas=tuple(self.deltas),
            affected_range={"start": dates[0], "end": dates[-1]} if dates else None,
        )
