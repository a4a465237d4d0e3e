"""PlanRevision types - the audit record of a committed preview.

PlanRevision answers one question only:
"What changed, and from which plan version to which?"

It does NOT execute changes or generate text. It is immutable and append-only.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

RevisionField = Literal["workout", "title", "date"]


class RevisionDelta(BaseModel):
    """A single field change on one day.

    Attributes:
        date: ISO date of the day that changed
        operation: Modification that produced the change
        field: Name of the field that changed
        old: Value before the commit
        new: Value after the commit
    """

    model_config = ConfigDict(frozen=True)

    date: str
    operation: str
    field: RevisionField
    old: str | None = None
    new: str | None = None


class PlanRevision(BaseModel):
    """Immutable record of one committed preview.

    Attributes:
        revision_id: Unique identifier for this revision
        plan_id: Plan the revision belongs to
        preview_id: Preview that was approved
        from_version: Plan version the preview was computed against
        to_version: Plan version after the commit
        created_at: Commit timestamp (UTC)
        deltas: Field-level changes
        affected_range: First and last affected ISO date
    """

    model_config = ConfigDict(frozen=True)

    revision_id: str
    plan_id: str
    preview_id: str
    from_version: int
    to_version: int
    created_at: datetime
    deltas: tuple[RevisionDelta, ...] = Field(default_factory=tuple)
    affected_range: dict[str, str] | None = None
