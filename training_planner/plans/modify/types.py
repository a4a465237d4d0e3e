"""Modification types for previewed plan edits.

A PreviewSet is a batch of explicit, date-targeted modifications computed
against one plan version. It is applied whole or not at all.
"""

from collections import Counter
from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

ModificationOperation = Literal["cancel", "reschedule", "modify"]


class WorkoutSnapshot(BaseModel):
    """What the day looked like when the preview was computed."""

    model_config = ConfigDict(frozen=True)

    workout: str
    title: str | None = None


class ModificationAfter(BaseModel):
    """Target state. Absent for cancel."""

    model_config = ConfigDict(frozen=True)

    workout: str | None = None
    title: str | None = None
    target_date: date | None = None


class Modification(BaseModel):
    model_config = ConfigDict(frozen=True)

    date: date
    operation: ModificationOperation
    before: WorkoutSnapshot
    after: ModificationAfter | None = None
    reason: str | None = None

    @model_validator(mode="after")
    def check_after_matches_operation(self) -> "Modification":
        if self.operation == "cancel" and self.after is not None:
            raise ValueError("cancel modifications carry no 'after' state")
        if self.operation == "reschedule" and (self.after is None or self.after.target_date is None):
            raise ValueError("reschedule modifications need 'after.target_date'")
        if self.operation == "modify" and (
            self.after is None or (self.after.workout is None and self.after.title is None)
        ):
            raise ValueError("modify modifications need a new workout or title")
        if self.operation == "modify" and self.after.target_date is not None:
            raise ValueError("modify modifications cannot move the day; use reschedule")
        return self

    @property
    def affected_dates(self) -> list[date]:
        if self.operation == "reschedule" and self.after is not None and self.after.target_date is not None:
            return [self.date, self.after.target_date]
        return [self.date]


class PreviewSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    total: int
    by_operation: dict[str, int]
    first_date: date | None = None
    last_date: date | None = None
    warnings: list[str] = Field(default_factory=list)


class PreviewSet(BaseModel):
    """Proposed batch of edits awaiting explicit approval."""

    model_config = ConfigDict(frozen=True)

    preview_id: str
    plan_id: str | None = None
    basis_version: int = Field(ge=1)
    modifications: tuple[Modification, ...] = Field(min_length=1)
    expires_at: datetime

    def summarize(self, reference_date: date | None = None) -> PreviewSummary:
        """Summarize the batch for display.

        Args:
            reference_date: Today's date in the user's time zone; used to warn
                about edits that target past days.
        """
        dates = sorted({d for m in self.modifications for d in m.affected_dates})
        counts = Counter(m.operation for m in self.modifications)
        warnings: list[str] = []
        if reference_date is not None:
            past = [m for m in self.modifications if m.date < reference_date]
            if past:
                warnings.append(f"{len(past)} change(s) target days that are already in the past.")
        return PreviewSummary(
            total=len(self.modifications),
            by_operation=dict(counts),
            first_date=dates[0] if dates else None,
            last_date=dates[-1] if dates else None,
            warnings=warnings,
        )
