"""TrainingPlan aggregate.

``days`` is canonical. ``weeks`` is derived when the plan is constructed and
cannot be assigned, so a plan whose grid disagrees with its day list is never
observable. Edits produce a new plan through ``with_days``.
"""

from collections.abc import Mapping
from datetime import date
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, field_validator

from training_planner.plans.normalizer import to_weeks_with_report
from training_planner.plans.types import DayRecord, NormalizationReport, WeekRecord


class TrainingPlan(BaseModel):
    model_config = ConfigDict(frozen=True)

    plan_id: str
    user_id: str
    start_date: date
    version: int = Field(default=1, ge=1)
    days: dict[date, DayRecord] = Field(default_factory=dict)

    _weeks: tuple[WeekRecord, ...] = PrivateAttr(default=())
    _report: NormalizationReport = PrivateAttr(default_factory=NormalizationReport)

    @field_validator("days", mode="before")
    @classmethod
    def key_days_by_date(cls, value: Any) -> Any:
        """Accept either a date-keyed mapping or a list of day records."""
        if isinstance(value, list):
            records = [DayRecord.model_validate(item) for item in value]
            return {record.date: record for record in records}
        return value

    @field_validator("days")
    @classmethod
    def check_keys_match_records(cls, value: dict[date, DayRecord]) -> dict[date, DayRecord]:
        for key, record in value.items():
            if key != record.date:
                raise ValueError(f"Day keyed {key.isoformat()} holds a record for {record.date.isoformat()}")
        return dict(sorted(value.items()))

    def model_post_init(self, __context: Any) -> None:
        weeks, report = to_weeks_with_report(self.days, self.start_date)
        self._weeks = weeks
        self._report = report

    @property
    def weeks(self) -> tuple[WeekRecord, ...]:
        return self._weeks

    @property
    def normalization_report(self) -> NormalizationReport:
        return self._report

    @property
    def end_date(self) -> date | None:
        in_range = [d for d in self.days if d >= self.start_date]
        return max(in_range) if in_range else None

    def covers(self, day: date) -> bool:
        end = self.end_date
        return end is not None and self.start_date <= day <= end

    def with_days(self, days: Mapping[date, DayRecord], *, version: int) -> "TrainingPlan":
        """Return a new plan with a replaced day list; the grid is rebuilt."""
        return TrainingPlan(
            plan_id=self.plan_id,
            user_id=self.user_id,
            start_date=self.start_date,
            version=version,
            days=dict(days),
        )

    def snapshot(self) -> dict[str, Any]:
        """JSON-ready view of the plan as sent to the modification planner."""
        return {
            "plan_id": self.plan_id,
            "start_date": self.start_date.isoformat(),
            "version": self.version,
            "days": [record.model_dump(mode="json") for record in self.days.values()],
        }
