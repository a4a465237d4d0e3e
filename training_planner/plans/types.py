"""Plan record types.

``DayRecord`` is the unit of the canonical day list. ``WeekSlot`` and
``WeekRecord`` make up the derived week grid, which is always recomputed from
the day list and is frozen so it can never be patched in place.
"""

from datetime import date
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

REST_WORKOUT = "Rest"
DAY_NAMES = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")

WorkoutKind = Literal["normal", "calibration"]
SlotKind = Literal["scheduled", "before_start", "after_end", "repaired_rest"]
RepairKind = Literal["missing_day", "out_of_range"]


def is_rest_workout(workout: str | None) -> bool:
    """Return True when a workout description denotes a rest day."""
    return workout is None or workout.strip() == "" or workout.strip().lower() == REST_WORKOUT.lower()


class DayRecord(BaseModel):
    """One calendar day of a training plan."""

    model_config = ConfigDict(frozen=True)

    date: date
    workout: str = REST_WORKOUT
    title: str | None = None
    tips: tuple[str, ...] = ()
    workout_kind: WorkoutKind | None = None

    @property
    def is_rest(self) -> bool:
        return is_rest_workout(self.workout)

    @classmethod
    def rest(cls, day: date) -> "DayRecord":
        return cls(date=day, workout=REST_WORKOUT)


class WeekSlot(BaseModel):
    """A single weekday cell of the week grid.

    Only ``scheduled`` and ``repaired_rest`` slots are schedulable.
    ``before_start`` and ``after_end`` are inert placeholders.
    """

    model_config = ConfigDict(frozen=True)

    date: date
    kind: SlotKind
    day: DayRecord | None = None

    @property
    def is_schedulable(self) -> bool:
        return self.kind in {"scheduled", "repaired_rest"}

    @property
    def label(self) -> str:
        if self.kind == "before_start":
            return "Before plan start"
        if self.kind == "after_end":
            return "After plan end"
        if self.day is None:
            return REST_WORKOUT
        return self.day.title or self.day.workout


class WeekRecord(BaseModel):
    """Seven Monday-to-Sunday slots. ``week_number`` is 1-based."""

    model_config = ConfigDict(frozen=True)

    week_number: int = Field(ge=1)
    start_date: date
    slots: tuple[WeekSlot, ...] = Field(min_length=7, max_length=7)

    def slot(self, day_name: str) -> WeekSlot:
        return self.slots[DAY_NAMES.index(day_name)]

    @property
    def scheduled_days(self) -> list[DayRecord]:
        return [s.day for s in self.slots if s.kind == "scheduled" and s.day is not None]


class NormalizationInvariantViolation(BaseModel):
    """A repair the normalizer made while building the week grid."""

    model_config = ConfigDict(frozen=True)

    date: date
    kind: RepairKind
    detail: str


class NormalizationReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    repairs: tuple[NormalizationInvariantViolation, ...] = ()

    @property
    def repaired(self) -> bool:
        return bool(self.repairs)
