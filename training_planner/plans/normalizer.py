"""Bidirectional mapping between the canonical day list and the week grid.

The grid is Monday-aligned: the anchor is the Monday on or before the plan
start date, ``week_index = (day - anchor).days // 7`` and the slot is
``day.weekday()``. The normalizer only reads ``days``; it never writes to it.

Gaps inside the covered range ``[start_date, last day]`` are repaired with a
``repaired_rest`` slot and reported, so a partially updated day list can never
silently drop entries from the grid.
"""

from collections.abc import Mapping
from datetime import date, timedelta

from loguru import logger

from training_planner.plans.types import (
    DayRecord,
    NormalizationInvariantViolation,
    NormalizationReport,
    WeekRecord,
    WeekSlot,
)


def grid_anchor(start_date: date) -> date:
    """Monday on or before ``start_date``."""
    return start_date - timedelta(days=start_date.weekday())


def week_index_for(day: date, start_date: date) -> int:
    return (day - grid_anchor(start_date)).days // 7


def plan_week_number(day: date, start_date: date) -> int | None:
    """1-based plan week for ``day``, or None before the plan starts."""
    if day < start_date:
        return None
    return week_index_for(day, start_date) + 1


def to_weeks_with_report(
    days: Mapping[date, DayRecord],
    start_date: date,
) -> tuple[tuple[WeekRecord, ...], NormalizationReport]:
    """Build the week grid and collect any repairs that were needed.

    Args:
        days: Canonical day list keyed by date
        start_date: Plan start date (week 1 anchor)

    Returns:
        Tuple of (weeks, report)
    """
    repairs: list[NormalizationInvariantViolation] = []

    for day in sorted(d for d in days if d < start_date):
        repairs.append(
            NormalizationInvariantViolation(
                date=day,
                kind="out_of_range",
                detail=f"{day.isoformat()} is before plan start {start_date.isoformat()}",
            )
        )

    in_range = [d for d in days if d >= start_date]
    if not in_range:
        return (), NormalizationReport(repairs=tuple(repairs))

    end_date = max(in_range)
    anchor = grid_anchor(start_date)
    week_count = week_index_for(end_date, start_date) + 1

    weeks: list[WeekRecord] = []
    for week_index in range(week_count):
        week_start = anchor + timedelta(days=week_index * 7)
        slots: list[WeekSlot] = []
        for offset in range(7):
            current = week_start + timedelta(days=offset)
            if current < start_date:
                slots.append(WeekSlot(date=current, kind="before_start"))
            elif current > end_date:
                slots.append(WeekSlot(date=current, kind="after_end"))
            elif current in days:
                slots.append(WeekSlot(date=current, kind="scheduled", day=days[current]))
            else:
                repairs.append(
                    NormalizationInvariantViolation(
                        date=current,
                        kind="missing_day",
                        detail=f"No day record for {current.isoformat()} inside the plan range",
                    )
                )
                slots.append(WeekSlot(date=current, kind="repaired_rest", day=DayRecord.rest(current)))
        weeks.append(WeekRecord(week_number=week_index + 1, start_date=week_start, slots=tuple(slots)))

    report = NormalizationReport(repairs=tuple(repairs))
    if report.repaired:
        logger.warning(
            "Week grid repaired during normalization",
            start_date=start_date.isoformat(),
            repair_count=len(report.repairs),
            repaired_dates=[r.date.isoformat() for r in report.repairs[:10]],
        )
    return tuple(weeks), report


def to_weeks(days: Mapping[date, DayRecord], start_date: date) -> tuple[WeekRecord, ...]:
    """Derive the week grid from the canonical day list."""
    weeks, _ = to_weeks_with_report(days, start_date)
    return weeks


def to_days(weeks: tuple[WeekRecord, ...] | list[WeekRecord]) -> dict[date, DayRecord]:
    """Recover a canonical day list from a week grid.

    Placeholders are dropped; repaired rest slots become rest records. This is
    also the migration path for plans stored only as a week grid.
    """
    days: dict[date, DayRecord] = {}
    for week in weeks:
        for slot in week.slots:
            if not slot.is_schedulable:
                continue
            record = slot.day if slot.day is not None else DayRecord.rest(slot.date)
            if record.date != slot.date:
                logger.warning(
                    "Week slot holds a record for another date, re-dating it",
                    slot_date=slot.date.isoformat(),
                    record_date=record.date.isoformat(),
                )
                record = record.model_copy(update={"date": slot.date})
            days[slot.date] = record
    return dict(sorted(days.items()))


def normalize(days: Mapping[date, DayRecord], start_date: date) -> dict[date, DayRecord]:
    """Heal a day list by round-tripping it through the week grid.

    Idempotent: ``normalize(normalize(d, s), s) == normalize(d, s)``.
    """
    return to_days(to_weeks(days, start_date))
