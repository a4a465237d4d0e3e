"""Tests for the day list <-> week grid mapping."""

from datetime import date, timedelta

from training_planner.plans.normalizer import grid_anchor, normalize, plan_week_number, to_days, to_weeks, to_weeks_with_report
from training_planner.plans.plan import TrainingPlan
from training_planner.plans.types import DAY_NAMES, DayRecord

START = date(2024, 6, 12)


def _by_date(days):
    return {d.date: d for d in days}


def test_grid_is_anchored_on_monday_before_start():
    assert grid_anchor(START) == date(2024, 6, 10)
    assert grid_anchor(date(2024, 6, 10)) == date(2024, 6, 10)


def test_wednesday_start_has_monday_and_tuesday_placeholders(sample_days):
    weeks = to_weeks(_by_date(sample_days), START)

    first = weeks[0]
    assert first.week_number == 1
    assert first.start_date == date(2024, 6, 10)
    assert first.slot("Mon").kind == "before_start"
    assert first.slot("Tue").kind == "before_start"
    assert first.slot("Wed").kind == "scheduled"
    assert first.slot("Wed").day.workout == "Easy run 40 min"
    assert first.slot("Mon").label == "Before plan start"


def test_every_slot_sits_on_its_weekday(sample_days):
    weeks = to_weeks(_by_date(sample_days), START)

    assert len(weeks) == 2
    for week in weeks:
        assert len(week.slots) == 7
        for index, slot in enumerate(week.slots):
            assert slot.date.weekday() == index
            if slot.day is not None:
                assert slot.day.date == slot.date


def test_every_scheduled_day_appears_exactly_once(sample_days):
    weeks = to_weeks(_by_date(sample_days), START)

    scheduled = [s.date for w in weeks for s in w.slots if s.kind == "scheduled"]
    assert sorted(scheduled) == [d.date for d in sample_days]


def test_round_trip_returns_the_same_days(sample_days):
    days = _by_date(sample_days)

    assert to_days(to_weeks(days, START)) == days


def test_slots_after_last_day_are_after_end(sample_days):
    days = _by_date(sample_days[:9])  # ends Thursday 2024-06-20

    weeks = to_weeks(days, START)

    assert [weeks[1].slot(name).kind for name in ("Thu", "Fri", "Sat", "Sun")] == [
        "scheduled",
        "after_end",
        "after_end",
        "after_end",
    ]
    assert date(2024, 6, 21) not in to_days(weeks)


def test_gap_is_repaired_and_reported(sample_days):
    days = _by_date(sample_days)
    del days[date(2024, 6, 18)]

    weeks, report = to_weeks_with_report(days, START)

    slot = weeks[1].slot("Tue")
    assert slot.kind == "repaired_rest"
    assert slot.day.is_rest
    assert report.repaired
    assert [(r.date, r.kind) for r in report.repairs] == [(date(2024, 6, 18), "missing_day")]


def test_normalize_heals_gaps_and_is_idempotent(sample_days):
    days = _by_date(sample_days)
    del days[date(2024, 6, 18)]

    once = normalize(days, START)
    twice = normalize(once, START)

    assert once == twice
    assert once[date(2024, 6, 18)].workout == "Rest"
    assert len(once) == len(sample_days)


def test_days_before_start_are_reported_not_placed(sample_days):
    days = _by_date(sample_days)
    days[date(2024, 6, 11)] = DayRecord(date=date(2024, 6, 11), workout="Shakeout 20 min")

    weeks, report = to_weeks_with_report(days, START)

    assert weeks[0].slot("Tue").kind == "before_start"
    assert [(r.date, r.kind) for r in report.repairs] == [(date(2024, 6, 11), "out_of_range")]
    assert date(2024, 6, 11) not in to_days(weeks)


def test_empty_plan_has_no_weeks():
    weeks, report = to_weeks_with_report({}, START)

    assert weeks == ()
    assert not report.repaired


def test_plan_week_number():
    assert plan_week_number(date(2024, 6, 11), START) is None
    assert plan_week_number(START, START) == 1
    assert plan_week_number(date(2024, 6, 16), START) == 1
    assert plan_week_number(date(2024, 6, 17), START) == 2


def test_training_plan_exposes_derived_grid(sample_plan):
    assert [w.week_number for w in sample_plan.weeks] == [1, 2]
    assert sample_plan.end_date == date(2024, 6, 23)
    assert sample_plan.covers(START)
    assert not sample_plan.covers(date(2024, 6, 24))


def test_with_days_rebuilds_the_grid(sample_plan):
    days = dict(sample_plan.days)
    days[date(2024, 6, 14)] = DayRecord.rest(date(2024, 6, 14))

    updated = sample_plan.with_days(days, version=2)

    assert updated.version == 2
    assert updated.weeks[0].slot("Fri").day.is_rest
    assert sample_plan.weeks[0].slot("Fri").day.workout == "Tempo 5x1km"


def test_training_plan_accepts_day_list_and_sorts_it(sample_days):
    plan = TrainingPlan(plan_id="p", user_id="u", start_date=START, days=list(reversed(sample_days)))

    assert list(plan.days) == [d.date for d in sample_days]
    assert plan.snapshot()["days"][0]["date"] == "2024-06-12"


def test_slot_labels_use_titles(sample_plan):
    week = sample_plan.weeks[0]

    assert [week.slot(name).label for name in DAY_NAMES] == [
        "Before plan start",
        "Before plan start",
        "Easy Run",
        "Rest",
        "Tempo",
        "Long Run",
        "Rest",
    ]


def test_grid_covers_multi_week_plan():
    start = date(2024, 6, 3)
    days = {start + timedelta(days=i): DayRecord(date=start + timedelta(days=i)) for i in range(28)}

    weeks = to_weeks(days, start)

    assert len(weeks) == 4
    assert all(s.kind == "scheduled" for w in weeks for s in w.slots)
