"""Tests for atomic application of a modification batch."""

from datetime import date

import pytest

from training_planner.core.errors import ModificationApplyError
from training_planner.plans.modify.apply import apply_modifications
from training_planner.plans.modify.types import Modification
from training_planner.plans.revision.builder import PlanRevisionBuilder

START = date(2024, 6, 12)
FRIDAY = date(2024, 6, 14)
SATURDAY = date(2024, 6, 15)
SUNDAY = date(2024, 6, 16)


def _mod(**fields) -> Modification:
    return Modification.model_validate(fields)


def test_cancel_turns_day_into_rest(sample_plan, cancel_friday):
    days = apply_modifications(sample_plan.days, [_mod(**cancel_friday)], start_date=START)

    assert days[FRIDAY].is_rest
    assert days[FRIDAY].title is None
    assert sample_plan.days[FRIDAY].workout == "Tempo 5x1km"


def test_reschedule_moves_workout_and_leaves_rest(sample_plan):
    modification = _mod(
        date="2024-06-14",
        operation="reschedule",
        before={"workout": "Tempo 5x1km"},
        after={"target_date": "2024-06-16"},
    )

    days = apply_modifications(sample_plan.days, [modification], start_date=START)

    assert days[SUNDAY].workout == "Tempo 5x1km"
    assert days[SUNDAY].date == SUNDAY
    assert days[FRIDAY].is_rest


def test_modify_replaces_workout_and_title(sample_plan):
    modification = _mod(
        date="2024-06-15",
        operation="modify",
        before={"workout": "Long run 90 min", "title": "Long Run"},
        after={"workout": "Long run 75 min"},
    )

    days = apply_modifications(sample_plan.days, [modification], start_date=START)

    assert days[SATURDAY].workout == "Long run 75 min"
    assert days[SATURDAY].title == "Long Run"


def test_batch_applies_in_order(sample_plan, cancel_friday):
    reschedule = _mod(
        date="2024-06-15",
        operation="reschedule",
        before={"workout": "Long run 90 min"},
        after={"target_date": "2024-06-14"},
    )

    days = apply_modifications(sample_plan.days, [_mod(**cancel_friday), reschedule], start_date=START)

    assert days[FRIDAY].workout == "Long run 90 min"
    assert days[SATURDAY].is_rest


def test_failing_modification_rejects_whole_batch(sample_plan, cancel_friday):
    original = dict(sample_plan.days)
    stale = _mod(date="2024-06-15", operation="cancel", before={"workout": "Hill repeats"})

    with pytest.raises(ModificationApplyError) as excinfo:
        apply_modifications(sample_plan.days, [_mod(**cancel_friday), stale], start_date=START)

    assert excinfo.value.index == 1
    assert excinfo.value.code == "modification_not_applicable"
    assert sample_plan.days == original


@pytest.mark.parametrize(
    ("fields", "reason"),
    [
        ({"date": "2024-07-01", "operation": "cancel", "before": {"workout": "Rest"}}, "not a day of this plan"),
        ({"date": "2024-06-13", "operation": "cancel", "before": {"workout": "Rest"}}, "already a rest day"),
        (
            {"date": "2024-06-14", "operation": "cancel", "before": {"workout": "Tempo 5x1km", "title": "Intervals"}},
            "no longer shows",
        ),
        (
            {
                "date": "2024-06-14",
                "operation": "reschedule",
                "before": {"workout": "Tempo 5x1km"},
                "after": {"target_date": "2024-06-15"},
            },
            "already has 'Long Run'",
        ),
        (
            {
                "date": "2024-06-14",
                "operation": "reschedule",
                "before": {"workout": "Tempo 5x1km"},
                "after": {"target_date": "2024-06-30"},
            },
            "outside the plan",
        ),
        (
            {
                "date": "2024-06-14",
                "operation": "reschedule",
                "before": {"workout": "Tempo 5x1km"},
                "after": {"target_date": "2024-06-14"},
            },
            "different target date",
        ),
        (
            {
                "date": "2024-06-14",
                "operation": "modify",
                "before": {"workout": "Tempo 5x1km"},
                "after": {"workout": "Tempo 5x1km"},
            },
            "already shows this workout",
        ),
    ],
)
def test_inapplicable_modifications(sample_plan, fields, reason):
    with pytest.raises(ModificationApplyError) as excinfo:
        apply_modifications(sample_plan.days, [_mod(**fields)], start_date=START)

    assert reason in excinfo.value.reason


def test_empty_batch_is_rejected(sample_plan):
    with pytest.raises(ModificationApplyError):
        apply_modifications(sample_plan.days, [], start_date=START)


def test_structural_problems_fail_validation():
    with pytest.raises(ValueError):
        _mod(date="2024-06-14", operation="cancel", before={"workout": "Tempo"}, after={"workout": "Easy"})
    with pytest.raises(ValueError):
        _mod(date="2024-06-14", operation="reschedule", before={"workout": "Tempo"}, after={"workout": "Easy"})
    with pytest.raises(ValueError):
        _mod(date="2024-06-14", operation="modify", before={"workout": "Tempo"}, after={})


def test_modify_cannot_carry_target_date():
    with pytest.raises(ValueError, match="use reschedule"):
        _mod(
            date="2024-06-14",
            operation="modify",
            before={"workout": "Tempo"},
            after={"workout": "Easy 30min", "target_date": "2024-06-16"},
        )


def test_revision_builder_records_deltas(sample_plan, cancel_friday):
    builder = PlanRevisionBuilder(plan_id="plan-1", preview_id="preview-1", from_version=1)

    apply_modifications(sample_plan.days, [_mod(**cancel_friday)], start_date=START, revision=builder)

    assert [(d.date, d.field, d.old, d.new) for d in builder.deltas] == [
        ("2024-06-14", "workout", "Tempo 5x1km", "Rest"),
        ("2024-06-14", "title", "Tempo", None),
    ]
