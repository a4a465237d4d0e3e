"""Tests for PlanRevisionBuilder."""

from datetime import UTC, datetime

from training_planner.plans.revision.builder import PlanRevisionBuilder


def test_finalize_moves_forward_one_version():
    builder = PlanRevisionBuilder(plan_id="plan-1", preview_id="preview-1", from_version=3)
    builder.add_delta(date="2024-06-16", operation="reschedule", field="workout", old=None, new="Tempo")
    builder.add_delta(date="2024-06-14", operation="reschedule", field="workout", old="Tempo", new="Rest")

    revision = builder.finalize(created_at=datetime(2024, 6, 12, tzinfo=UTC))

    assert revision.from_version == 3
    assert revision.to_version == 4
    assert revision.affected_range == {"start": "2024-06-14", "end": "2024-06-16"}
    assert len(revision.deltas) == 2


def test_unchanged_values_are_skipped():
    builder = PlanRevisionBuilder(plan_id="plan-1", preview_id="preview-1", from_version=1)
    builder.add_delta(date="2024-06-14", operation="modify", field="title", old="Tempo", new="Tempo")

    revision = builder.finalize(created_at=datetime(2024, 6, 12, tzinfo=UTC))

    assert revision.deltas == ()
    assert revision.affected_range is None
