"""Tests for PlanRepository against an in-memory database."""

from datetime import UTC, date, datetime

import pytest

from training_planner.core.errors import CommitVerificationError, PlanNotFoundError, VersionConflictError
from training_planner.db.models import TrainingPlanRecord
from training_planner.db.session import get_session
from training_planner.plans.plan import TrainingPlan
from training_planner.plans.revision.builder import PlanRevisionBuilder
from training_planner.plans.types import DayRecord

FRIDAY = date(2024, 6, 14)


def _cancel_friday(plan: TrainingPlan) -> TrainingPlan:
    days = dict(plan.days)
    days[FRIDAY] = DayRecord.rest(FRIDAY)
    return plan.with_days(days, version=plan.version + 1)


def test_create_and_get_round_trip(repository, stored_plan, sample_plan):
    loaded = repository.get("plan-1")

    assert loaded == sample_plan
    assert loaded.weeks == sample_plan.weeks


def test_stored_week_grid_matches_days(repository, stored_plan):
    with get_session() as session:
        record = session.get(TrainingPlanRecord, "plan-1")
        assert record.weeks == [w.model_dump(mode="json") for w in stored_plan.weeks]


def test_get_unknown_plan_raises(repository):
    with pytest.raises(PlanNotFoundError):
        repository.get("missing")


def test_get_hides_plans_of_other_users(repository, stored_plan):
    assert repository.get("plan-1", user_id="user-1").plan_id == "plan-1"
    with pytest.raises(PlanNotFoundError):
        repository.get("plan-1", user_id="someone-else")


def test_save_commit_bumps_version_and_reads_back(repository, stored_plan):
    builder = PlanRevisionBuilder(plan_id="plan-1", preview_id="preview-1", from_version=1)
    builder.add_delta(date="2024-06-14", operation="cancel", field="workout", old="Tempo 5x1km", new="Rest")
    revision = builder.finalize(created_at=datetime(2024, 6, 12, 9, tzinfo=UTC))

    committed = repository.save_commit(_cancel_friday(stored_plan), basis_version=1, revision=revision)

    assert committed.version == 2
    assert committed.days[FRIDAY].is_rest
    assert repository.get("plan-1").version == 2
    revisions = repository.list_revisions("plan-1")
    assert [(r.from_version, r.to_version) for r in revisions] == [(1, 2)]
    assert revisions[0].deltas[0].new == "Rest"
    assert revisions[0].affected_range == {"start": "2024-06-14", "end": "2024-06-14"}


def test_save_commit_is_compare_and_swap(repository, stored_plan):
    repository.save_commit(_cancel_friday(stored_plan), basis_version=1)

    with pytest.raises(VersionConflictError) as excinfo:
        repository.save_commit(_cancel_friday(stored_plan), basis_version=1)

    assert excinfo.value.current_version == 2
    assert repository.get("plan-1").version == 2


def test_save_commit_rejects_non_sequential_version(repository, stored_plan):
    skipped = stored_plan.with_days(stored_plan.days, version=3)

    with pytest.raises(ValueError):
        repository.save_commit(skipped, basis_version=1)


def test_save_commit_verifies_post_commit_read(repository, stored_plan, monkeypatch):
    real_get = repository.get

    def stale_get(plan_id, *, user_id=None):
        return real_get(plan_id, user_id=user_id).model_copy(update={"version": 1})

    monkeypatch.setattr(repository, "get", stale_get)

    with pytest.raises(CommitVerificationError) as excinfo:
        repository.save_commit(_cancel_friday(stored_plan), basis_version=1)

    assert excinfo.value.code == "commit_not_persisted"
    assert excinfo.value.expected_version == 2
