"""Root conftest for all tests.

Shared fixtures: an in-memory SQLite database wired into the real session
helpers, a controllable clock, a scripted fake planner and a sample plan that
starts on Wednesday 2024-06-12.
"""

from collections.abc import Callable
from datetime import UTC, date, datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from training_planner.coach.schemas import PlannerRequest, PlannerResponse
from training_planner.core.errors import UpstreamPlannerError
from training_planner.plans.modify.types import Modification, PreviewSet
from training_planner.plans.plan import TrainingPlan
from training_planner.plans.repository import PlanRepository
from training_planner.plans.types import DayRecord

PLAN_START = date(2024, 6, 12)


class FixedClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now = self.now + delta


class FakePlanner:
    """Planner that replays scripted responses and records every request.

    A scripted entry may be a response, an exception to raise, or a callable
    taking the request and returning a response.
    """

    def __init__(self, *responses: PlannerResponse | Exception | Callable[[PlannerRequest], PlannerResponse]) -> None:
        self.responses = list(responses)
        self.requests: list[PlannerRequest] = []

    def queue(self, *responses) -> None:
        self.responses.extend(responses)

    def plan(self, request: PlannerRequest) -> PlannerResponse:
        self.requests.append(request)
        if not self.responses:
            raise UpstreamPlannerError("no scripted response left")
        scripted = self.responses.pop(0)
        if isinstance(scripted, Exception):
            raise scripted
        if callable(scripted):
            return scripted(request)
        return scripted


@pytest.fixture(scope="function")
def db_engine(monkeypatch):
    """
    Provides an isolated in-memory SQLite database per test.

    The real ``get_session`` helper is kept; only the engine it binds to is
    swapped, so commit and rollback behave exactly as in production.
    """
    engine = create_engine(
        "sqlite:///:memory:",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    import training_planner.db.session as session_module
    from training_planner.db.models import Base

    monkeypatch.setattr(session_module, "_get_engine", lambda: engine)
    monkeypatch.setattr(session_module, "get_engine", lambda: engine)
    monkeypatch.setattr(session_module, "_SessionLocal", None)

    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def clock() -> FixedClock:
    """Wednesday 2024-06-12, 09:00 UTC (10:00 in London)."""
    return FixedClock(datetime(2024, 6, 12, 9, 0, tzinfo=UTC))


@pytest.fixture
def sample_days() -> list[DayRecord]:
    """Twelve days, Wednesday 2024-06-12 to Sunday 2024-06-23."""
    workouts = [
        ("Easy run 40 min", "Easy Run"),
        ("Rest", None),
        ("Tempo 5x1km", "Tempo"),
        ("Long run 90 min", "Long Run"),
        ("Rest", None),
        ("Rest", None),
        ("Intervals 8x400m", "Intervals"),
        ("Easy run 45 min", "Easy Run"),
        ("Rest", None),
        ("Tempo 3x2km", "Tempo"),
        ("Long run 100 min", "Long Run"),
        ("Rest", None),
    ]
    return [
        DayRecord(date=PLAN_START + timedelta(days=offset), workout=workout, title=title)
        for offset, (workout, title) in enumerate(workouts)
    ]


@pytest.fixture
def sample_plan(sample_days) -> TrainingPlan:
    return TrainingPlan(plan_id="plan-1", user_id="user-1", start_date=PLAN_START, days=sample_days)


@pytest.fixture
def repository(db_engine) -> PlanRepository:
    return PlanRepository()


@pytest.fixture
def stored_plan(repository, sample_plan) -> TrainingPlan:
    return repository.create(sample_plan)


@pytest.fixture
def make_preview(clock) -> Callable[..., PreviewSet]:
    """Build a PreviewSet from modification dicts."""

    def _make(*modifications: dict, preview_id: str = "preview-1", basis_version: int = 1, ttl_minutes: int = 30) -> PreviewSet:
        return PreviewSet(
            preview_id=preview_id,
            plan_id="plan-1",
            basis_version=basis_version,
            modifications=tuple(Modification.model_validate(m) for m in modifications),
            expires_at=clock() + timedelta(minutes=ttl_minutes),
        )

    return _make


@pytest.fixture
def cancel_friday() -> dict:
    return {
        "date": "2024-06-14",
        "operation": "cancel",
        "before": {"workout": "Tempo 5x1km", "title": "Tempo"},
        "reason": "Feeling tired",
    }


@pytest.fixture
def planner() -> FakePlanner:
    return FakePlanner()
