"""Tests for the engine error taxonomy."""

from training_planner.core.errors import (
    GENERIC_FAILURE_MESSAGE,
    ExpiredPreviewError,
    PlanEngineError,
    UpstreamPlannerError,
    VersionConflictError,
)


def test_errors_carry_codes_and_messages():
    error = VersionConflictError(1, 2)

    assert isinstance(error, PlanEngineError)
    assert error.code == "version_conflict"
    assert "Nothing was changed" in error.message
    assert ExpiredPreviewError("p").code == "preview_expired"


def test_upstream_error_hides_detail_from_user():
    error = UpstreamPlannerError("connection refused at 10.0.0.3")

    assert error.message == GENERIC_FAILURE_MESSAGE
    assert "10.0.0.3" in error.detail


def test_code_can_be_overridden():
    assert PlanEngineError("boom", code="custom").code == "custom"
    assert PlanEngineError().message == GENERIC_FAILURE_MESSAGE
