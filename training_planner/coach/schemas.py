"""Request/response contract of the modification planner.

The planner is an external collaborator; only these shapes matter here.
Responses are a union discriminated on ``mode`` and are validated strictly
so a malformed payload surfaces as an upstream failure instead of a
half-understood plan change.
"""

from datetime import date
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from training_planner.plans.modify.types import PreviewSet

ChatRole = Literal["user", "assistant"]


class TranscriptMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: ChatRole
    content: str


class ClarificationOption(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    iso_date: date
    label: str


class ClarificationContext(BaseModel):
    model_config = ConfigDict(frozen=True)

    original_message: str
    detected_phrase: str
    # Character span of the phrase in original_message, when known.
    start: int | None = None
    end: int | None = None


class ClarificationRequest(BaseModel):
    """A question resolving one ambiguous date phrase to one calendar date."""

    model_config = ConfigDict(frozen=True)

    clarification_id: str
    question: str
    options: tuple[ClarificationOption, ...] = Field(min_length=1)
    context: ClarificationContext

    def option(self, option_id: str) -> ClarificationOption | None:
        return next((o for o in self.options if o.id == option_id), None)


class _PlanContext(BaseModel):
    plan: dict[str, Any] | None = None
    version: int | None = None
    transcript: list[TranscriptMessage] = Field(default_factory=list)
    profile: dict[str, Any] = Field(default_factory=dict)
    reference_date: date | None = None
    timezone: str | None = None


class DraftRequest(_PlanContext):
    """Ask the planner to draft changes for a user message."""

    mode: Literal["draft"] = "draft"
    message: str
    original_message: str
    resolved_dates: dict[str, list[str]] = Field(default_factory=dict)


class ClarificationResponseRequest(_PlanContext):
    """Resume planning after the user picked a date for an ambiguous phrase."""

    mode: Literal["clarification_response"] = "clarification_response"
    clarification_id: str
    selected_date: date
    original_message: str
    detected_phrase: str
    message: str


class CommitRequest(BaseModel):
    """Approval of a held preview against the version it was computed for."""

    mode: Literal["commit"] = "commit"
    preview_id: str
    plan_id: str
    basis_version: int


PlannerRequest = DraftRequest | ClarificationResponseRequest


class ClarificationRequiredResponse(BaseModel):
    mode: Literal["clarification_required"]
    clarification: ClarificationRequest


class PreviewResponse(BaseModel):
    mode: Literal["preview"]
    preview: PreviewSet
    message: str


class InterventionResponse(BaseModel):
    """Safety refusal; no plan change."""

    mode: Literal["intervention"]
    message: str


class InfoResponse(BaseModel):
    mode: Literal["info"]
    message: str


PlannerResponse = Annotated[
    ClarificationRequiredResponse | PreviewResponse | InterventionResponse | InfoResponse,
    Field(discriminator="mode"),
]

planner_response_adapter: TypeAdapter[PlannerResponse] = TypeAdapter(PlannerResponse)
