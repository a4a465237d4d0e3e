"""Plan chat API endpoints.

Every mutating endpoint either leaves the plan untouched or, for approve,
commits the whole previewed batch. Engine errors are mapped to HTTP status
codes by the handler registered in ``training_planner.main``.
"""

from fastapi import APIRouter, Depends
from loguru import logger
from pydantic import BaseModel, Field

from training_planner.api.dependencies import (
    get_chat_session,
    get_conversation_store,
    get_current_user_id,
    get_repository,
)
from training_planner.coach.chat_service import ChatTurn, PlanChatSession
from training_planner.coach.schemas import CommitRequest
from training_planner.coach.conversation_store import ConversationStore, TranscriptEntry
from training_planner.plans.repository import PlanRepository
from training_planner.plans.revision.types import PlanRevision
from training_planner.plans.types import NormalizationInvariantViolation, WeekRecord

router = APIRouter(prefix="/api/plans", tags=["plans"])


class ChatMessageRequest(BaseModel):
    message: str = Field(min_length=1)
    message_id: str | None = None


class SelectOptionRequest(BaseModel):
    option_id: str


class ApproveRequest(BaseModel):
    basis_version: int


class WeeksResponse(BaseModel):
    plan_id: str
    version: int
    weeks: list[WeekRecord]
    repairs: list[NormalizationInvariantViolation]


class TranscriptResponse(BaseModel):
    plan_id: str
    entries: list[TranscriptEntry]


@router.post("/{plan_id}/chat", response_model=ChatTurn)
def post_chat_message(
    plan_id: str,
    request: ChatMessageRequest,
    session: PlanChatSession = Depends(get_chat_session),
) -> ChatTurn:
    logger.info("Chat message received", plan_id=plan_id, message_id=request.message_id)
    return session.send_message(request.message, message_id=request.message_id)


@router.post("/{plan_id}/clarifications/{clarification_id}/select", response_model=ChatTurn)
def select_clarification_option(
    plan_id: str,
    clarification_id: str,
    request: SelectOptionRequest,
    session: PlanChatSession = Depends(get_chat_session),
) -> ChatTurn:
    logger.info("Clarification option selected", plan_id=plan_id, clarification_id=clarification_id)
    return session.select_option(request.option_id, clarification_id=clarification_id)


@router.post("/{plan_id}/clarifications/cancel", response_model=ChatTurn)
def cancel_clarification(session: PlanChatSession = Depends(get_chat_session)) -> ChatTurn:
    return session.cancel_clarification()


@router.post("/{plan_id}/previews/{preview_id}/approve", response_model=ChatTurn)
def approve_preview(
    plan_id: str,
    preview_id: str,
    request: ApproveRequest,
    session: PlanChatSession = Depends(get_chat_session),
) -> ChatTurn:
    commit = CommitRequest(preview_id=preview_id, plan_id=plan_id, basis_version=request.basis_version)
    logger.info("Preview approval requested", plan_id=plan_id, preview_id=preview_id, basis_version=request.basis_version)
    return session.commit(commit)


@router.post("/{plan_id}/previews/{preview_id}/reject", response_model=ChatTurn)
def reject_preview(preview_id: str, session: PlanChatSession = Depends(get_chat_session)) -> ChatTurn:
    return session.reject(preview_id)


@router.get("/{plan_id}/weeks", response_model=WeeksResponse)
def get_plan_weeks(
    plan_id: str,
    user_id: str = Depends(get_current_user_id),
    repository: PlanRepository = Depends(get_repository),
) -> WeeksResponse:
    """Week grid derived from the canonical day list, with any repairs made."""
    plan = repository.get(plan_id, user_id=user_id)
    return WeeksResponse(
        plan_id=plan.plan_id,
        version=plan.version,
        weeks=list(plan.weeks),
        repairs=list(plan.normalization_report.repairs),
    )


@router.get("/{plan_id}/transcript", response_model=TranscriptResponse)
def get_transcript(
    plan_id: str,
    user_id: str = Depends(get_current_user_id),
    repository: PlanRepository = Depends(get_repository),
    store: ConversationStore = Depends(get_conversation_store),
) -> TranscriptResponse:
    repository.get(plan_id, user_id=user_id)
    return TranscriptResponse(plan_id=plan_id, entries=list(store.load(plan_id).entries))


@router.get("/{plan_id}/revisions", response_model=list[PlanRevision])
def get_revisions(
    plan_id: str,
    user_id: str = Depends(get_current_user_id),
    repository: PlanRepository = Depends(get_repository),
) -> list[PlanRevision]:
    repository.get(plan_id, user_id=user_id)
    return repository.list_revisions(plan_id)
