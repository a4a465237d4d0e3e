"""Chat session orchestration for one plan and one user.

Wires the date resolver, the clarification dialog, the preview/commit
lifecycle and the transcript together. "Today" is computed here, at the edge,
from an injectable clock and the user's time zone, and handed down to the
pure components.

Transcript entries for a user message are appended only after the planner
answered successfully, so a failed turn leaves no trace in the conversation.
"""

from collections.abc import Callable
from datetime import date, datetime, timedelta
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict

from training_planner.coach.clarification import ClarificationController, detect_ambiguity
from training_planner.coach.conversation_store import ChatTranscript, ConversationStore, TranscriptEntry
from training_planner.coach.planner_client import ModificationPlanner
from training_planner.coach.preview_commit import PreviewCommitController, utc_now
from training_planner.coach.schemas import (
    ClarificationOption,
    ClarificationRequest,
    ClarificationRequiredResponse,
    ClarificationResponseRequest,
    CommitRequest,
    DraftRequest,
    PlannerResponse,
    PreviewResponse,
)
from training_planner.config.settings import settings
from training_planner.core.errors import NoPendingClarificationError, PlanEngineError, PreviewAlreadyHeldError
from training_planner.core.logger import conversation_logger
from training_planner.dates.phrases import annotate_message, has_modification_intent
from training_planner.dates.resolver import DateResolver, local_reference_date, to_zone
from training_planner.plans.modify.types import PreviewSet, PreviewSummary
from training_planner.plans.plan import TrainingPlan
from training_planner.plans.repository import PlanRepository

TurnMode = Literal["clarification_required", "preview", "intervention", "info", "committed", "rejected", "cancelled"]

DUPLICATE_MESSAGE_REPLY = "I already have that message."
CANCELLED_REPLY = "Okay, I won't change anything."
REJECTED_REPLY = "Okay, I discarded those changes. Your plan is unchanged."


class ChatTurn(BaseModel):
    """What the user sees after one interaction."""

    model_config = ConfigDict(frozen=True)

    mode: TurnMode
    message: str
    clarification: ClarificationRequest | None = None
    preview: PreviewSet | None = None
    summary: PreviewSummary | None = None
    plan_version: int | None = None


class PlanChatSession:
    """Conversation about one training plan.

    Args:
        plan_id: Plan being discussed
        user_id: Owner of the plan; a plan owned by someone else is not found
        repository: Plan persistence
        planner: Modification planner collaborator
        conversation_store: Transcript persistence; in-memory only when omitted
        clock: Returns the current time (UTC-aware)
        timezone: User time zone name, defaults to ``settings.default_timezone``
        tail_size: Transcript entries sent to the planner
        max_message_length: Per-entry truncation length in the planner context
        preview_ttl: Maximum lifetime of a held preview
        profile: Athlete profile passed through to the planner
    """

    def __init__(
        self,
        plan_id: str,
        user_id: str,
        *,
        repository: PlanRepository,
        planner: ModificationPlanner,
        conversation_store: ConversationStore | None = None,
        clock: Callable[[], datetime] = utc_now,
        timezone: str | None = None,
        tail_size: int | None = None,
        max_message_length: int | None = None,
        preview_ttl: timedelta | None = None,
        profile: dict[str, Any] | None = None,
    ) -> None:
        self.plan_id = plan_id
        self.user_id = user_id
        self._repository = repository
        self._planner = planner
        self._store = conversation_store
        self._clock = clock
        self._zone = to_zone(timezone or settings.default_timezone)
        self._tail_size = tail_size or settings.transcript_tail_size
        self._max_message_length = max_message_length or settings.max_message_length
        self._profile = profile or {}
        self._log = conversation_logger(plan_id, user_id)

        self._plan = repository.get(plan_id, user_id=user_id)
        self._resolver = DateResolver(plan_start_date=self._plan.start_date)
        self.transcript = conversation_store.load(plan_id) if conversation_store else ChatTranscript(plan_id)
        self.previews = PreviewCommitController(plan_id, repository, clock=clock, ttl=preview_ttl)
        self.clarifications = ClarificationController(
            planner,
            request_factory=self._clarification_request,
            detect_next=self._detect_ambiguity,
        )

    @property
    def plan(self) -> TrainingPlan:
        return self._plan

    @property
    def timezone(self) -> str:
        return self._zone.key

    def reference_date(self) -> date:
        return local_reference_date(self._clock(), self._zone)

    def refresh(self) -> TrainingPlan:
        self._plan = self._repository.get(self.plan_id, user_id=self.user_id)
        return self._plan

    def send_message(self, text: str, *, message_id: str | None = None) -> ChatTurn:
        """Handle one user message.

        Raises:
            PreviewAlreadyHeldError: If a preview is still awaiting approval
            UpstreamPlannerError: If the planner failed; nothing is recorded
        """
        text = text.strip()
        if not text:
            raise PlanEngineError("Please type a message.", code="empty_message")
        if message_id is not None and self.transcript.has_message(message_id):
            return ChatTurn(mode="info", message=DUPLICATE_MESSAGE_REPLY)

        if self.clarifications.pending is not None:
            self._log.info("New message abandons pending clarification")
            self.clarifications.cancel()
        self._ensure_no_live_preview()

        reference = self.reference_date()
        if has_modification_intent(text):
            clarification = self._detect_ambiguity(text)
            if clarification is not None:
                self.clarifications.enter(clarification)
                self._record(text, clarification.question, message_id=message_id)
                return ChatTurn(
                    mode="clarification_required",
                    message=clarification.question,
                    clarification=clarification,
                )

        annotated = annotate_message(text, reference, self._zone, resolver=self._resolver)
        plan = self.refresh()
        request = DraftRequest(
            message=annotated.text,
            original_message=text,
            resolved_dates=annotated.resolved_dates,
            **self._context(plan, reference),
        )
        response = self._planner.plan(request)
        turn = self._handle_response(response)
        self._log.info("Chat turn answered", turn_mode=turn.mode, reference_date=reference.isoformat())
        self._record(text, turn.message, message_id=message_id)
        return turn

    def select_option(self, option_id: str, *, clarification_id: str | None = None) -> ChatTurn:
        """Answer the pending clarification with one of its options."""
        pending = self.clarifications.pending
        if pending is None:
            raise NoPendingClarificationError(clarification_id)
        self._ensure_no_live_preview()
        response = self.clarifications.select(option_id, clarification_id=clarification_id)
        turn = self._handle_response(response, already_entered=True)
        option = pending.option(option_id)
        self._record(option.label if option else option_id, turn.message)
        return turn

    def cancel_clarification(self) -> ChatTurn:
        self.clarifications.cancel()
        return ChatTurn(mode="cancelled", message=CANCELLED_REPLY)

    def approve(self, preview_id: str, *, basis_version: int | None = None) -> ChatTurn:
        """Commit the held preview; see PreviewCommitController.approve for failures."""
        held = self.previews.held
        count = len(held.modifications) if held is not None else 0
        result = self.previews.approve(preview_id, basis_version=basis_version)
        self._plan = result.plan
        self._log.info("Plan updated from chat", version=result.plan.version, changes=count)
        reply = f"Applied {count} change(s). Your plan is now at version {result.plan.version}."
        self._record(None, reply)
        return ChatTurn(mode="committed", message=reply, plan_version=result.plan.version)

    def commit(self, request: CommitRequest) -> ChatTurn:
        """Approve the preview named by ``request`` against its basis version.

        Raises:
            PlanEngineError: If the request targets another plan
        """
        if request.plan_id != self.plan_id:
            raise PlanEngineError(
                f"Commit for plan {request.plan_id} sent to plan {self.plan_id}",
                code="preview_plan_mismatch",
            )
        return self.approve(request.preview_id, basis_version=request.basis_version)

    def reject(self, preview_id: str) -> ChatTurn:
        self.previews.reject(preview_id)
        self._record(None, REJECTED_REPLY)
        return ChatTurn(mode="rejected", message=REJECTED_REPLY, plan_version=self._plan.version)

    def _ensure_no_live_preview(self) -> None:
        held = self.previews.held
        if self.previews.has_live_preview() and held is not None:
            raise PreviewAlreadyHeldError(self.plan_id, held.preview_id)

    def _handle_response(self, response: PlannerResponse, *, already_entered: bool = False) -> ChatTurn:
        if isinstance(response, ClarificationRequiredResponse):
            if not already_entered:
                self.clarifications.enter(response.clarification)
            return ChatTurn(
                mode="clarification_required",
                message=response.clarification.question,
                clarification=response.clarification,
            )
        if isinstance(response, PreviewResponse):
            held = self.previews.hold_preview(response.preview)
            return ChatTurn(
                mode="preview",
                message=response.message,
                preview=held,
                summary=held.summarize(self.reference_date()),
                plan_version=held.basis_version,
            )
        return ChatTurn(mode=response.mode, message=response.message)

    def _context(self, plan: TrainingPlan, reference: date) -> dict[str, Any]:
        return {
            "plan": plan.snapshot(),
            "version": plan.version,
            "transcript": self.transcript.context_window(self._tail_size, self._max_message_length),
            "profile": self._profile,
            "reference_date": reference,
            "timezone": self.timezone,
        }

    def _clarification_request(
        self,
        request: ClarificationRequest,
        option: ClarificationOption,
        message: str,
    ) -> ClarificationResponseRequest:
        plan = self.refresh()
        return ClarificationResponseRequest(
            clarification_id=request.clarification_id,
            selected_date=option.iso_date,
            original_message=request.context.original_message,
            detected_phrase=request.context.detected_phrase,
            message=message,
            **self._context(plan, self.reference_date()),
        )

    def _detect_ambiguity(self, message: str) -> ClarificationRequest | None:
        return detect_ambiguity(message, self.reference_date(), self._zone, resolver=self._resolver)

    def _record(self, user_text: str | None, reply: str, *, message_id: str | None = None) -> None:
        now = self._clock()
        entries: list[TranscriptEntry | None] = []
        if user_text is not None:
            entries.append(self.transcript.append("user", user_text, message_id=message_id, created_at=now))
        entries.append(self.transcript.append("assistant", reply, created_at=now))
        if self._store is not None:
            self._store.append_entries(self.plan_id, self.user_id, entries)
