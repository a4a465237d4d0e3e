"""Clarification sub-dialog for ambiguous date phrases.

State machine per conversation::

    none -> awaiting_selection -> (resolved | superseded)

Exactly one clarification is live at a time. Selecting an option substitutes
the chosen ISO date for the ambiguous phrase and resumes planning; if the
resumed message still holds an ambiguous phrase, or the planner asks again,
the dialog re-enters ``awaiting_selection``. NO plan change happens here.
"""

import re
import uuid
from collections.abc import Callable
from datetime import date, datetime
from typing import Literal
from zoneinfo import ZoneInfo

from loguru import logger

from training_planner.coach.planner_client import ModificationPlanner
from training_planner.coach.schemas import (
    ClarificationContext,
    ClarificationOption,
    ClarificationRequest,
    ClarificationRequiredResponse,
    ClarificationResponseRequest,
    PlannerResponse,
)
from training_planner.core.errors import NoPendingClarificationError, UnknownClarificationOptionError
from training_planner.dates.phrases import extract_date_phrases
from training_planner.dates.resolver import DateResolution, DateResolver

ClarificationState = Literal["none", "awaiting_selection", "resolved", "superseded"]

RequestFactory = Callable[[ClarificationRequest, ClarificationOption, str], ClarificationResponseRequest]
AmbiguityDetector = Callable[[str], ClarificationRequest | None]


def build_clarification(
    resolution: DateResolution,
    original_message: str,
    *,
    start: int | None = None,
    end: int | None = None,
) -> ClarificationRequest:
    """Turn an ambiguous resolution into a question with one option per candidate date."""
    weekday = resolution.normalized_phrase.capitalize()
    return ClarificationRequest(
        clarification_id=str(uuid.uuid4()),
        question=f"Which {weekday} did you mean?",
        options=tuple(
            ClarificationOption(id=f"option_{i}", iso_date=c.iso_date, label=c.human_label)
            for i, c in enumerate(resolution.candidates, start=1)
        ),
        context=ClarificationContext(
            original_message=original_message,
            detected_phrase=resolution.phrase,
            start=start,
            end=end,
        ),
    )


def substitute_phrase(
    message: str,
    phrase: str,
    replacement: str,
    *,
    start: int | None = None,
    end: int | None = None,
) -> str:
    """Replace the detected occurrence of ``phrase`` in ``message``.

    A known span wins when it still holds ``phrase``. Without one (planner
    clarifications carry none) the first bare, ambiguous occurrence is used,
    so "last Friday ... Friday" replaces the second Friday. A plain
    whole-word match is the last resort.
    """
    if start is not None and end is not None and message[start:end].lower() == phrase.lower():
        return message[:start] + replacement + message[end:]

    for found in extract_date_phrases(message):
        if found.ambiguous and found.phrase.lower() == phrase.lower():
            return message[: found.start] + replacement + message[found.end :]

    pattern = re.compile(rf"(?<!\w){re.escape(phrase)}(?!\w)", re.IGNORECASE)
    substituted, count = pattern.subn(replacement, message, count=1)
    if count == 0:
        logger.warning("Clarified phrase not found in message", phrase=phrase)
    return substituted


def _default_request(
    request: ClarificationRequest,
    option: ClarificationOption,
    message: str,
) -> ClarificationResponseRequest:
    return ClarificationResponseRequest(
        clarification_id=request.clarification_id,
        selected_date=option.iso_date,
        original_message=request.context.original_message,
        detected_phrase=request.context.detected_phrase,
        message=message,
    )


class ClarificationController:
    """Owns the one live clarification of a conversation.

    Args:
        planner: Modification planner re-invoked once a date is chosen
        request_factory: Builds the planner request (adds plan context)
        detect_next: Finds a further ambiguous phrase in the resumed message
    """

    def __init__(
        self,
        planner: ModificationPlanner,
        *,
        request_factory: RequestFactory | None = None,
        detect_next: AmbiguityDetector | None = None,
    ) -> None:
        self._planner = planner
        self._request_factory = request_factory or _default_request
        self._detect_next = detect_next
        self._pending: ClarificationRequest | None = None
        self.outcomes: dict[str, ClarificationState] = {}

    @property
    def state(self) -> ClarificationState:
        return "awaiting_selection" if self._pending is not None else "none"

    @property
    def pending(self) -> ClarificationRequest | None:
        return self._pending

    def enter(self, request: ClarificationRequest) -> None:
        """Make ``request`` the live clarification, superseding any pending one."""
        if self._pending is not None:
            logger.info(
                "Clarification superseded",
                clarification_id=self._pending.clarification_id,
                superseded_by=request.clarification_id,
            )
            self.outcomes[self._pending.clarification_id] = "superseded"
        self._pending = request
        self.outcomes[request.clarification_id] = "awaiting_selection"
        logger.info(
            "Awaiting clarification",
            clarification_id=request.clarification_id,
            phrase=request.context.detected_phrase,
            options=[o.iso_date.isoformat() for o in request.options],
        )

    def select(self, option_id: str, *, clarification_id: str | None = None) -> PlannerResponse:
        """Resolve the pending clarification with one of its options.

        Raises:
            NoPendingClarificationError: If nothing is pending, or the id is stale
            UnknownClarificationOptionError: If the option was not offered
            UpstreamPlannerError: If the planner fails; the clarification stays pending
        """
        pending = self._pending
        if pending is None or (clarification_id is not None and clarification_id != pending.clarification_id):
            raise NoPendingClarificationError(clarification_id)
        option = pending.option(option_id)
        if option is None:
            raise UnknownClarificationOptionError(option_id)

        message = substitute_phrase(
            pending.context.original_message,
            pending.context.detected_phrase,
            option.iso_date.isoformat(),
            start=pending.context.start,
            end=pending.context.end,
        )

        follow_up = self._detect_next(message) if self._detect_next else None
        if follow_up is not None:
            self._resolve(pending)
            self.enter(follow_up)
            return ClarificationRequiredResponse(mode="clarification_required", clarification=follow_up)

        response = self._planner.plan(self._request_factory(pending, option, message))
        self._resolve(pending)
        if isinstance(response, ClarificationRequiredResponse):
            self.enter(response.clarification)
        return response

    def cancel(self) -> None:
        """Drop the pending clarification; nothing is sent to the planner."""
        if self._pending is not None:
            logger.info("Clarification cancelled", clarification_id=self._pending.clarification_id)
            self.outcomes.pop(self._pending.clarification_id, None)
        self._pending = None

    def _resolve(self, request: ClarificationRequest) -> None:
        self.outcomes[request.clarification_id] = "resolved"
        if self._pending is request:
            self._pending = None


def detect_ambiguity(
    message: str,
    reference_date: date | datetime,
    timezone: str | ZoneInfo | None = None,
    *,
    resolver: DateResolver | None = None,
) -> ClarificationRequest | None:
    """Clarification for the first ambiguous date phrase in ``message``, if any."""
    resolver = resolver or DateResolver()
    for found in extract_date_phrases(message):
        if not found.ambiguous:
            continue
        resolution = resolver.resolve(found.phrase, reference_date, timezone)
        if resolution.recognized and resolution.ambiguous:
            return build_clarification(resolution, message, start=found.start, end=found.end)
    return None
