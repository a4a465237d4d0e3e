"""Error taxonomy for the plan modification engine.

Every user-facing error leaves the canonical plan untouched. Each error
carries a machine-readable ``code`` so the HTTP layer and the chat session
can map it without string matching.
"""

GENERIC_FAILURE_MESSAGE = "Nothing was changed. Please try again."


class PlanEngineError(Exception):
    """Base class for engine errors."""

    code = "plan_engine_error"

    def __init__(self, message: str | None = None, *, code: str | None = None):
        if code is not None:
            self.code = code
        self.message = message or GENERIC_FAILURE_MESSAGE
        super().__init__(self.message)


class AmbiguousPhraseError(PlanEngineError):
    """Raised when a caller insists on a single date for an ambiguous phrase.

    Ambiguity is normally reported as a value and routed to clarification;
    this error exists for callers that cannot handle a clarification round.
    """

    code = "ambiguous_phrase"

    def __init__(self, phrase: str, candidates: list[str]):
        self.phrase = phrase
        self.candidates = candidates
        super().__init__(f"'{phrase}' could mean {' or '.join(candidates)}")


class PlanNotFoundError(PlanEngineError):
    code = "plan_not_found"

    def __init__(self, plan_id: str):
        self.plan_id = plan_id
        super().__init__(f"Training plan {plan_id} not found")


class ExpiredPreviewError(PlanEngineError):
    """Approval attempted after the preview's expiry. Fails closed."""

    code = "preview_expired"

    def __init__(self, preview_id: str):
        self.preview_id = preview_id
        super().__init__("This preview has expired. Nothing was changed; ask for the change again.")


class UnknownPreviewError(PlanEngineError):
    code = "preview_unknown"

    def __init__(self, preview_id: str):
        self.preview_id = preview_id
        super().__init__(f"Preview {preview_id} is not awaiting approval. Nothing was changed.")


class PreviewAlreadyHeldError(PlanEngineError):
    code = "preview_already_held"

    def __init__(self, plan_id: str, held_preview_id: str):
        self.plan_id = plan_id
        self.held_preview_id = held_preview_id
        super().__init__(f"Plan {plan_id} already has preview {held_preview_id} awaiting approval")


class VersionConflictError(PlanEngineError):
    """The plan changed since the preview was computed."""

    code = "version_conflict"

    def __init__(self, basis_version: int, current_version: int):
        self.basis_version = basis_version
        self.current_version = current_version
        super().__init__(
            f"The plan changed since this preview was made (v{basis_version} → v{current_version}). "
            "Nothing was changed; ask for the change again."
        )


class ModificationApplyError(PlanEngineError):
    """A modification in a batch cannot be applied; the whole batch is rejected."""

    code = "modification_not_applicable"

    def __init__(self, index: int, reason: str):
        self.index = index
        self.reason = reason
        super().__init__(f"Change #{index + 1} cannot be applied: {reason}. Nothing was changed.")


class NoPendingClarificationError(PlanEngineError):
    code = "clarification_not_pending"

    def __init__(self, clarification_id: str | None = None):
        self.clarification_id = clarification_id
        super().__init__("There is no question waiting for an answer.")


class UnknownClarificationOptionError(PlanEngineError):
    code = "clarification_option_unknown"

    def __init__(self, option_id: str):
        self.option_id = option_id
        super().__init__(f"Option {option_id} is not one of the offered choices.")


class UpstreamPlannerError(PlanEngineError):
    """The modification planner was unavailable or returned a malformed response."""

    code = "upstream_planner_failure"

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(GENERIC_FAILURE_MESSAGE)


class CommitVerificationError(PlanEngineError):
    """The post-commit read did not show the committed version."""

    code = "commit_not_persisted"

    def __init__(self, plan_id: str, expected_version: int, stored_version: int):
        self.plan_id = plan_id
        self.expected_version = expected_version
        self.stored_version = stored_version
        super().__init__(f"Plan {plan_id} reads back at v{stored_version}, expected at least v{expected_version}")
