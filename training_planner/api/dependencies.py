"""FastAPI dependencies for the plan chat API.

The owning user arrives in the ``X-User-Id`` header. It is an ownership key
used to scope plans, not an authentication mechanism.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from functools import lru_cache

from fastapi import Depends, Header, HTTPException, status
from loguru import logger

from training_planner.coach.chat_service import PlanChatSession
from training_planner.coach.conversation_store import ConversationStore
from training_planner.coach.planner_client import HttpModificationPlanner, ModificationPlanner
from training_planner.config.settings import settings
from training_planner.plans.repository import PlanRepository


def get_current_user_id(x_user_id: str | None = Header(default=None)) -> str:
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="X-User-Id header is required")
    return x_user_id.strip()


@lru_cache(maxsize=1)
def get_planner() -> ModificationPlanner:
    return HttpModificationPlanner()


def get_repository() -> PlanRepository:
    return PlanRepository()


def get_conversation_store() -> ConversationStore:
    return ConversationStore()


class _Entry:
    def __init__(self, session: PlanChatSession, now: float) -> None:
        self.session = session
        self.lock = threading.Lock()
        self.last_used = now


class SessionRegistry:
    """Live chat sessions keyed by (plan_id, user_id).

    Held previews and pending clarifications live in the session, so the
    same session object must serve every request for a plan. Requests on one
    session are serialized through ``checkout``; the transcript assigns
    sequence numbers in memory and is only safe with one writer at a time.
    Sessions left idle longer than ``idle_seconds`` are dropped, taking any
    held preview or pending clarification with them.
    """

    def __init__(self, idle_seconds: float | None = None, clock: Callable[[], float] = time.monotonic) -> None:
        self._sessions: dict[tuple[str, str], _Entry] = {}
        self._lock = threading.Lock()
        self._idle_seconds = idle_seconds if idle_seconds is not None else settings.session_idle_minutes * 60
        self._clock = clock

    def __len__(self) -> int:
        return len(self._sessions)

    def get_or_create(self, plan_id: str, user_id: str, factory: Callable[[], PlanChatSession]) -> PlanChatSession:
        return self._entry(plan_id, user_id, factory).session

    @contextmanager
    def checkout(
        self, plan_id: str, user_id: str, factory: Callable[[], PlanChatSession]
    ) -> Iterator[PlanChatSession]:
        """Hold the session's lock for the duration of one request."""
        entry = self._entry(plan_id, user_id, factory)
        with entry.lock:
            try:
                yield entry.session
            finally:
                entry.last_used = self._clock()

    def evict_idle(self) -> int:
        """Drop idle sessions not serving a request; returns how many went."""
        with self._lock:
            return self._evict_idle(self._clock())

    def clear(self) -> None:
        with self._lock:
            self._sessions.clear()

    def _entry(self, plan_id: str, user_id: str, factory: Callable[[], PlanChatSession]) -> _Entry:
        key = (plan_id, user_id)
        with self._lock:
            now = self._clock()
            self._evict_idle(now)
            entry = self._sessions.get(key)
            if entry is None:
                entry = _Entry(factory(), now)
                self._sessions[key] = entry
            entry.last_used = now
            return entry

    def _evict_idle(self, now: float) -> int:
        stale = [
            key
            for key, entry in self._sessions.items()
            if now - entry.last_used > self._idle_seconds and not entry.lock.locked()
        ]
        for key in stale:
            del self._sessions[key]
        if stale:
            logger.info("Evicted idle chat sessions", count=len(stale))
        return len(stale)


_registry = SessionRegistry()


def get_session_registry() -> SessionRegistry:
    return _registry


def get_chat_session(
    plan_id: str,
    user_id: str = Depends(get_current_user_id),
    repository: PlanRepository = Depends(get_repository),
    planner: ModificationPlanner = Depends(get_planner),
    store: ConversationStore = Depends(get_conversation_store),
    registry: SessionRegistry = Depends(get_session_registry),
) -> Iterator[PlanChatSession]:
    """Chat session for the plan in the path, owned by the calling user.

    The session stays locked until the request finishes.

    Raises:
        PlanNotFoundError: If the plan does not exist or belongs to someone else
    """
    def factory() -> PlanChatSession:
        return PlanChatSession(plan_id, user_id, repository=repository, planner=planner, conversation_store=store)

    with registry.checkout(plan_id, user_id, factory) as session:
        yield session
