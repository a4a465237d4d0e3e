"""Chat transcript and its persistence.

The transcript is append-only: entries are never mutated or removed. The
planner context window is a read-only view computed from the stored entries,
so what the user sees and what the planner reasons over cannot diverge.
"""

from collections.abc import Callable, Iterable
from contextlib import AbstractContextManager
from datetime import datetime, timezone

from loguru import logger
from pydantic import BaseModel, ConfigDict
from sqlalchemy import select
from sqlalchemy.orm import Session

from training_planner.coach.schemas import ChatRole, TranscriptMessage
from training_planner.db.models import ChatMessageRecord
from training_planner.db.session import get_session

TRUNCATION_SUFFIX = "... [truncated]"
OMITTED_CONTEXT_NOTE = "[Earlier conversation omitted]"


class TranscriptEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    seq: int
    role: ChatRole
    content: str
    message_id: str | None = None
    created_at: datetime


def truncate_message(content: str, max_length: int) -> str:
    if len(content) <= max_length:
        return content
    return content[:max_length] + TRUNCATION_SUFFIX


class ChatTranscript:
    """Append-only ordered log of chat messages for one plan."""

    def __init__(self, plan_id: str, entries: Iterable[TranscriptEntry] = ()) -> None:
        self.plan_id = plan_id
        self._entries: list[TranscriptEntry] = sorted(entries, key=lambda e: e.seq)
        self._message_ids = {e.message_id for e in self._entries if e.message_id}

    def __len__(self) -> int:
        return len(self._entries)

    def has_message(self, message_id: str) -> bool:
        return message_id in self._message_ids

    @property
    def entries(self) -> tuple[TranscriptEntry, ...]:
        return tuple(self._entries)

    def append(
        self,
        role: ChatRole,
        content: str,
        *,
        message_id: str | None = None,
        created_at: datetime | None = None,
    ) -> TranscriptEntry | None:
        """Append one message.

        Returns:
            The new entry, or None when ``message_id`` was already appended
        """
        if message_id is not None and message_id in self._message_ids:
            logger.debug("Duplicate transcript message ignored", plan_id=self.plan_id, message_id=message_id)
            return None
        entry = TranscriptEntry(
            seq=(self._entries[-1].seq + 1) if self._entries else 1,
            role=role,
            content=content,
            message_id=message_id,
            created_at=created_at or datetime.now(timezone.utc),
        )
        self._entries.append(entry)
        if message_id is not None:
            self._message_ids.add(message_id)
        return entry

    def tail(self, size: int) -> tuple[TranscriptEntry, ...]:
        if size <= 0:
            return ()
        return tuple(self._entries[-size:])

    def context_window(self, size: int, max_length: int) -> list[TranscriptMessage]:
        """Tail of the transcript shaped for the planner.

        Long messages are truncated and, when older entries were left out, a
        note is prepended so the planner knows the history is partial.
        """
        tail = self.tail(size)
        window = [TranscriptMessage(role=e.role, content=truncate_message(e.content, max_length)) for e in tail]
        if len(tail) < len(self._entries):
            window.insert(0, TranscriptMessage(role="assistant", content=OMITTED_CONTEXT_NOTE))
        return window


class ConversationStore:
    """Loads and appends transcript entries in the database."""

    def __init__(self, session_factory: Callable[[], AbstractContextManager[Session]] | None = None) -> None:
        self._session_factory = session_factory or get_session

    def load(self, plan_id: str) -> ChatTranscript:
        with self._session_factory() as session:
            records = session.execute(
                select(ChatMessageRecord).where(ChatMessageRecord.plan_id == plan_id).order_by(ChatMessageRecord.seq)
            ).scalars()
            entries = [
                TranscriptEntry(
                    seq=r.seq,
                    role=r.role,
                    content=r.content,
                    message_id=r.message_id,
                    created_at=r.created_at,
                )
                for r in records
            ]
        return ChatTranscript(plan_id, entries)

    def append_entries(self, plan_id: str, user_id: str, entries: Iterable[TranscriptEntry | None]) -> None:
        """Persist newly appended entries. ``None`` placeholders are skipped."""
        to_store = [e for e in entries if e is not None]
        if not to_store:
            return
        with self._session_factory() as session:
            for entry in to_store:
                session.add(
                    ChatMessageRecord(
                        plan_id=plan_id,
                        user_id=user_id,
                        seq=entry.seq,
                        message_id=entry.message_id,
                        role=entry.role,
                        content=entry.content,
                        created_at=entry.created_at,
                    )
                )
        logger.debug("Transcript entries persisted", plan_id=plan_id, count=len(to_store))
