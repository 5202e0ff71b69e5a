"""
Session Store - In-memory table of chat sessions.

The store is the only owner of session and message mutation. Every operation
is synchronous and total: ids that do not resolve are ignored. Listeners are
notified after each mutation so presentation layers can re-render.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, List, Optional

from ..models.chat import (
    ChatSession, Message, MessageRole, SessionSummary,
    DEFAULT_SESSION_TITLE, derive_title,
)

logger = logging.getLogger(__name__)

# Fields of a Message that may change after it is appended
MUTABLE_MESSAGE_FIELDS = frozenset({"content", "generating"})


@dataclass(frozen=True)
class StoreEvent:
    """Describes one store mutation."""
    kind: str  # session_created, session_deleted, session_renamed, active_changed,
               # message_appended, message_updated, restored
    session_id: Optional[str] = None
    message_id: Optional[str] = None


StoreListener = Callable[[StoreEvent], None]


class SessionStore:
    """Ordered collection of chat sessions plus the active session reference."""

    def __init__(self):
        self._sessions: List[ChatSession] = []
        self._active_session_id: Optional[str] = None
        self._listeners: List[StoreListener] = []

    # -- Queries ---------------------------------------------------------------

    @property
    def sessions(self) -> List[ChatSession]:
        """Sessions in storage order (newest created first)."""
        return list(self._sessions)

    @property
    def active_session_id(self) -> Optional[str]:
        return self._active_session_id

    @property
    def active_session(self) -> Optional[ChatSession]:
        if self._active_session_id is None:
            return None
        return self.get_session(self._active_session_id)

    def get_session(self, session_id: str) -> Optional[ChatSession]:
        for session in self._sessions:
            if session.id == session_id:
                return session
        return None

    def get_message(self, session_id: str, message_id: str) -> Optional[Message]:
        session = self.get_session(session_id)
        if session is None:
            return None
        for message in session.messages:
            if message.id == message_id:
                return message
        return None

    def list_sessions(self) -> List[SessionSummary]:
        """Session summaries, most recently updated first."""
        ordered = sorted(self._sessions, key=lambda s: s.updated_at, reverse=True)
        return [SessionSummary.from_session(s) for s in ordered]

    # -- Session mutation ------------------------------------------------------

    def create_session(self, activate: bool = True) -> str:
        """Create an empty session at the front of the collection."""
        session = ChatSession()
        self._sessions.insert(0, session)
        self._emit(StoreEvent("session_created", session.id))
        if activate:
            self.set_active_session(session.id)
        logger.debug(f"Created session {session.id}")
        return session.id

    def delete_session(self, session_id: str) -> None:
        """Remove a session, clearing the active reference if it pointed there."""
        session = self.get_session(session_id)
        if session is None:
            return
        self._sessions.remove(session)
        self._emit(StoreEvent("session_deleted", session_id))
        if self._active_session_id == session_id:
            self.set_active_session(None)
        logger.debug(f"Deleted session {session_id}")

    def rename_session(self, session_id: str, title: str) -> None:
        session = self.get_session(session_id)
        if session is None:
            return
        session.title = title
        self._emit(StoreEvent("session_renamed", session_id))

    def set_active_session(self, session_id: Optional[str]) -> None:
        """Point the active reference at an existing session, or clear it."""
        if session_id is not None and self.get_session(session_id) is None:
            return
        if session_id == self._active_session_id:
            return
        self._active_session_id = session_id
        self._emit(StoreEvent("active_changed", session_id))

    # -- Message mutation ------------------------------------------------------

    def append_message(
        self,
        session_id: str,
        role: MessageRole,
        content: str,
        **fields,
    ) -> Optional[str]:
        """
        Append a message and refresh the session summary.

        Args:
            session_id: Target session
            role: "user" or "assistant"
            content: Message text
            **fields: Optional model, attachment_url, generating

        Returns:
            The new message id, or None if the session does not exist
        """
        session = self.get_session(session_id)
        if session is None:
            return None

        message = Message(role=role, content=content, **fields)
        session.messages.append(message)

        if role == "user" and session.title == DEFAULT_SESSION_TITLE:
            session.title = derive_title(content)
        session.last_message_preview = content
        session.updated_at = datetime.now(timezone.utc)

        self._emit(StoreEvent("message_appended", session_id, message.id))
        return message.id

    def update_message(self, session_id: str, message_id: str, **updates) -> None:
        """
        Merge field updates into an existing message.
        Only content and generating can change; other fields are ignored.
        """
        session = self.get_session(session_id)
        if session is None:
            return

        for index, message in enumerate(session.messages):
            if message.id == message_id:
                break
        else:
            return

        ignored = set(updates) - MUTABLE_MESSAGE_FIELDS
        if ignored:
            logger.warning(f"Ignoring immutable message fields: {sorted(ignored)}")
            updates = {k: v for k, v in updates.items() if k in MUTABLE_MESSAGE_FIELDS}
            if not updates:
                return

        for field_name, value in updates.items():
            setattr(message, field_name, value)

        if index == len(session.messages) - 1 and "content" in updates:
            session.last_message_preview = message.content

        self._emit(StoreEvent("message_updated", session_id, message_id))

    # -- Persistence -----------------------------------------------------------

    def restore(self, sessions: List[ChatSession], active_session_id: Optional[str]) -> None:
        """
        Replace the store contents with previously persisted state.

        Messages persisted mid-stream are restored as finished, and an active
        id that no longer resolves is dropped.
        """
        for session in sessions:
            for message in session.messages:
                message.generating = False
        self._sessions = list(sessions)
        if active_session_id is not None and self.get_session(active_session_id) is None:
            logger.warning(f"Dropping dangling active session id {active_session_id}")
            active_session_id = None
        self._active_session_id = active_session_id
        self._emit(StoreEvent("restored", active_session_id))

    # -- Subscriptions ---------------------------------------------------------

    def subscribe(self, listener: StoreListener) -> Callable[[], None]:
        """
        Register a listener called after every mutation.

        Returns:
            A callable that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, event: StoreEvent) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                # State is already mutated; a broken listener must not undo it
                logger.error(f"Store listener failed for {event.kind}", exc_info=True)
