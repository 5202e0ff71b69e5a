"""
Chat Models - Messages and chat sessions.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional, List, Literal
from pydantic import BaseModel, Field, computed_field

DEFAULT_SESSION_TITLE = "New Chat"
TITLE_MAX_LENGTH = 50

MessageRole = Literal["user", "assistant"]


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Message(BaseModel):
    """A single message in a conversation."""
    id: str = Field(default_factory=_new_id)
    content: str = ""
    role: MessageRole
    created_at: datetime = Field(default_factory=_utcnow)
    model: Optional[str] = None
    attachment_url: Optional[str] = None  # inline data: URL
    generating: bool = False


class ChatSession(BaseModel):
    """A conversation thread with its summary metadata."""
    id: str = Field(default_factory=_new_id)
    title: str = DEFAULT_SESSION_TITLE
    last_message_preview: str = ""
    updated_at: datetime = Field(default_factory=_utcnow)
    messages: List[Message] = Field(default_factory=list)

    @computed_field
    @property
    def message_count(self) -> int:
        return len(self.messages)


class SessionSummary(BaseModel):
    """Session metadata without the message list."""
    id: str
    title: str
    last_message_preview: str
    updated_at: datetime
    message_count: int

    @classmethod
    def from_session(cls, session: ChatSession) -> "SessionSummary":
        return cls(
            id=session.id,
            title=session.title,
            last_message_preview=session.last_message_preview,
            updated_at=session.updated_at,
            message_count=session.message_count,
        )


def derive_title(content: str) -> str:
    """Title derived from the first user message."""
    if len(content) > TITLE_MAX_LENGTH:
        return content[:TITLE_MAX_LENGTH] + "..."
    return content
