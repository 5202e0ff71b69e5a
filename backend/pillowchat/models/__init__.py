"""Models module."""

from .chat import (
    Message, ChatSession, SessionSummary, MessageRole,
    DEFAULT_SESSION_TITLE, derive_title,
)
from .settings import ChatSettings
from .completion import ChatCompletion, CompletionChoice, CompletionUsage

__all__ = [
    'Message', 'ChatSession', 'SessionSummary', 'MessageRole',
    'DEFAULT_SESSION_TITLE', 'derive_title',
    'ChatSettings',
    'ChatCompletion', 'CompletionChoice', 'CompletionUsage',
]
