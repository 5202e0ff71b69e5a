"""
Error taxonomy for the chat core.
"""

from typing import Optional


class ChatError(Exception):
    """Base class for all chat core errors."""


class ConfigurationError(ChatError):
    """Raised when a generation is requested without the required configuration."""


class TransportError(ChatError):
    """Network failure or non-2xx response from the LLM API."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class DecodeSkip(ChatError):
    """A single stream frame could not be decoded and was skipped."""


class PreconditionNotMet(ChatError):
    """An operation's target did not satisfy its preconditions."""
