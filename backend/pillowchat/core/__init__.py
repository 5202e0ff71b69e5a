"""Core module - session state, generation life-cycle and logging."""

from .errors import (
    ChatError, ConfigurationError, TransportError, DecodeSkip, PreconditionNotMet,
)

__all__ = [
    'ChatError', 'ConfigurationError', 'TransportError', 'DecodeSkip', 'PreconditionNotMet',
]
