"""LLM module - chat transport and stream decoding."""

from .base import ChatTransport, LLMMessage, CompletionOptions
from .openrouter_provider import OpenRouterTransport
from .stream_decoder import StreamDecoder, decode_stream, parse_frame
from .factory import create_transport

__all__ = [
    'ChatTransport',
    'LLMMessage',
    'CompletionOptions',
    'OpenRouterTransport',
    'StreamDecoder',
    'decode_stream',
    'parse_frame',
    'create_transport',
]
