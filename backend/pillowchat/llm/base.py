"""
Chat Transport Base - Abstract interface for LLM chat APIs.
Supports multimodal messages (text + images).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Any, Optional, List, Union, Callable

from ..core.errors import TransportError
from ..models.completion import ChatCompletion

DeltaCallback = Callable[[str], None]
CompleteCallback = Callable[[], None]
ErrorCallback = Callable[[TransportError], None]
StopCheck = Callable[[], bool]


@dataclass
class LLMMessage:
    """
    A message in an API request payload.
    Content is either plain text or a list of multimodal content parts.
    """
    role: str  # "system", "user", "assistant"
    content: Union[str, List[Dict[str, Any]]]

    @staticmethod
    def text(role: str, text: str) -> "LLMMessage":
        """Create a text-only message."""
        return LLMMessage(role=role, content=text)

    @staticmethod
    def with_image(role: str, text: str, image_url: str) -> "LLMMessage":
        """
        Create a message mixing a text part and an image reference part.

        Args:
            role: Message role
            text: Text content
            image_url: Image URL or inline data: URL
        """
        return LLMMessage(role=role, content=[
            {"type": "text", "text": text},
            {"type": "image_url", "image_url": {"url": image_url}},
        ])

    def to_dict(self) -> Dict[str, Any]:
        return {"role": self.role, "content": self.content}


@dataclass
class CompletionOptions:
    """Sampling options sent with each request."""
    temperature: float = 0.7
    max_tokens: int = 2048


class ChatTransport(ABC):
    """
    Abstract base class for chat API transports.
    Transports hold no session state and may be reused across calls.
    """

    def __init__(self, api_key: str, base_url: str, timeout: float = 120.0):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    @abstractmethod
    async def send_message(
        self,
        messages: List[LLMMessage],
        model: str,
        options: Optional[CompletionOptions] = None,
    ) -> ChatCompletion:
        """
        Send a single-shot completion request.

        Raises:
            TransportError: on network failure or non-2xx status
        """
        pass

    @abstractmethod
    async def send_streaming(
        self,
        messages: List[LLMMessage],
        model: str,
        options: Optional[CompletionOptions],
        on_delta: DeltaCallback,
        on_complete: CompleteCallback,
        on_error: ErrorCallback,
        should_stop: Optional[StopCheck] = None,
    ) -> None:
        """
        Stream a completion, reporting through callbacks.

        Exactly one of ``on_complete``/``on_error`` fires, strictly after the
        last ``on_delta``. Never raises for transport failures.
        """
        pass

    async def analyze_image(self, image_url: str, prompt: str, model: str) -> str:
        """Describe an image with a single-shot multimodal request."""
        completion = await self.send_message(
            [LLMMessage.with_image("user", prompt, image_url)], model
        )
        return completion.content or "Failed to analyze image"

    async def generate_image(self, prompt: str, model: str,
                             width: int = 1024, height: int = 1024) -> str:
        """Generate an image and return its URL."""
        raise NotImplementedError(f"{type(self).__name__} does not support image generation")

    def _format_messages(self, messages: List[LLMMessage]) -> List[Dict[str, Any]]:
        """Convert LLMMessage list to API-compatible format."""
        return [m.to_dict() for m in messages]
