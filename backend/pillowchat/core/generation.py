"""
Generation Controller - Life-cycle of streamed assistant replies.

A generation moves SENDING -> STREAMING -> COMPLETED | ERRORED | CANCELLED.
Each one is keyed by (session_id, message_id) and a generation id; callbacks
from a generation that is no longer live are ignored, which is what makes
cancellation safe while the underlying stream is still draining.
"""

import asyncio
import logging
import uuid
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Deque, Dict, List, Optional, Tuple, Union

from ..llm.base import ChatTransport, CompletionOptions, LLMMessage
from ..llm.factory import create_transport
from ..models.chat import ChatSession, Message
from ..models.settings import ChatSettings
from ..utils.attachments import Attachment
from .errors import ConfigurationError, PreconditionNotMet, TransportError
from .logging_config import LoggerAdapter
from .session_store import SessionStore

logger = logging.getLogger(__name__)

# Prior messages sent as context with a new user message
CONTEXT_WINDOW = 10
# Cancelled generation ids remembered for late-callback suppression
CANCELLED_HISTORY = 256


class GenerationState(str, Enum):
    IDLE = "idle"
    SENDING = "sending"
    STREAMING = "streaming"
    COMPLETED = "completed"
    ERRORED = "errored"
    CANCELLED = "cancelled"


LIVE_STATES = frozenset({GenerationState.SENDING, GenerationState.STREAMING})


@dataclass
class Generation:
    """One request/response cycle producing a single assistant message."""
    session_id: str
    message_id: str
    kind: str  # "send" or "regenerate"
    model: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    state: GenerationState = GenerationState.SENDING
    content: str = ""
    error: Optional[str] = None

    @property
    def is_live(self) -> bool:
        return self.state in LIVE_STATES


@dataclass
class Notification:
    """A transient user-facing notice."""
    title: str
    description: str
    variant: str = "default"  # "default" or "destructive"


Notifier = Callable[[Notification], None]
GenerationHook = Callable[[Generation], None]
TransportFactory = Callable[[str], Optional[ChatTransport]]
AttachmentSource = Union[Attachment, str, Path]


class GenerationController:
    """
    Coordinates sends, regenerations and cancellation against a SessionStore.

    The transport is created per generation from ``transport_factory`` using
    the API key in the settings snapshot taken when the generation starts.
    """

    def __init__(
        self,
        store: SessionStore,
        settings: Optional[ChatSettings] = None,
        transport_factory: TransportFactory = create_transport,
        notifier: Optional[Notifier] = None,
    ):
        self.store = store
        self.transport_factory = transport_factory
        self.notifier = notifier
        self._settings = settings or ChatSettings()
        self._live: Dict[str, Generation] = {}
        self._cancelled_ids: Deque[str] = deque(maxlen=CANCELLED_HISTORY)
        self.last_generation: Optional[Generation] = None

    # -- Status ----------------------------------------------------------------

    @property
    def settings(self) -> ChatSettings:
        return self._settings

    def update_settings(self, settings: ChatSettings) -> None:
        """Replace settings; generations already in flight keep their snapshot."""
        self._settings = settings

    @property
    def active_generation(self) -> Optional[Generation]:
        """Most recently started generation that is still live."""
        if not self._live:
            return None
        return next(reversed(self._live.values()))

    @property
    def state(self) -> GenerationState:
        active = self.active_generation
        return active.state if active is not None else GenerationState.IDLE

    @property
    def is_generating(self) -> bool:
        return self.active_generation is not None

    @property
    def is_configured(self) -> bool:
        """Whether an API key is available for new generations."""
        return bool(self._settings.api_key)

    # -- Operations ------------------------------------------------------------

    async def send(
        self,
        content: str,
        attachment: Optional[AttachmentSource] = None,
        on_start: Optional[GenerationHook] = None,
    ) -> Optional[Generation]:
        """
        Send a user message to the active session and stream the reply.

        Args:
            content: User message text
            attachment: Optional image, as an Attachment or a file path
            on_start: Called with the Generation once its placeholder exists

        Returns:
            The finished Generation, or None if the attachment could not be read

        Raises:
            ConfigurationError: if no API key is configured (nothing is mutated)
        """
        settings = self._settings.model_copy(deep=True)
        transport = self._require_transport(settings)

        attachment_url = None
        if attachment is not None:
            try:
                attachment_url = await self._to_data_url(attachment)
            except (OSError, ValueError) as e:
                logger.warning(f"Attachment conversion failed: {e}")
                self._notify("Message Failed", str(e), "destructive")
                return None

        session_id = self.store.active_session_id
        if session_id is None:
            session_id = self.store.create_session()
        session = self.store.get_session(session_id)

        # Context is taken before the new messages are appended
        history = [m for m in session.messages[-CONTEXT_WINDOW:] if not m.generating]

        self.store.append_message(session_id, "user", content, attachment_url=attachment_url)
        message_id = self.store.append_message(
            session_id, "assistant", "",
            model=settings.preferred_text_model,
            generating=True,
        )

        request = self._build_request(settings, history)
        request.append(LLMMessage.text("user", content))

        generation = Generation(session_id, message_id, "send", settings.preferred_text_model)
        await self._run(generation, transport, request, settings, "Generation Failed", on_start)
        return generation

    async def regenerate(
        self,
        message_id: str,
        on_start: Optional[GenerationHook] = None,
    ) -> Optional[Generation]:
        """
        Re-stream an assistant message of the active session in place.

        The target must be an assistant message directly preceded by a user
        message; otherwise nothing happens and None is returned.

        Raises:
            ConfigurationError: if no API key is configured (nothing is mutated)
        """
        settings = self._settings.model_copy(deep=True)
        transport = self._require_transport(settings)

        try:
            session, index = self._regeneration_target(message_id)
        except PreconditionNotMet as e:
            logger.debug(f"Regenerate ignored: {e}")
            return None

        history = session.messages[:index]
        self.store.update_message(session.id, message_id, content="", generating=True)

        generation = Generation(session.id, message_id, "regenerate", settings.preferred_text_model)
        request = self._build_request(settings, history)
        await self._run(generation, transport, request, settings, "Regeneration Failed", on_start)
        return generation

    def cancel(self, generation_id: Optional[str] = None) -> Optional[Generation]:
        """
        Stop applying a generation's output.

        Args:
            generation_id: Generation to cancel; defaults to the most recent live one

        Returns:
            The cancelled Generation, or None if nothing was live
        """
        if generation_id is None:
            generation = self.active_generation
        else:
            generation = self._live.get(generation_id)
        if generation is None:
            return None

        generation.state = GenerationState.CANCELLED
        self._cancelled_ids.append(generation.id)
        self._live.pop(generation.id, None)
        self.store.update_message(generation.session_id, generation.message_id, generating=False)

        logger.info(
            "Generation cancelled",
            extra={"extra_fields": {
                "generation_id": generation.id,
                "session_id": generation.session_id,
                "message_id": generation.message_id,
                "content_length": len(generation.content),
            }}
        )
        self._notify("Generation Stopped", "Message generation has been cancelled.")
        return generation

    async def analyze_image(self, image_url: str, prompt: str) -> str:
        """
        Describe an image with a single-shot request.

        Raises:
            ConfigurationError: if no API key is set or image analysis is disabled
            TransportError: if the request fails
        """
        settings = self._settings.model_copy(deep=True)
        transport = self._require_transport(settings)
        if not settings.enable_image_analysis:
            raise ConfigurationError("Image analysis is disabled in settings.")
        return await transport.analyze_image(image_url, prompt, settings.preferred_text_model)

    async def generate_image(self, prompt: str) -> str:
        """
        Generate an image with the preferred image model.

        Raises:
            ConfigurationError: if no API key is set
            TransportError: if the request fails
        """
        settings = self._settings.model_copy(deep=True)
        transport = self._require_transport(settings)
        return await transport.generate_image(prompt, settings.preferred_image_model)

    # -- Internals -------------------------------------------------------------

    def _require_transport(self, settings: ChatSettings) -> ChatTransport:
        transport = self.transport_factory(settings.api_key) if settings.api_key else None
        if transport is None:
            self._notify(
                "API Key Required",
                "Please configure your OpenRouter API key in settings.",
                "destructive",
            )
            raise ConfigurationError("No OpenRouter API key configured.")
        return transport

    @staticmethod
    async def _to_data_url(attachment: AttachmentSource) -> str:
        if not isinstance(attachment, Attachment):
            attachment = await Attachment.from_path(attachment)
        return attachment.to_data_url()

    @staticmethod
    def _build_request(settings: ChatSettings, history: List[Message]) -> List[LLMMessage]:
        request = [LLMMessage.text("system", settings.system_prompt)]
        request.extend(LLMMessage.text(m.role, m.content) for m in history)
        return request

    def _regeneration_target(self, message_id: str) -> Tuple[ChatSession, int]:
        session = self.store.active_session
        if session is None:
            raise PreconditionNotMet("no active session")

        for index, message in enumerate(session.messages):
            if message.id == message_id:
                break
        else:
            raise PreconditionNotMet(f"message {message_id} not in active session")

        if message.role != "assistant":
            raise PreconditionNotMet(f"message {message_id} is not an assistant message")
        if index == 0 or session.messages[index - 1].role != "user":
            raise PreconditionNotMet(f"message {message_id} has no preceding user message")
        if any(g.message_id == message_id for g in self._live.values()):
            raise PreconditionNotMet(f"message {message_id} is already generating")
        return session, index

    def _accepts(self, generation: Generation) -> bool:
        return generation.is_live and generation.id not in self._cancelled_ids

    async def _run(
        self,
        generation: Generation,
        transport: ChatTransport,
        request: List[LLMMessage],
        settings: ChatSettings,
        failure_title: str,
        on_start: Optional[GenerationHook] = None,
    ) -> None:
        log = LoggerAdapter(logger, {
            "generation_id": generation.id,
            "session_id": generation.session_id,
            "message_id": generation.message_id,
        })
        store = self.store
        self._live[generation.id] = generation
        log.info(f"Generation started: kind={generation.kind}, model={generation.model}, "
                 f"{len(request)} request messages")

        def on_delta(text: str) -> None:
            if not self._accepts(generation):
                return
            generation.state = GenerationState.STREAMING
            generation.content += text
            store.update_message(generation.session_id, generation.message_id,
                                 content=generation.content, generating=True)

        def on_complete() -> None:
            if not self._accepts(generation):
                return
            generation.state = GenerationState.COMPLETED
            store.update_message(generation.session_id, generation.message_id,
                                 content=generation.content, generating=False)
            log.info(f"Generation completed: {len(generation.content)} chars")

        def on_error(error: TransportError) -> None:
            if not self._accepts(generation):
                return
            generation.state = GenerationState.ERRORED
            generation.error = error.message
            store.update_message(generation.session_id, generation.message_id,
                                 content=f"Error: {error.message}", generating=False)
            log.error(f"Generation failed: {error.message}")
            self._notify(failure_title, error.message, "destructive")

        try:
            if on_start is not None:
                on_start(generation)
            await transport.send_streaming(
                request,
                generation.model,
                CompletionOptions(temperature=settings.temperature, max_tokens=settings.max_tokens),
                on_delta,
                on_complete,
                on_error,
                should_stop=lambda: not self._accepts(generation),
            )
        except asyncio.CancelledError:
            self.cancel(generation.id)
            raise
        except Exception as e:
            log.error(f"Generation crashed: {e}", exc_info=True)
            on_error(TransportError(str(e) or e.__class__.__name__))
        finally:
            if generation.is_live:
                # Transport returned without reporting an outcome
                on_error(TransportError("Stream ended without completion"))
            self._live.pop(generation.id, None)
            self.last_generation = generation

    def _notify(self, title: str, description: str, variant: str = "default") -> None:
        notification = Notification(title, description, variant)
        if self.notifier is None:
            logger.info(f"{title}: {description}")
            return
        self.notifier(notification)
