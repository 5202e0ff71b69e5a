"""
Shared test fixtures and configuration.
"""

import asyncio
import os
from typing import List, Optional

import pytest

# Set test environment variables before importing app modules
os.environ.setdefault("LOCAL_STORAGE_PATH", "/tmp/pillowchat_test_data")
os.environ.setdefault("LOG_FILE_ENABLED", "false")
os.environ.setdefault("SNAPSHOT_DEBOUNCE_SECONDS", "0.01")
os.environ.pop("OPENROUTER_API_KEY", None)

from pillowchat.core.errors import TransportError  # noqa: E402
from pillowchat.core.session_store import SessionStore  # noqa: E402
from pillowchat.llm.base import ChatTransport, CompletionOptions, LLMMessage  # noqa: E402
from pillowchat.models import ChatCompletion, ChatSettings  # noqa: E402


class FakeTransport(ChatTransport):
    """
    Scripted transport. Emits ``deltas``; if a ``gate`` is given it then
    waits for it and emits ``late_deltas`` before finishing.
    """

    def __init__(
        self,
        deltas: List[str] = (),
        error: Optional[TransportError] = None,
        gate: Optional[asyncio.Event] = None,
        late_deltas: List[str] = (),
        completion: Optional[ChatCompletion] = None,
    ):
        super().__init__("test-key", "https://openrouter.test/api/v1")
        self.deltas = list(deltas)
        self.error = error
        self.gate = gate
        self.late_deltas = list(late_deltas)
        self.completion = completion or ChatCompletion()
        self.waiting = asyncio.Event()
        self.requests: List[dict] = []

    async def send_message(self, messages: List[LLMMessage], model: str,
                           options: Optional[CompletionOptions] = None) -> ChatCompletion:
        self.requests.append({"messages": messages, "model": model, "options": options})
        return self.completion

    async def send_streaming(self, messages, model, options, on_delta, on_complete,
                             on_error, should_stop=None) -> None:
        self.requests.append({"messages": messages, "model": model, "options": options})
        for delta in self.deltas:
            on_delta(delta)
        if self.gate is not None:
            self.waiting.set()
            await self.gate.wait()
            for delta in self.late_deltas:
                on_delta(delta)
        if self.error is not None:
            on_error(self.error)
        else:
            on_complete()


@pytest.fixture
def store():
    return SessionStore()


@pytest.fixture
def chat_settings():
    return ChatSettings(api_key="sk-test", system_prompt="You are a test assistant.")
