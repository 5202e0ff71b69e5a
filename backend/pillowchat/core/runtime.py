"""
Chat Runtime - Wires the store, controller and persistence together.
"""

import logging
from collections import deque
from typing import Deque, List, Optional

from ..config import settings as app_settings
from ..llm.factory import create_transport
from ..models.settings import ChatSettings
from ..storage.chat_storage import ChatPersistence
from ..storage.interface import StorageInterface
from ..storage.local_storage import LocalStorage
from .generation import GenerationController, Notification, TransportFactory
from .session_store import SessionStore
from .snapshot import SnapshotScheduler

logger = logging.getLogger(__name__)


class ChatRuntime:
    """Process-wide chat state for the application shell."""

    def __init__(
        self,
        persistence: ChatPersistence,
        chat_settings: Optional[ChatSettings] = None,
        transport_factory: TransportFactory = create_transport,
        snapshot_delay: float = 1.0,
    ):
        self.store = SessionStore()
        self.notifications: Deque[Notification] = deque(maxlen=20)
        self.controller = GenerationController(
            self.store,
            settings=chat_settings,
            transport_factory=transport_factory,
            notifier=self._on_notification,
        )
        self.persistence = persistence
        self.snapshots = SnapshotScheduler(
            persistence, self.store, lambda: self.controller.settings, delay=snapshot_delay
        )

    def _on_notification(self, notification: Notification) -> None:
        level = logging.WARNING if notification.variant == "destructive" else logging.INFO
        logger.log(level, f"{notification.title}: {notification.description}")
        self.notifications.append(notification)

    def recent_notifications(self) -> List[Notification]:
        return list(self.notifications)

    async def load(self) -> None:
        """Restore persisted state, seeding the API key from the environment."""
        state = await self.persistence.load()
        if state is not None:
            self.store.restore(state.sessions, state.active_session_id)
            chat_settings = state.settings
        else:
            chat_settings = self.controller.settings

        if not chat_settings.api_key and app_settings.openrouter_api_key:
            chat_settings = chat_settings.model_copy(
                update={"api_key": app_settings.openrouter_api_key}
            )
        self.controller.update_settings(chat_settings)


# Global runtime instance
_runtime: Optional[ChatRuntime] = None


async def init_chat_runtime(
    storage: Optional[StorageInterface] = None,
    transport_factory: TransportFactory = create_transport,
) -> ChatRuntime:
    """
    Initialize the global runtime and load persisted state.

    Args:
        storage: Optional StorageInterface implementation. If None, creates LocalStorage.
        transport_factory: Factory used to create a transport per generation
    """
    global _runtime
    if storage is None:
        storage = LocalStorage(app_settings.local_storage_path)
    runtime = ChatRuntime(
        ChatPersistence(storage),
        transport_factory=transport_factory,
        snapshot_delay=app_settings.snapshot_debounce_seconds,
    )
    await runtime.load()
    _runtime = runtime
    return runtime


def get_chat_runtime() -> ChatRuntime:
    """
    Get the global runtime instance.

    Raises:
        RuntimeError: If the runtime has not been initialized
    """
    if _runtime is None:
        raise RuntimeError("Chat runtime not initialized. Call init_chat_runtime() first.")
    return _runtime
