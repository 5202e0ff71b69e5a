"""
Snapshot Scheduler - Debounced persistence of chat state.

The application shell calls ``request()`` after a batch of mutations; the
write happens once the state has been quiet for ``delay`` seconds. The store
and controller never perform I/O themselves.
"""

import asyncio
import logging
from typing import Callable, Optional

from ..models.settings import ChatSettings
from ..storage.chat_storage import ChatPersistence
from .session_store import SessionStore

logger = logging.getLogger(__name__)


class SnapshotScheduler:
    """Coalesces snapshot requests into delayed writes."""

    def __init__(
        self,
        persistence: ChatPersistence,
        store: SessionStore,
        settings_provider: Callable[[], ChatSettings],
        delay: float = 1.0,
    ):
        self.persistence = persistence
        self.store = store
        self.settings_provider = settings_provider
        self.delay = delay
        self._pending: Optional[asyncio.Task] = None
        # Held for the whole of a flush; writes of the same documents never overlap
        self._write_lock = asyncio.Lock()

    @property
    def pending(self) -> bool:
        return self._pending is not None and not self._pending.done()

    def request(self) -> None:
        """Schedule a snapshot, restarting the debounce timer."""
        if self.pending:
            self._pending.cancel()
        self._pending = asyncio.get_running_loop().create_task(self._delayed_flush())

    async def _delayed_flush(self) -> None:
        await asyncio.sleep(self.delay)
        # A new request must not interrupt a write already in progress
        await asyncio.shield(self.flush())

    async def flush(self) -> bool:
        """
        Write settings, sessions and the active session id now.

        Sessions are only written when auto-save is enabled. A flush started
        while another is writing waits for it to finish.

        Returns:
            True if every write succeeded
        """
        async with self._write_lock:
            settings = self.settings_provider()
            ok = await self.persistence.save_settings(settings)
            if settings.auto_save_chats:
                ok = await self.persistence.save_sessions(self.store.sessions) and ok
            ok = await self.persistence.save_active_session(self.store.active_session_id) and ok
        logger.debug(f"Snapshot written: ok={ok}, sessions={len(self.store.sessions)}")
        return ok

    async def close(self) -> None:
        """Cancel any pending timer and write a final snapshot after any write in progress."""
        if self.pending:
            self._pending.cancel()
        self._pending = None
        await self.flush()
