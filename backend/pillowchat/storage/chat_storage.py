"""
Chat Storage - Persists sessions, settings and the active session id.
Each is stored as its own JSON document so they can be saved independently.
"""

import json
import logging
from typing import List, Optional

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from ..models.chat import ChatSession
from ..models.settings import ChatSettings
from .interface import StorageInterface

logger = logging.getLogger(__name__)

_sessions_adapter = TypeAdapter(List[ChatSession])


class PersistedState(BaseModel):
    """Everything restored on startup."""
    sessions: List[ChatSession] = Field(default_factory=list)
    settings: ChatSettings = Field(default_factory=ChatSettings)
    active_session_id: Optional[str] = None


class ChatPersistence:
    """
    Reads and writes chat state through a StorageInterface.
    Saves are best-effort: failures are logged and reported as False.
    """

    SESSIONS_PATH = "sessions.json"
    SETTINGS_PATH = "settings.json"
    ACTIVE_SESSION_PATH = "active_session.json"

    def __init__(self, storage: StorageInterface):
        self.storage = storage

    async def load(self) -> Optional[PersistedState]:
        """
        Load persisted state.

        Returns:
            PersistedState, or None if nothing has been saved yet
        """
        raw_sessions = await self.storage.load(self.SESSIONS_PATH)
        raw_settings = await self.storage.load(self.SETTINGS_PATH)
        raw_active = await self.storage.load(self.ACTIVE_SESSION_PATH)
        if raw_sessions is None and raw_settings is None and raw_active is None:
            return None

        state = PersistedState()

        if raw_sessions is not None:
            try:
                state.sessions = _sessions_adapter.validate_json(raw_sessions)
            except ValidationError as e:
                logger.error(f"Discarding unreadable sessions file: {e}")

        if raw_settings is not None:
            try:
                state.settings = ChatSettings.model_validate_json(raw_settings)
            except ValidationError as e:
                logger.error(f"Discarding unreadable settings file: {e}")

        if raw_active is not None:
            try:
                active = json.loads(raw_active.decode("utf-8"))
            except (UnicodeDecodeError, json.JSONDecodeError) as e:
                logger.error(f"Discarding unreadable active session file: {e}")
            else:
                if isinstance(active, str):
                    state.active_session_id = active

        logger.info(
            f"Loaded chat state: {len(state.sessions)} sessions, "
            f"active={state.active_session_id}"
        )
        return state

    async def save_sessions(self, sessions: List[ChatSession]) -> bool:
        content = _sessions_adapter.dump_json(sessions, indent=2)
        return await self._save(self.SESSIONS_PATH, content)

    async def save_settings(self, settings: ChatSettings) -> bool:
        return await self._save(self.SETTINGS_PATH, settings.model_dump_json(indent=2))

    async def save_active_session(self, session_id: Optional[str]) -> bool:
        if session_id is None:
            await self.storage.delete(self.ACTIVE_SESSION_PATH)
            return True
        return await self._save(self.ACTIVE_SESSION_PATH, json.dumps(session_id))

    async def _save(self, path: str, content: bytes | str) -> bool:
        try:
            saved = await self.storage.save(path, content)
        except Exception as e:
            logger.error(f"Saving {path} failed: {e}", exc_info=True)
            return False
        if not saved:
            logger.warning(f"Saving {path} failed")
        return saved
