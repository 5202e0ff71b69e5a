"""
Unit tests for local storage, chat persistence and snapshot scheduling.
"""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest

from pillowchat.core.runtime import init_chat_runtime
from pillowchat.core.session_store import SessionStore
from pillowchat.core.snapshot import SnapshotScheduler
from pillowchat.models import ChatSettings
from pillowchat.storage import ChatPersistence, LocalStorage


@pytest.fixture
def local_storage(tmp_path):
    return LocalStorage(str(tmp_path / "data"))


@pytest.fixture
def persistence(local_storage):
    return ChatPersistence(local_storage)


class TestLocalStorage:
    """Tests for the filesystem backend."""

    @pytest.mark.asyncio
    async def test_save_and_load(self, local_storage):
        assert await local_storage.save("nested/doc.json", '{"a": 1}') is True
        assert await local_storage.load("nested/doc.json") == b'{"a": 1}'
        assert await local_storage.exists("nested/doc.json") is True

    @pytest.mark.asyncio
    async def test_overwrite_leaves_no_temp_file(self, local_storage):
        await local_storage.save("doc.json", "first")
        await local_storage.save("doc.json", "second")
        assert await local_storage.load("doc.json") == b"second"
        assert [p.name for p in local_storage.base_dir.iterdir()] == ["doc.json"]

    @pytest.mark.asyncio
    async def test_missing_file(self, local_storage):
        assert await local_storage.load("missing.json") is None
        assert await local_storage.exists("missing.json") is False
        assert await local_storage.delete("missing.json") is False

    @pytest.mark.asyncio
    async def test_delete(self, local_storage):
        await local_storage.save("doc.json", "x")
        assert await local_storage.delete("doc.json") is True
        assert await local_storage.exists("doc.json") is False

    @pytest.mark.asyncio
    async def test_path_traversal_rejected(self, local_storage):
        assert await local_storage.save("../escape.json", "x") is False
        assert await local_storage.load("../../etc/passwd") is None
        assert await local_storage.exists("../escape.json") is False

    @pytest.mark.asyncio
    async def test_concurrent_saves_leave_valid_document(self, local_storage):
        large = json.dumps({"messages": ["x" * 1000] * 200})
        small = json.dumps({"m": 1})
        payloads = [large if i % 2 == 0 else small for i in range(20)]

        results = await asyncio.gather(*(local_storage.save("sessions.json", p) for p in payloads))

        assert all(results)
        content = (await local_storage.load("sessions.json")).decode("utf-8")
        assert content in (large, small)
        json.loads(content)
        assert [p.name for p in local_storage.base_dir.iterdir()] == ["sessions.json"]


class TestChatPersistence:
    """Tests for reading and writing chat state."""

    @pytest.mark.asyncio
    async def test_load_with_nothing_saved(self, persistence):
        assert await persistence.load() is None

    @pytest.mark.asyncio
    async def test_round_trip_preserves_sessions(self, persistence, store):
        session_id = store.create_session()
        store.append_message(session_id, "user", "Hello", attachment_url="data:image/png;base64,AA==")
        store.append_message(session_id, "assistant", "Hi there", model="m")
        settings = ChatSettings(api_key="sk-saved", temperature=1.2)

        assert await persistence.save_sessions(store.sessions) is True
        assert await persistence.save_settings(settings) is True
        assert await persistence.save_active_session(session_id) is True

        state = await persistence.load()
        assert state.active_session_id == session_id
        assert state.settings == settings
        assert [s.model_dump() for s in state.sessions] == [s.model_dump() for s in store.sessions]
        restored = state.sessions[0]
        assert restored.updated_at == store.get_session(session_id).updated_at
        assert restored.messages[0].created_at.tzinfo is not None

    @pytest.mark.asyncio
    async def test_sessions_file_is_json_array(self, persistence, local_storage, store):
        store.create_session()
        await persistence.save_sessions(store.sessions)
        raw = json.loads(await local_storage.load(ChatPersistence.SESSIONS_PATH))
        assert isinstance(raw, list)
        assert raw[0]["title"] == "New Chat"

    @pytest.mark.asyncio
    async def test_clearing_active_session_deletes_file(self, persistence, local_storage):
        await persistence.save_active_session("abc")
        await persistence.save_active_session(None)
        assert await local_storage.exists(ChatPersistence.ACTIVE_SESSION_PATH) is False

    @pytest.mark.asyncio
    async def test_corrupt_file_falls_back_to_defaults(self, persistence, local_storage):
        await local_storage.save(ChatPersistence.SESSIONS_PATH, "not json")
        await persistence.save_settings(ChatSettings(max_tokens=1024))

        state = await persistence.load()
        assert state.sessions == []
        assert state.settings.max_tokens == 1024
        assert state.active_session_id is None

    @pytest.mark.asyncio
    async def test_save_failure_is_reported_not_raised(self):
        storage = AsyncMock()
        storage.save.side_effect = OSError("disk full")
        persistence = ChatPersistence(storage)

        assert await persistence.save_settings(ChatSettings()) is False

    @pytest.mark.asyncio
    async def test_save_returning_false(self):
        storage = AsyncMock()
        storage.save.return_value = False
        persistence = ChatPersistence(storage)

        assert await persistence.save_sessions([]) is False


class TestSnapshotScheduler:
    """Tests for debounced snapshots."""

    def _scheduler(self, persistence, store, settings, delay=0.01):
        return SnapshotScheduler(persistence, store, lambda: settings, delay=delay)

    @pytest.mark.asyncio
    async def test_flush_writes_everything(self, persistence, store):
        session_id = store.create_session()
        store.append_message(session_id, "user", "Hello")
        scheduler = self._scheduler(persistence, store, ChatSettings(api_key="k"))

        assert await scheduler.flush() is True

        state = await persistence.load()
        assert [s.id for s in state.sessions] == [session_id]
        assert state.settings.api_key == "k"
        assert state.active_session_id == session_id

    @pytest.mark.asyncio
    async def test_auto_save_disabled_skips_sessions(self, persistence, store):
        store.create_session()
        scheduler = self._scheduler(persistence, store, ChatSettings(auto_save_chats=False))

        await scheduler.flush()

        state = await persistence.load()
        assert state.sessions == []
        assert state.settings.auto_save_chats is False

    @pytest.mark.asyncio
    async def test_requests_are_coalesced(self, store):
        persistence = AsyncMock()
        persistence.save_settings.return_value = True
        persistence.save_sessions.return_value = True
        persistence.save_active_session.return_value = True
        scheduler = self._scheduler(persistence, store, ChatSettings(), delay=0.05)

        for _ in range(5):
            scheduler.request()
        assert scheduler.pending is True
        await asyncio.sleep(0.2)

        assert scheduler.pending is False
        assert persistence.save_settings.await_count == 1
        assert persistence.save_sessions.await_count == 1

    @pytest.mark.asyncio
    async def test_close_flushes_pending(self, persistence, store):
        store.create_session()
        scheduler = self._scheduler(persistence, store, ChatSettings(), delay=60)
        scheduler.request()

        await scheduler.close()

        assert scheduler.pending is False
        state = await persistence.load()
        assert len(state.sessions) == 1

    @pytest.mark.asyncio
    async def test_close_waits_for_flush_in_progress(self, store):
        persistence = SlowPersistence()
        scheduler = self._scheduler(persistence, store, ChatSettings(), delay=0)

        scheduler.request()
        await persistence.started.wait()
        await scheduler.close()

        assert persistence.flushes == 2
        assert persistence.max_active == 1

    @pytest.mark.asyncio
    async def test_request_during_flush_does_not_overlap(self, store):
        persistence = SlowPersistence()
        scheduler = self._scheduler(persistence, store, ChatSettings(), delay=0)

        scheduler.request()
        await persistence.started.wait()
        scheduler.request()
        await asyncio.sleep(0.3)

        assert persistence.flushes == 2
        assert persistence.max_active == 1


class SlowPersistence:
    """Persistence double whose writes take a while and record overlap."""

    def __init__(self):
        self.active = 0
        self.max_active = 0
        self.flushes = 0
        self.started = asyncio.Event()

    async def _write(self):
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        self.started.set()
        await asyncio.sleep(0.02)
        self.active -= 1
        return True

    async def save_settings(self, settings):
        return await self._write()

    async def save_sessions(self, sessions):
        return await self._write()

    async def save_active_session(self, session_id):
        self.flushes += 1
        return await self._write()


class TestRuntimeLoad:
    """Restoring the runtime from disk."""

    @pytest.mark.asyncio
    async def test_restored_state_is_cleaned(self, local_storage, persistence):
        store = SessionStore()
        session_id = store.create_session()
        store.append_message(session_id, "user", "Hello")
        store.append_message(session_id, "assistant", "Hal", generating=True)
        await persistence.save_sessions(store.sessions)
        await persistence.save_active_session("gone")

        runtime = await init_chat_runtime(local_storage)

        assert runtime.store.active_session_id is None
        session = runtime.store.get_session(session_id)
        assert not any(m.generating for m in session.messages)
        assert runtime.controller.settings == ChatSettings()
