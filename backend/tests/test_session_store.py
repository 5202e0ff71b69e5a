"""
Unit tests for the SessionStore.
"""

from datetime import datetime, timezone

from pillowchat.core.session_store import SessionStore
from pillowchat.models import ChatSession, Message, DEFAULT_SESSION_TITLE


class TestSessions:
    """Session lifecycle tests."""

    def test_create_session_defaults(self, store):
        session_id = store.create_session()
        session = store.get_session(session_id)
        assert session.title == DEFAULT_SESSION_TITLE
        assert session.messages == []
        assert session.message_count == 0
        assert session.last_message_preview == ""
        assert store.active_session_id == session_id

    def test_new_sessions_are_prepended(self, store):
        first = store.create_session()
        second = store.create_session()
        assert [s.id for s in store.sessions] == [second, first]

    def test_create_without_activation(self, store):
        first = store.create_session()
        store.create_session(activate=False)
        assert store.active_session_id == first

    def test_delete_active_session_clears_reference(self, store):
        session_id = store.create_session()
        store.delete_session(session_id)
        assert store.get_session(session_id) is None
        assert store.active_session_id is None
        assert store.active_session is None

    def test_delete_other_session_keeps_reference(self, store):
        other = store.create_session()
        active = store.create_session()
        store.delete_session(other)
        assert store.active_session_id == active

    def test_missing_ids_are_ignored(self, store):
        store.delete_session("missing")
        store.rename_session("missing", "x")
        store.update_message("missing", "missing", content="x")
        assert store.append_message("missing", "user", "hi") is None
        assert store.sessions == []

    def test_set_active_session_requires_existing_id(self, store):
        session_id = store.create_session()
        store.set_active_session("missing")
        assert store.active_session_id == session_id
        store.set_active_session(None)
        assert store.active_session_id is None

    def test_rename_session(self, store):
        session_id = store.create_session()
        store.rename_session(session_id, "Trip planning")
        assert store.get_session(session_id).title == "Trip planning"

    def test_list_sessions_most_recently_updated_first(self, store):
        older = store.create_session()
        newer = store.create_session()
        store.get_session(newer).updated_at = datetime(2020, 1, 1, tzinfo=timezone.utc)
        store.append_message(older, "user", "bump")
        summaries = store.list_sessions()
        assert [s.id for s in summaries] == [older, newer]
        assert summaries[0].message_count == 1
        assert summaries[0].last_message_preview == "bump"


class TestMessages:
    """Message append/update tests."""

    def test_append_updates_preview_and_count(self, store):
        session_id = store.create_session()
        contents = ["Hello", "", "Hi there", "How are you?"]
        roles = ["user", "assistant", "assistant", "user"]
        for expected_len, (role, content) in enumerate(zip(roles, contents), start=1):
            store.append_message(session_id, role, content)
            session = store.get_session(session_id)
            assert session.last_message_preview == content
            assert len(session.messages) == expected_len
            assert session.message_count == expected_len

    def test_append_assigns_id_and_timestamp(self, store):
        session_id = store.create_session()
        first = store.append_message(session_id, "user", "a")
        second = store.append_message(session_id, "user", "b")
        assert first != second
        message = store.get_message(session_id, first)
        assert message.created_at.tzinfo is not None
        assert message.generating is False

    def test_short_title_used_verbatim(self, store):
        session_id = store.create_session()
        store.append_message(session_id, "user", "Hello")
        assert store.get_session(session_id).title == "Hello"

    def test_exactly_fifty_chars_not_truncated(self, store):
        session_id = store.create_session()
        content = "x" * 50
        store.append_message(session_id, "user", content)
        assert store.get_session(session_id).title == content

    def test_long_title_truncated(self, store):
        session_id = store.create_session()
        content = "Please explain the theory of relativity in simple words for a child"
        store.append_message(session_id, "user", content)
        assert store.get_session(session_id).title == content[:50] + "..."

    def test_title_derived_once(self, store):
        session_id = store.create_session()
        store.append_message(session_id, "user", "First question")
        store.append_message(session_id, "user", "Second question")
        assert store.get_session(session_id).title == "First question"

    def test_assistant_message_does_not_set_title(self, store):
        session_id = store.create_session()
        store.append_message(session_id, "assistant", "Welcome")
        assert store.get_session(session_id).title == DEFAULT_SESSION_TITLE

    def test_renamed_session_keeps_title(self, store):
        session_id = store.create_session()
        store.rename_session(session_id, "Custom")
        store.append_message(session_id, "user", "Hello")
        assert store.get_session(session_id).title == "Custom"

    def test_update_message_merges_fields(self, store):
        session_id = store.create_session()
        store.append_message(session_id, "user", "Hello")
        message_id = store.append_message(session_id, "assistant", "", generating=True,
                                          model="m")
        store.update_message(session_id, message_id, content="Hi")
        message = store.get_message(session_id, message_id)
        assert message.content == "Hi"
        assert message.generating is True
        assert message.model == "m"
        assert store.get_session(session_id).last_message_preview == "Hi"

    def test_update_earlier_message_keeps_preview(self, store):
        session_id = store.create_session()
        first = store.append_message(session_id, "assistant", "old")
        store.append_message(session_id, "user", "latest")
        store.update_message(session_id, first, content="edited")
        assert store.get_session(session_id).last_message_preview == "latest"

    def test_update_ignores_immutable_fields(self, store):
        session_id = store.create_session()
        message_id = store.append_message(session_id, "user", "Hello")
        before = store.get_session(session_id).model_dump()
        events = []
        store.subscribe(events.append)

        store.update_message(session_id, message_id, role="assistant")

        assert store.get_session(session_id).model_dump() == before
        assert events == []

    def test_update_applies_mutable_fields_alongside_ignored_ones(self, store):
        session_id = store.create_session()
        message_id = store.append_message(session_id, "assistant", "", generating=True)

        store.update_message(session_id, message_id, content="Hi", id="other")

        message = store.get_message(session_id, message_id)
        assert message.content == "Hi"
        assert message.generating is True

    def test_update_unknown_message_is_noop(self, store):
        session_id = store.create_session()
        store.append_message(session_id, "user", "Hello")
        before = store.get_session(session_id).model_dump()
        store.update_message(session_id, "missing", content="x")
        assert store.get_session(session_id).model_dump() == before


class TestSubscriptions:
    """Listener notification tests."""

    def test_listener_receives_events(self, store):
        events = []
        store.subscribe(events.append)
        session_id = store.create_session()
        message_id = store.append_message(session_id, "user", "Hello")
        store.update_message(session_id, message_id, content="Hello!")
        kinds = [e.kind for e in events]
        assert kinds == ["session_created", "active_changed", "message_appended", "message_updated"]
        assert events[-1].message_id == message_id

    def test_unsubscribe(self, store):
        events = []
        unsubscribe = store.subscribe(events.append)
        unsubscribe()
        store.create_session()
        assert events == []

    def test_failing_listener_does_not_block_mutation(self, store):
        def broken(event):
            raise RuntimeError("boom")

        store.subscribe(broken)
        session_id = store.create_session()
        assert store.get_session(session_id) is not None


class TestRestore:
    """Restoring persisted state."""

    def test_restore_clears_generating_flags(self):
        session = ChatSession(messages=[
            Message(role="user", content="Hello"),
            Message(role="assistant", content="Hal", generating=True),
        ])
        store = SessionStore()
        store.restore([session], session.id)
        assert store.active_session_id == session.id
        assert all(not m.generating for m in store.get_session(session.id).messages)

    def test_restore_drops_dangling_active_id(self):
        store = SessionStore()
        store.restore([ChatSession()], "gone")
        assert store.active_session_id is None
