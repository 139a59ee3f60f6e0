"""
Tests for the conversation store
"""

import pytest

from services.chat_service.conversation_store import ConversationStore
from services.chat_service.models import ASSISTANT, SYSTEM, USER, Conversation
from services.errors import NoActiveConversationError


class TestCreateAndActivate:
    """Test conversation creation and the active pointer"""

    def test_new_store_has_no_active_conversation(self):
        store = ConversationStore()

        assert store.get_active() is None
        assert len(store) == 0

    def test_create_conversation_becomes_active(self):
        store = ConversationStore()

        conversation_id = store.create_conversation()

        assert store.active_conversation_id == conversation_id
        conversation = store.get_active()
        assert conversation.title == "New Conversation"
        assert conversation.messages == []
        assert conversation.created_at == conversation.updated_at

    def test_create_with_title_and_system_prompt(self):
        store = ConversationStore()

        conversation_id = store.create_conversation("Travel plans", system_prompt="Be brief.")

        conversation = store.get(conversation_id)
        assert conversation.title == "Travel plans"
        assert conversation.system_prompt == "Be brief."

    def test_ids_are_unique(self):
        store = ConversationStore()

        ids = {store.create_conversation() for _ in range(20)}

        assert len(ids) == 20

    def test_set_active_unknown_id_is_a_no_op(self):
        store = ConversationStore()
        first = store.create_conversation()

        assert store.set_active("does-not-exist") is False
        assert store.active_conversation_id == first

    def test_set_active_switches(self):
        store = ConversationStore()
        first = store.create_conversation()
        store.create_conversation()

        assert store.set_active(first) is True
        assert store.active_conversation_id == first

    def test_ensure_active_creates_when_missing(self):
        store = ConversationStore()

        conversation = store.ensure_active()

        assert conversation is store.get_active()
        assert len(store) == 1

    def test_ensure_active_keeps_existing(self):
        store = ConversationStore()
        conversation_id = store.create_conversation()

        assert store.ensure_active().id == conversation_id
        assert len(store) == 1


class TestAppend:
    """Test appending messages"""

    def test_append_to_active(self, store):
        store.create_conversation()

        message = store.append(USER, "Hello")

        conversation = store.get_active()
        assert conversation.messages == [message]
        assert message.role == USER
        assert message.content == "Hello"
        assert message.is_error is False
        assert message.is_streaming is False

    def test_append_flags(self, store):
        store.create_conversation()

        streaming = store.append(ASSISTANT, "", is_streaming=True)
        error = store.append(ASSISTANT, "Oops", is_error=True)

        assert streaming.is_streaming is True
        assert error.is_error is True

    def test_append_to_explicit_conversation(self, store):
        first = store.create_conversation()
        store.create_conversation()

        store.append(USER, "for the first", conversation_id=first)

        assert len(store.get(first).messages) == 1
        assert store.get_active().messages == []

    def test_append_without_active_raises(self, store):
        with pytest.raises(NoActiveConversationError):
            store.append(USER, "Hello")

    def test_append_to_unknown_conversation_raises(self, store):
        store.create_conversation()

        with pytest.raises(NoActiveConversationError) as exc_info:
            store.append(USER, "Hello", conversation_id="missing")

        assert exc_info.value.conversation_id == "missing"

    def test_append_rejects_unknown_role(self, store):
        store.create_conversation()

        with pytest.raises(ValueError):
            store.append("robot", "beep")

    def test_append_bumps_updated_at(self, store):
        store.create_conversation()
        conversation = store.get_active()
        conversation.updated_at = 1

        store.append(USER, "Hello")

        assert conversation.updated_at > 1

    def test_updated_at_never_moves_backwards(self, store):
        store.create_conversation()
        conversation = store.get_active()
        future = conversation.updated_at + 10_000_000
        conversation.updated_at = future

        store.append(USER, "Hello")

        assert conversation.updated_at == future


class TestTruncation:
    """Test keep-most-recent-N history truncation"""

    def test_cap_keeps_most_recent_messages(self):
        store = ConversationStore(max_messages=3)
        store.create_conversation()

        appended = [store.append(USER, f"#{i}") for i in range(1, 9)]

        contents = [m.content for m in store.get_active().messages]
        assert contents == ["#6", "#7", "#8"]
        assert [m.id for m in store.get_active().messages] == [m.id for m in appended[-3:]]

    def test_cap_of_one(self):
        store = ConversationStore(max_messages=1)
        store.create_conversation()

        store.append(USER, "question")
        store.append(ASSISTANT, "answer")

        assert [m.content for m in store.get_active().messages] == ["answer"]

    def test_lowered_cap_applies_on_next_append(self):
        store = ConversationStore(max_messages=10)
        store.create_conversation()
        for i in range(6):
            store.append(USER, f"#{i}")

        store.max_messages = 2
        assert len(store.get_active().messages) == 6

        store.append(USER, "#6")
        assert [m.content for m in store.get_active().messages] == ["#5", "#6"]

    def test_cap_is_at_least_one(self):
        assert ConversationStore(max_messages=0).max_messages == 1


class TestUpdateInPlace:
    """Test in-place message updates"""

    def test_update_content_and_flags(self, store):
        store.create_conversation()
        message = store.append(ASSISTANT, "", is_streaming=True)

        assert store.update_in_place(message.id, "partial", True) is True
        assert message.content == "partial"
        assert message.is_streaming is True

        assert store.update_in_place(message.id, "final", False, is_degraded=True) is True
        assert message.content == "final"
        assert message.is_streaming is False
        assert message.is_degraded is True

    def test_update_keeps_id_and_timestamp(self, store):
        store.create_conversation()
        message = store.append(ASSISTANT, "")
        original_id, original_timestamp = message.id, message.timestamp

        store.update_in_place(message.id, "text", False)

        assert message.id == original_id
        assert message.timestamp == original_timestamp

    def test_update_missing_message_is_skipped(self, store):
        store.create_conversation()
        store.append(USER, "Hello")

        assert store.update_in_place("missing", "text", False) is False

    def test_update_after_truncation_is_skipped(self):
        store = ConversationStore(max_messages=2)
        store.create_conversation()
        placeholder = store.append(ASSISTANT, "", is_streaming=True)
        store.append(USER, "a")
        store.append(USER, "b")

        assert store.update_in_place(placeholder.id, "late", False) is False
        assert [m.content for m in store.get_active().messages] == ["a", "b"]

    def test_update_targets_active_conversation_only(self, store):
        first = store.create_conversation()
        message = store.append(ASSISTANT, "", is_streaming=True)
        store.create_conversation()

        assert store.update_in_place(message.id, "text", False) is False
        assert store.get(first).messages[0].content == ""

    def test_finish_streaming_in_inactive_conversation(self, store):
        first = store.create_conversation()
        message = store.append(ASSISTANT, "partial", is_streaming=True)
        store.create_conversation()

        assert store.finish_streaming(message.id, first) is True
        assert message.is_streaming is False
        assert message.content == "partial"
        assert store.finish_streaming(message.id, first) is False


class TestRemoveMessage:
    """Test single message removal"""

    def test_remove_message(self, store):
        store.create_conversation()
        keep = store.append(USER, "keep")
        drop = store.append(ASSISTANT, "drop")

        assert store.remove_message(drop.id) is True
        assert store.get_active().messages == [keep]

    def test_remove_unknown_message(self, store):
        store.create_conversation()

        assert store.remove_message("missing") is False


class TestListAndDelete:
    """Test listing, deletion and promotion of the active conversation"""

    def test_list_all_orders_by_updated_at(self, store):
        a = store.create_conversation("a")
        b = store.create_conversation("b")
        c = store.create_conversation("c")
        store.get(a).updated_at = 300
        store.get(b).updated_at = 100
        store.get(c).updated_at = 200

        assert [conv.id for conv in store.list_all()] == [a, c, b]

    def test_delete_inactive_keeps_active(self, store):
        first = store.create_conversation()
        second = store.create_conversation()

        assert store.delete(first) is True
        assert store.active_conversation_id == second
        assert first not in store

    def test_delete_active_promotes_most_recent(self, store):
        a = store.create_conversation("a")
        b = store.create_conversation("b")
        c = store.create_conversation("c")
        store.get(a).updated_at = 500
        store.get(b).updated_at = 100
        store.set_active(c)

        store.delete(c)

        assert store.active_conversation_id == a

    def test_delete_last_conversation_creates_fresh_one(self, store):
        only = store.create_conversation()

        store.delete(only)

        assert len(store) == 1
        active = store.get_active()
        assert active.id != only
        assert active.messages == []

    def test_delete_unknown_is_a_no_op(self, store):
        store.create_conversation()

        assert store.delete("missing") is False
        assert len(store) == 1


class TestRenameAndClear:
    """Test renaming and clearing conversations"""

    def test_rename(self, store):
        conversation_id = store.create_conversation()

        assert store.rename(conversation_id, "Renamed") is True
        assert store.get(conversation_id).title == "Renamed"

    def test_rename_unknown(self, store):
        assert store.rename("missing", "x") is False

    def test_clear_active(self, store):
        store.create_conversation()
        store.append(USER, "Hello")
        store.append(SYSTEM, "note")

        assert store.clear() is True
        assert store.get_active().messages == []

    def test_clear_unknown(self, store):
        assert store.clear("missing") is False

    def test_preview_text_skips_errors(self, store):
        store.create_conversation()
        store.append(USER, "What is the weather?")
        store.append(ASSISTANT, "Something broke", is_error=True)

        assert store.get_active().preview_text == "What is the weather?"

    def test_add_conversation_does_not_change_active(self, store):
        active = store.create_conversation()

        store.add_conversation(Conversation(id="restored", title="Old"))

        assert "restored" in store
        assert store.active_conversation_id == active
