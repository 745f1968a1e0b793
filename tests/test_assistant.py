"""
Tests for AssistantSession: welcome bubble, persistence, sending.
"""

import pytest

from taskboard.assistant import WELCOME_ID, AssistantSession, welcome_message
from taskboard.errors import ApiError
from taskboard.schema import ChatRole


@pytest.fixture
def assistant(api, store, notifier):
    api.chat.return_value = "Focus on the urgent card first."
    return AssistantSession(api, store, notifier)


class TestWelcome:

    def test_plural(self):
        assert "**3 boards**" in welcome_message("alice", 3).content
        assert "**1 board**" in welcome_message("alice", 1).content

    def test_anonymous(self):
        assert "Hey **there**!" in welcome_message(None, 0).content

    def test_first_open_injects_welcome(self, assistant):
        assistant.open("alice", 2)
        assert assistant.is_open
        assert [m.id for m in assistant.messages] == [WELCOME_ID]
        assert assistant.is_initialized

    def test_reopen_does_not_duplicate(self, assistant):
        assistant.open("alice", 2)
        assistant.close()
        assistant.open("alice", 2)
        assert len(assistant.messages) == 1

    def test_clear_then_open_greets_again(self, assistant):
        assistant.open("alice", 2)
        assistant.clear()
        assert assistant.messages == []
        assistant.open("alice", 2)
        assert assistant.messages[0].id == WELCOME_ID


class TestPanel:

    def test_minimize_expand(self, assistant):
        assistant.open()
        assistant.minimize()
        assert assistant.is_minimized
        assistant.expand()
        assert not assistant.is_minimized

    def test_open_expands(self, assistant):
        assistant.minimize()
        assistant.open()
        assert not assistant.is_minimized


class TestSend:

    def test_send_appends_both(self, assistant, api):
        assistant.open("alice", 1)
        reply = assistant.send("  what first? ")
        assert reply.role == ChatRole.ASSISTANT
        assert [m.role for m in assistant.messages[1:]] == [ChatRole.USER, ChatRole.ASSISTANT]
        assert assistant.messages[1].content == "what first?"
        assert not assistant.is_loading

    def test_failure_shows_server_message(self, assistant, api, notifier):
        api.chat.side_effect = ApiError("Rate limit exceeded", status=429)
        assistant.send("hi")
        assert notifier.last.description == "Rate limit exceeded"

    def test_welcome_never_sent(self, assistant, api):
        assistant.open("alice", 1)
        assistant.send("one")
        assistant.send("two")
        sent = api.chat.call_args.args[0]
        assert sent == [
            {"role": "user", "content": "one"},
            {"role": "assistant", "content": "Focus on the urgent card first."},
            {"role": "user", "content": "two"},
        ]

    def test_blank_ignored(self, assistant, api):
        assert assistant.send("   ") is None
        api.chat.assert_not_called()
        assert assistant.messages == []

    def test_ignored_while_loading(self, assistant, api):
        assistant.is_loading = True
        assert assistant.send("hi") is None
        api.chat.assert_not_called()

    def test_failure_keeps_user_entry(self, assistant, api, notifier):
        api.chat.side_effect = ApiError(None, status=500)
        assert assistant.send("hi") is None
        assert [m.content for m in assistant.messages] == ["hi"]
        assert notifier.last.description == "Failed to get AI response"
        assert not assistant.is_loading


class TestPersistence:

    def test_transcript_survives_restart(self, assistant, api, store, notifier):
        assistant.open("alice", 1)
        for i in range(4):
            assistant.send(f"question {i}")
        before = assistant.messages

        restored = AssistantSession(api, store, notifier)
        assert len(restored.messages) == len(before) == 9
        for old, new in zip(before, restored.messages):
            assert (new.id, new.role, new.content) == (old.id, old.role, old.content)
            assert new.timestamp == old.timestamp
        assert restored.is_open
        assert restored.is_initialized

    def test_separate_storage_keys(self, api, store, notifier):
        first = AssistantSession(api, store, notifier, storage_key="chatbot-state:1")
        first.open("alice", 0)
        second = AssistantSession(api, store, notifier, storage_key="chatbot-state:2")
        assert second.messages == []

    def test_corrupt_record_resets(self, api, store, notifier):
        store.set_json("chatbot-state", {"messages": [{"role": "robot", "content": "x"}]})
        session = AssistantSession(api, store, notifier)
        assert session.messages == []
        assert not session.is_initialized
