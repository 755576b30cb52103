"""Tests for model message assembly and the domain records."""

import json

from conftest import NOW
from handoff_bot.ai.conversation import append_tool_round, build_messages
from handoff_bot.core.models import HandoffMetadata, ToolCall, ToolResult, Turn


class TestBuildMessages:
    def test_new_turn_appended(self):
        messages = build_messages([Turn("user", "hi"), Turn("assistant", "hello")], "order?")
        assert messages == [
            {"role": "user", "content": "hi"},
            {"role": "assistant", "content": "hello"},
            {"role": "user", "content": "order?"},
        ]

    def test_leading_assistant_turn_dropped(self):
        messages = build_messages([Turn("assistant", "welcome!")], "hi")
        assert messages == [{"role": "user", "content": "hi"}]

    def test_consecutive_user_turns_merged(self):
        messages = build_messages([Turn("user", "first")], "second")
        assert messages == [{"role": "user", "content": "first\nsecond"}]

    def test_cap(self):
        history = [Turn("user" if i % 2 == 0 else "assistant", str(i)) for i in range(20)]
        messages = build_messages(history, "new", max_turns=10)
        assert messages[0]["content"] == "10"
        assert len(messages) == 11


def test_append_tool_round():
    base = [{"role": "user", "content": "order 1?"}]
    calls = [ToolCall(id="t1", name="get_order_status", arguments='{"order_id": "1"}')]
    results = [ToolResult(tool_call_id="t1", name="get_order_status", result={"found": False})]
    messages = append_tool_round(base, "checking", calls, results)

    assert base == [{"role": "user", "content": "order 1?"}]
    assert messages[1]["content"] == [
        {"type": "text", "text": "checking"},
        {"type": "tool_use", "id": "t1", "name": "get_order_status", "input": {"order_id": "1"}},
    ]
    assert messages[2]["content"][0]["tool_use_id"] == "t1"
    assert json.loads(messages[2]["content"][0]["content"]) == {"found": False}


class TestHandoffMetadata:
    def test_round_trip_camel_case(self):
        meta = HandoffMetadata(failed_attempts=2, handoff_at=NOW, handoff_reason="LOW_CONFIDENCE")
        assert HandoffMetadata.from_json(meta.to_json()) == meta
        assert set(meta.to_json()) == {"failedAttempts", "handoffAt", "handoffReason"}

    def test_naive_timestamp_is_utc(self):
        meta = HandoffMetadata.from_json({"handoffAt": "2024-05-01T12:00:00"})
        assert meta.handoff_at == NOW

    def test_garbage(self):
        assert HandoffMetadata.from_json("not a dict") == HandoffMetadata()
        assert HandoffMetadata.from_json({"failedAttempts": -4}).failed_attempts == 0
