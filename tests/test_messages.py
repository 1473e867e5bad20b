"""Tests for the transcript data model."""

from __future__ import annotations

from datetime import date

from ricochet.context.messages import (
    Message,
    Role,
    ToolResultBlock,
    ToolUseBlock,
    canonical_arguments,
    drop_orphaned_results,
    orphaned_tool_results,
)


def _call(tool_id: str, name: str = "run_command", **args) -> Message:
    return Message(role="assistant", tool_use=[ToolUseBlock(tool_id, name, args)])


def _result(tool_id: str, content: str = "ok", text: str = "") -> Message:
    return Message(
        role="user", content=text, tool_results=[ToolResultBlock(tool_id, content)],
    )


class TestMessage:
    def test_coerces_role_and_blocks(self):
        msg = Message(role="assistant", tool_use=[ToolUseBlock("t1", "read_file")])
        assert msg.role is Role.ASSISTANT
        assert isinstance(msg.tool_use, tuple)
        assert msg.has_tool_use
        assert msg.tool_use_ids() == {"t1"}

    def test_tool_results_only_count_on_user_or_tool_role(self):
        msg = Message(role="tool", tool_results=[ToolResultBlock("t1", "x")])
        assert msg.has_tool_results
        assert msg.result_ids() == {"t1"}

    def test_from_dict_parses_string_input(self):
        msg = Message.from_dict({
            "role": "assistant",
            "content": "reading",
            "tool_use": [
                {"id": "t1", "name": "read_file", "input": '{"path": "/a.txt"}'},
            ],
        })
        assert msg.tool_use[0].input == {"path": "/a.txt"}

    def test_from_dict_keeps_unparseable_input_raw(self):
        msg = Message.from_dict({
            "role": "assistant",
            "tool_use": [{"id": "t1", "name": "x", "input": "not json"}],
        })
        assert msg.tool_use[0].input == {"raw": "not json"}

    def test_to_dict_uses_wire_keys(self):
        msg = Message(
            role="user",
            tool_results=[ToolResultBlock("t1", "boom", is_error=True)],
            reasoning="hmm",
        )
        data = msg.to_dict()
        assert data["reasoning_content"] == "hmm"
        assert data["tool_results"] == [
            {"tool_use_id": "t1", "content": "boom", "is_error": True},
        ]
        assert Message.from_dict(data) == msg

    def test_input_json_stringifies_non_json_values(self):
        block = ToolUseBlock("t1", "run_command", {"since": date(2024, 1, 2)})
        assert block.input_json == '{"since":"2024-01-02"}'


class TestCanonicalArguments:
    def test_key_order_does_not_matter(self):
        a = canonical_arguments({"path": "a.py", "limit": 10})
        b = canonical_arguments({"limit": 10, "path": "a.py"})
        assert a == b

    def test_nested_values_are_sorted(self):
        a = canonical_arguments({"opts": {"b": 1, "a": 2}})
        assert a == '{"opts":{"a":2,"b":1}}'


class TestOrphans:
    def test_detects_result_without_call(self):
        messages = [Message(role="user", content="task"), _result("t9")]
        assert orphaned_tool_results(messages) == ["t9"]

    def test_result_before_call_is_orphaned(self):
        messages = [Message(role="user", content="task"), _result("t1"), _call("t1")]
        assert orphaned_tool_results(messages) == ["t1"]

    def test_paired_results_are_clean(self):
        messages = [Message(role="user", content="task"), _call("t1"), _result("t1")]
        assert orphaned_tool_results(messages) == []

    def test_drop_strips_only_unsatisfied_blocks(self):
        mixed = Message(
            role="user",
            tool_results=[ToolResultBlock("t1", "kept"), ToolResultBlock("t2", "gone")],
        )
        messages = [Message(role="user", content="task"), _call("t1"), mixed]

        cleaned, stripped = drop_orphaned_results(messages)

        assert stripped == ["t2"]
        assert cleaned[2].tool_results == (ToolResultBlock("t1", "kept"),)
        assert messages[2] is mixed  # input untouched

    def test_drop_removes_empty_message_but_keeps_text(self):
        messages = [
            Message(role="user", content="task"),
            _result("t1"),
            _result("t2", text="also some words"),
        ]
        cleaned, stripped = drop_orphaned_results(messages)
        assert stripped == ["t1", "t2"]
        assert len(cleaned) == 2
        assert cleaned[1].content == "also some words"
        assert cleaned[1].tool_results == ()

    def test_pinned_message_is_never_altered(self):
        pinned = _result("t0", text="odd pinned message")
        cleaned, _ = drop_orphaned_results([pinned])
        assert cleaned[0] is pinned
