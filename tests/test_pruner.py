"""Tests for sliding-window pruning."""

from __future__ import annotations

from ricochet.config import TokenBudget
from ricochet.context.eviction import EVICTION_PLACEHOLDER
from ricochet.context.messages import (
    Message,
    ToolResultBlock,
    ToolUseBlock,
    orphaned_tool_results,
)
from ricochet.context.pruner import prune_messages

SYSTEM = "You are a coding agent."


def _filler(n: int, size: int = 400) -> list[Message]:
    return [
        Message(role="user" if i % 2 else "assistant", content="x" * size)
        for i in range(n)
    ]


def _budget_for(estimator, messages, system=SYSTEM, slack=0, margin=1000) -> TokenBudget:
    """Budget whose available space is exactly ``messages[1:]`` plus ``slack``."""
    needed = (
        estimator.estimate_budgeted_tokens(system)
        + estimator.estimate_total_budgeted_tokens(messages)
        + margin
        + slack
    )
    return TokenBudget(max_tokens=needed, safety_margin_tokens=margin)


class TestPruneNoOp:
    def test_under_budget_returns_input(self, estimator):
        messages = [Message(role="user", content="Initial task"), *_filler(10)]
        budget = _budget_for(estimator, messages)

        result = prune_messages(messages, SYSTEM, budget, estimator)

        assert result.messages == messages
        assert result.hidden_count == 0
        assert not result.was_pruned

    def test_two_messages_unchanged(self, estimator):
        messages = [Message(role="user", content="task"), *_filler(1, size=90_000)]
        budget = TokenBudget(max_tokens=5000)
        result = prune_messages(messages, SYSTEM, budget, estimator)
        assert result.messages == messages

    def test_old_large_outputs_still_evicted(self, estimator):
        messages = [
            Message(role="user", content="task"),
            Message(role="assistant", tool_use=[ToolUseBlock("t1", "run_command", {})]),
            Message(role="user", tool_results=[ToolResultBlock("t1", "o" * 6000)]),
            *_filler(10, size=40),
        ]
        result = prune_messages(messages, SYSTEM, TokenBudget(), estimator)
        assert result.hidden_count == 0
        assert result.messages[2].tool_results[0].content == EVICTION_PLACEHOLDER


class TestPruneOverBudget:
    def test_hides_oldest_and_inserts_notice(self, estimator):
        messages = [Message(role="user", content="Initial task"), *_filler(30)]
        # Room for exactly 10 fillers (109 budgeted tokens each).
        budget = _budget_for(estimator, messages[:11])

        result = prune_messages(messages, SYSTEM, budget, estimator)

        assert result.messages[0] is messages[0]
        assert result.hidden_count == 20
        assert "20 older messages were hidden" in result.messages[1].content
        assert result.messages[2:] == messages[-10:]
        assert len(result.messages) <= len(messages) + 1

    def test_newest_message_kept_when_alone_over_budget(self, estimator):
        messages = [
            Message(role="user", content="task"),
            *_filler(5),
            Message(role="user", content="y" * 40_000),
        ]
        budget = _budget_for(estimator, messages[:3])

        result = prune_messages(messages, SYSTEM, budget, estimator)

        assert result.messages[-1] is messages[-1]
        assert result.hidden_count == 5

    def test_recent_floor_keeps_latest_turn(self, estimator):
        messages = [
            Message(role="user", content="task"),
            *_filler(4),
            Message(role="assistant", content="z" * 3400),
        ]
        # 1000 available: the newest costs 896, the two before it 109 each.
        budget = TokenBudget(
            max_tokens=(
                estimator.estimate_budgeted_tokens(SYSTEM)
                + estimator.estimate_message_budgeted_tokens(messages[0])
                + 1000 + 1000
            ),
        )

        result = prune_messages(messages, SYSTEM, budget, estimator)

        assert result.messages[-3:] == messages[-3:]
        assert result.hidden_count == 2

    def test_input_transcript_is_not_mutated(self, estimator):
        messages = [Message(role="user", content="Initial task"), *_filler(30)]
        snapshot = list(messages)
        budget = _budget_for(estimator, messages[:5])

        result = prune_messages(messages, SYSTEM, budget, estimator)

        assert messages == snapshot
        assert result.messages is not messages


class TestPruneToolPairs:
    def test_extends_cutoff_to_include_tool_call(self, estimator):
        call = Message(
            role="assistant",
            content="a" * 4000,
            tool_use=[ToolUseBlock("t1", "read_file", {"path": "/test.txt"})],
        )
        result_msg = Message(
            role="user", tool_results=[ToolResultBlock("t1", "File content here")],
        )
        messages = [
            Message(role="user", content="Initial task"),
            call,
            result_msg,
            *_filler(60, size=40),
        ]
        # Budget fits everything from index 2 on, but not the call at index 1.
        budget = _budget_for(
            estimator, [messages[0], *messages[2:]], slack=10,
        )

        result = prune_messages(messages, SYSTEM, budget, estimator)

        assert call in result.messages
        assert result_msg in result.messages
        assert orphaned_tool_results(result.messages) == []
        assert result.hidden_count == 0

    def test_extension_follows_chained_pairs(self, estimator):
        messages = [
            Message(role="user", content="task"),
            *_filler(5),
            Message(role="assistant", content="b" * 2000,
                    tool_use=[ToolUseBlock("t1", "run_command", {"cmd": "ls"})]),
            Message(role="assistant", content="c" * 2000,
                    tool_use=[ToolUseBlock("t2", "run_command", {"cmd": "pwd"})]),
            Message(role="user", tool_results=[
                ToolResultBlock("t2", "/repo"), ToolResultBlock("t1", "a b"),
            ]),
            *_filler(3, size=40),
        ]
        budget = _budget_for(estimator, [messages[0], *messages[-4:]], slack=5)

        result = prune_messages(messages, SYSTEM, budget, estimator)

        assert messages[6] in result.messages
        assert messages[7] in result.messages
        assert orphaned_tool_results(result.messages) == []
        assert result.hidden_count == 5

    def test_strips_result_whose_call_never_existed(self, estimator):
        messages = [
            Message(role="user", content="task"),
            *_filler(3, size=40),
            Message(role="user", content="partial",
                    tool_results=[ToolResultBlock("ghost", "?")]),
            Message(role="user", tool_results=[ToolResultBlock("ghost2", "?")]),
            Message(role="assistant", content="done"),
        ]
        result = prune_messages(messages, SYSTEM, TokenBudget(), estimator)

        assert orphaned_tool_results(result.messages) == []
        assert result.stripped_tool_results == ["ghost", "ghost2"]
        assert any(m.content == "partial" for m in result.messages)
        assert result.hidden_count == 1
        assert result.was_pruned

    def test_many_budgets_never_orphan(self, estimator):
        messages = [Message(role="user", content="Initial task")]
        for i in range(25):
            messages += [
                Message(role="assistant", content="thinking " * (i % 7 + 1),
                        tool_use=[ToolUseBlock(f"t{i}", "read_file", {"path": f"f{i}"})]),
                Message(role="user", tool_results=[ToolResultBlock(f"t{i}", "r" * (i * 37))]),
            ]
        for max_tokens in range(1200, 5000, 97):
            budget = TokenBudget(max_tokens=max_tokens)
            result = prune_messages(messages, SYSTEM, budget, estimator)
            assert result.messages[0] is messages[0]
            assert orphaned_tool_results(result.messages) == []
            assert len(result.messages) <= len(messages) + 1


class TestPruneExhausted:
    def test_huge_system_prompt_keeps_pinned_and_last(self, estimator):
        messages = [Message(role="user", content="task"), *_filler(6)]
        result = prune_messages(
            messages, "s" * 50_000, TokenBudget(max_tokens=4000), estimator,
        )
        assert result.messages == [messages[0], messages[-1]]
        assert result.hidden_count == 5

    def test_orphaned_last_message_is_dropped(self, estimator):
        messages = [
            Message(role="user", content="task"),
            Message(role="assistant", tool_use=[ToolUseBlock("t1", "read_file", {})]),
            Message(role="user", tool_results=[ToolResultBlock("t1", "data")]),
        ]
        result = prune_messages(
            messages, "s" * 50_000, TokenBudget(max_tokens=4000), estimator,
        )
        assert result.messages == [messages[0]]
        assert result.stripped_tool_results == ["t1"]

    def test_single_message(self, estimator):
        messages = [Message(role="user", content="task")]
        result = prune_messages(messages, "s" * 50_000, TokenBudget(max_tokens=10), estimator)
        assert result.messages == messages

    def test_empty_transcript(self, estimator):
        assert prune_messages([], SYSTEM, TokenBudget(), estimator).messages == []
