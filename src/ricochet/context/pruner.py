"""Sliding-window pruning under a token budget.

Keeps the pinned first message plus the longest recent suffix that fits
the budget, widened backward whenever a retained tool result refers to
a tool call that would otherwise be cut. A final integrity pass strips
any result that still lacks its call, so the output never carries an
orphaned tool result, which providers reject.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from ricochet.config import DEFAULT_KEEP_RECENT_COUNT, TokenBudget
from ricochet.context.eviction import evict_stale_content
from ricochet.context.messages import Message, Role, drop_orphaned_results
from ricochet.context.tokens import TokenEstimator

logger = logging.getLogger(__name__)

# The newest messages survive budget pressure unless one alone is large.
RECENT_FLOOR_COUNT = 3
RECENT_FLOOR_MAX_SHARE = 0.2


@dataclass
class PruneResult:
    """Outcome of one pruning pass."""

    messages: list[Message]
    hidden_count: int = 0
    stripped_tool_results: list[str] = field(default_factory=list)

    @property
    def was_pruned(self) -> bool:
        return self.hidden_count > 0 or bool(self.stripped_tool_results)


def pruned_notice(hidden_count: int) -> Message:
    return Message(
        role=Role.USER,
        content=(
            f"[Notice: {hidden_count} older messages were hidden to stay within "
            f"context limits. Context safety margin (fudge) applied.]"
        ),
    )


def prune_messages(
    messages: Sequence[Message],
    system_prompt: str,
    budget: TokenBudget,
    estimator: TokenEstimator,
    keep_recent: int = DEFAULT_KEEP_RECENT_COUNT,
) -> PruneResult:
    """Reduce ``messages`` to a budget-fitting, orphan-free transcript."""
    messages = evict_stale_content(messages, keep_recent=keep_recent)
    if not messages:
        return PruneResult(messages=[])

    pinned = messages[0]
    available = (
        budget.max_tokens
        - estimator.estimate_budgeted_tokens(system_prompt)
        - estimator.estimate_message_budgeted_tokens(pinned)
        - budget.safety_margin_tokens
    )

    if available <= 0:
        return _exhausted(messages)

    if len(messages) <= 2:
        return PruneResult(messages=messages)

    cutoff = _accumulate(messages, available, estimator)
    cutoff = _extend_for_tool_calls(messages, cutoff)

    kept, stripped = drop_orphaned_results([pinned, *messages[cutoff:]])
    retained = kept[1:]
    hidden_count = len(messages) - 1 - len(retained)

    result = [pinned]
    if hidden_count > 0:
        result.append(pruned_notice(hidden_count))
    result.extend(retained)

    if hidden_count > 0:
        logger.info(
            "Pruned %d of %d messages (available=%d tokens)",
            hidden_count, len(messages), available,
        )
    return PruneResult(
        messages=result,
        hidden_count=hidden_count,
        stripped_tool_results=stripped,
    )


def _accumulate(
    messages: Sequence[Message],
    available: int,
    estimator: TokenEstimator,
) -> int:
    """Walk backward from the newest message; return the first kept index."""
    last = len(messages) - 1
    floor_start = len(messages) - RECENT_FLOOR_COUNT
    used = 0
    cutoff = len(messages)

    for i in range(last, 0, -1):
        tokens = estimator.estimate_message_budgeted_tokens(messages[i])
        in_floor = i >= floor_start and tokens < available * RECENT_FLOOR_MAX_SHARE
        if used + tokens > available and not in_floor:
            if i == last:
                # The newest message is kept even when it alone is too big.
                cutoff = i
            break
        used += tokens
        cutoff = i

    return cutoff


def _extend_for_tool_calls(messages: Sequence[Message], cutoff: int) -> int:
    """Move ``cutoff`` back until every retained result's call is retained."""
    producers: dict[str, list[int]] = {}
    for i in range(1, len(messages)):
        for tool_use_id in messages[i].tool_use_ids():
            producers.setdefault(tool_use_id, []).append(i)

    while cutoff > 1:
        needed: set[str] = set()
        produced: set[str] = set()
        for msg in messages[cutoff:]:
            needed |= msg.result_ids()
            produced |= msg.tool_use_ids()

        targets = []
        for tool_use_id in needed - produced:
            earlier = [i for i in producers.get(tool_use_id, ()) if i < cutoff]
            if earlier:
                targets.append(max(earlier))
        if not targets:
            break
        cutoff = max(1, min(targets))

    return cutoff


def _exhausted(messages: list[Message]) -> PruneResult:
    """The system prompt alone overflows the window: keep pinned + newest."""
    if len(messages) == 1:
        return PruneResult(messages=messages)
    kept, stripped = drop_orphaned_results([messages[0], messages[-1]])
    hidden_count = len(messages) - len(kept)
    logger.warning(
        "System prompt exhausts the context window; keeping %d of %d messages",
        len(kept), len(messages),
    )
    return PruneResult(
        messages=kept,
        hidden_count=hidden_count,
        stripped_tool_results=stripped,
    )
