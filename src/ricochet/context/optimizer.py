"""Collapse repeated read-only tool outputs.

When the same idempotent tool is called again with the same arguments,
only the newest output is worth keeping: earlier copies are replaced
with a short pointer to the later one. Messages and blocks are never
removed, so tool call/result pairing is unaffected.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import replace

from ricochet.context.messages import Message, canonical_arguments

logger = logging.getLogger(__name__)

# Read-only tools whose repeated output is safe to collapse.
READ_ONLY_TOOLS = frozenset({
    "read_file",
    "list_dir",
    "grep_search",
    "find_by_name",
})

_ToolKey = tuple[str, str]


def redundant_output_placeholder(tool_name: str, arguments: str) -> str:
    return (
        f"[Previous output from {tool_name} for {arguments} removed to save "
        f"context. See latest version below.]"
    )


def optimize_tool_results(
    messages: Sequence[Message],
    tools: frozenset[str] = READ_ONLY_TOOLS,
) -> list[Message]:
    """Replace all but the newest output of each repeated read-only call."""
    optimized = list(messages)
    calls: dict[str, _ToolKey] = {}
    last_seen: dict[_ToolKey, tuple[int, int]] = {}

    for i, msg in enumerate(messages):
        if msg.has_tool_use:
            for tu in msg.tool_use:
                calls[tu.id] = (tu.name, canonical_arguments(tu.input))

        if not msg.has_tool_results:
            continue
        for j, tr in enumerate(msg.tool_results):
            key = calls.get(tr.tool_use_id)
            if key is None or key[0] not in tools:
                continue

            previous = last_seen.get(key)
            if previous is not None:
                prev_idx, prev_block = previous
                prev_msg = optimized[prev_idx]
                results = list(prev_msg.tool_results)
                results[prev_block] = replace(
                    results[prev_block], content=redundant_output_placeholder(*key),
                )
                optimized[prev_idx] = prev_msg.with_tool_results(results)
                logger.debug("Optimized redundant %s for %s", key[0], key[1])

            last_seen[key] = (i, j)

    return optimized

