"""Evict large tool outputs from messages outside the recent window."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import replace

from ricochet.config import DEFAULT_KEEP_RECENT_COUNT
from ricochet.context.messages import Message

logger = logging.getLogger(__name__)

EVICTION_THRESHOLD_CHARS = 2000

EVICTION_PLACEHOLDER = (
    "[Content evicted to save tokens. Use read_file or run command again "
    "to view if needed.]"
)


def evict_stale_content(
    messages: Sequence[Message],
    keep_recent: int = DEFAULT_KEEP_RECENT_COUNT,
    max_chars: int = EVICTION_THRESHOLD_CHARS,
) -> list[Message]:
    """Replace oversized tool results older than the last ``keep_recent`` messages.

    The pinned first message is never touched. Runs regardless of budget
    pressure and only shrinks content.
    """
    result = list(messages)
    keep_recent = max(0, keep_recent)
    if len(result) <= keep_recent:
        return result

    evicted = 0
    for i in range(1, len(result) - keep_recent):
        msg = result[i]
        if not msg.has_tool_results:
            continue
        if not any(len(tr.content) > max_chars for tr in msg.tool_results):
            continue
        blocks = []
        for tr in msg.tool_results:
            if len(tr.content) > max_chars:
                tr = replace(tr, content=EVICTION_PLACEHOLDER)
                evicted += 1
            blocks.append(tr)
        result[i] = msg.with_tool_results(blocks)

    if evicted:
        logger.debug("Evicted %d stale tool outputs", evicted)
    return result
