"""LLM-assisted condensation of older conversation history.

Older messages are replaced with one dense summary produced by a
summarizer; the pinned first message and the recent window stay intact.
Condensation is all-or-nothing: any failure returns the transcript it
was given.
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from ricochet.config import (
    DEFAULT_CONDENSE_THRESHOLD_PERCENT,
    DEFAULT_KEEP_RECENT_COUNT,
)
from ricochet.context.messages import Message, Role, drop_orphaned_results
from ricochet.context.tokens import TokenEstimator
from ricochet.exceptions import CondenseError

logger = logging.getLogger(__name__)

PROMPT_MESSAGE_MAX_CHARS = 1000

_THINKING_RE = re.compile(r"<thinking>.*?</thinking>", re.DOTALL)

_CONDENSE_INSTRUCTIONS = """\
Your task is to create a detailed summary of the conversation history so far.
This summary must be thorough in capturing technical details, architectural
decisions, and the current state of progress.

Your summary should be structured as follows:

1. Previous Conversation: The overall goal and what was discussed.
2. Current Work: Describe in detail what was being worked on and what progress
   has been made.
3. Key Technical Concepts: Frameworks, coding conventions, and technical
   decisions made along the way.
4. Relevant Files: Enumerate files examined or modified, their current state,
   and why they are important.
5. Pending Tasks & Next Steps: Outline outstanding work. Include direct quotes
   or specific instructions from the most recent messages so nothing is lost.

Focus on information that will be essential for continuing the task without
losing context. Keep the summary concise but informative.

=== Conversation History ===
"""


@runtime_checkable
class Summarizer(Protocol):
    """Anything that can turn a prompt into a summary (any LLM client)."""

    async def summarize(self, prompt: str) -> str:
        ...


@dataclass
class CondenseResult:
    messages: list[Message]
    summary: str = ""
    was_condensed: bool = False
    tokens_before: int = 0
    tokens_after: int = 0
    error: CondenseError | None = field(default=None, repr=False)


def strip_thinking(text: str) -> str:
    """Collapse ``<thinking>`` spans; an unclosed tag is left as-is."""
    return _THINKING_RE.sub("[...thinking compressed...]", text)


def build_condense_prompt(messages: Sequence[Message]) -> str:
    """Render older messages into the summarization prompt."""
    parts = [_CONDENSE_INSTRUCTIONS]
    for i, msg in enumerate(messages):
        speaker = "Agent" if msg.role == Role.ASSISTANT else "User"
        content = msg.content
        if msg.role == Role.ASSISTANT:
            content = strip_thinking(content)
        # Only the prompt is truncated, never the stored history.
        if len(content) > PROMPT_MESSAGE_MAX_CHARS:
            content = (
                content[:PROMPT_MESSAGE_MAX_CHARS]
                + "... [truncated for summary prompt]"
            )
        prefix = "[PINNED INITIAL TASK] " if i == 0 else ""
        parts.append(f"\n{prefix}[{speaker}]: {content}\n")
        for tu in msg.tool_use:
            parts.append(f"  - Used tool: {tu.name}\n")

    parts.append("\n=== End of History ===\n\nProvide a concise summary:")
    return "".join(parts)


def summary_message(summary: str) -> Message:
    return Message(
        role=Role.USER,
        content=f"[Previous conversation summary]\n{summary}\n[End of summary]",
    )


class Condenser:
    """Decides when to condense and performs the summarization."""

    def __init__(
        self,
        summarizer: Summarizer | None,
        max_tokens: int,
        estimator: TokenEstimator,
        threshold_percent: int = DEFAULT_CONDENSE_THRESHOLD_PERCENT,
        keep_recent: int = DEFAULT_KEEP_RECENT_COUNT,
        timeout_seconds: float | None = None,
    ):
        self._summarizer = summarizer
        self._max_tokens = max(1, max_tokens)
        self._estimator = estimator
        self._threshold = threshold_percent / 100.0
        self._keep_recent = max(1, keep_recent)
        self._timeout = timeout_seconds

    @property
    def keep_recent(self) -> int:
        return self._keep_recent

    def _usage(self, messages: Sequence[Message], system_prompt: str) -> int:
        return (
            self._estimator.estimate_budgeted_tokens(system_prompt)
            + self._estimator.estimate_total_budgeted_tokens(messages)
        )

    def should_condense(
        self, messages: Sequence[Message], system_prompt: str,
    ) -> tuple[bool, float]:
        """Return (trigger, usage fraction of the window)."""
        if len(messages) <= self._keep_recent:
            return False, 0.0
        fraction = self._usage(messages, system_prompt) / self._max_tokens
        return fraction >= self._threshold, fraction

    async def condense(
        self, messages: Sequence[Message], system_prompt: str,
    ) -> CondenseResult:
        """Summarize everything older than the recent window.

        Never raises for provider problems: failures come back on
        ``CondenseResult.error`` with the original transcript.
        """
        original = list(messages)
        result = CondenseResult(messages=original)
        if len(original) <= self._keep_recent:
            return result

        result.tokens_before = self._usage(original, system_prompt)

        if self._summarizer is None:
            logger.info("Context condensation: no summarizer configured, skipping")
            return result

        older = original[:-self._keep_recent]
        recent = original[-self._keep_recent:]
        prompt = build_condense_prompt(older)

        try:
            async with asyncio.timeout(self._timeout):
                summary = await self._summarizer.summarize(prompt)
        except TimeoutError as e:
            result.error = CondenseError(
                f"condensation timed out after {self._timeout}s", original=e,
            )
            return result
        except Exception as e:
            result.error = CondenseError(f"condensation failed: {e}", original=e)
            return result

        summary = (summary or "").strip()
        if not summary:
            result.error = CondenseError("condensation failed: empty summary")
            return result

        condensed, _ = drop_orphaned_results(
            [original[0], summary_message(summary), *recent],
        )
        tokens_after = self._usage(condensed, system_prompt)
        if tokens_after >= result.tokens_before:
            result.error = CondenseError(
                f"condensation failed: summary did not reduce context "
                f"({result.tokens_before} -> {tokens_after} tokens)",
            )
            return result

        result.messages = condensed
        result.summary = summary
        result.was_condensed = True
        result.tokens_after = tokens_after
        logger.info(
            "Context condensation: %d -> %d tokens, %d -> %d messages",
            result.tokens_before, tokens_after, len(original), len(condensed),
        )
        return result
