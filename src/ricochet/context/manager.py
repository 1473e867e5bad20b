"""Per-turn context management entry point.

Sequence for one turn: collapse redundant read-only outputs, then either
condense the older history with the summarizer or prune to a sliding
window. Nothing in the pipeline fails the call: a broken tokenizer
degrades to the heuristic, a failed summarizer degrades to pruning, and
an oversized system prompt degrades to keeping the newest message.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from ricochet.config import ContextSettings, TokenBudget
from ricochet.context.condenser import Condenser, Summarizer
from ricochet.context.messages import Message
from ricochet.context.optimizer import optimize_tool_results
from ricochet.context.pruner import prune_messages
from ricochet.context.tokens import TokenEstimator
from ricochet.exceptions import CondenseError

logger = logging.getLogger(__name__)


@dataclass
class ContextResult:
    """What the agent loop sends to the model and persists for the session."""

    messages: list[Message]
    system_prompt: str = ""
    was_condensed: bool = False
    was_truncated: bool = False
    summary: str = ""
    tokens_used: int = 0
    tokens_max: int = 0
    percentage: float = 0.0
    error: CondenseError | None = field(default=None, repr=False)

    def indicator(self) -> str:
        """One-line usage display for UI context indicators."""
        return (
            f"Context: {self.percentage:.1f}% "
            f"({self.tokens_used:,}/{self.tokens_max:,} tokens)"
        )

    def to_dict(self) -> dict:
        return {
            "messages": [m.to_dict() for m in self.messages],
            "was_condensed": self.was_condensed,
            "was_truncated": self.was_truncated,
            "summary": self.summary,
            "tokens_used": self.tokens_used,
            "tokens_max": self.tokens_max,
            "percentage": round(self.percentage, 2),
            "error": str(self.error) if self.error else None,
        }


class ContextManager:
    """Keeps a transcript inside one model's token budget."""

    def __init__(
        self,
        budget: TokenBudget | None = None,
        settings: ContextSettings | None = None,
        summarizer: Summarizer | None = None,
        estimator: TokenEstimator | None = None,
        condense_timeout_seconds: float | None = None,
    ):
        self._budget = budget or TokenBudget()
        self._settings = settings or ContextSettings()
        # The budget owns the fudge factor; an injected estimator only
        # contributes its tokenizer.
        self._estimator = TokenEstimator(
            estimator.tokenizer if estimator is not None else None,
            fudge_factor=self._budget.fudge_factor,
        )
        self._condenser: Condenser | None = None
        if self._settings.auto_condense and summarizer is not None:
            self._condenser = Condenser(
                summarizer,
                max_tokens=self._budget.max_tokens,
                estimator=self._estimator,
                threshold_percent=self._settings.condense_threshold_percent,
                keep_recent=self._settings.keep_recent_count,
                timeout_seconds=condense_timeout_seconds,
            )

    @property
    def budget(self) -> TokenBudget:
        return self._budget

    @property
    def settings(self) -> ContextSettings:
        return self._settings

    @property
    def estimator(self) -> TokenEstimator:
        return self._estimator

    def usage(self, messages: Sequence[Message], system_prompt: str) -> int:
        """Budgeted tokens for the system prompt plus the transcript."""
        return (
            self._estimator.estimate_budgeted_tokens(system_prompt)
            + self._estimator.estimate_total_budgeted_tokens(messages)
        )

    def _percentage(self, tokens: int) -> float:
        return tokens / self._budget.max_tokens * 100

    async def manage(
        self, messages: Sequence[Message], system_prompt: str,
    ) -> ContextResult:
        original = list(messages)
        tokens_used = self.usage(original, system_prompt)
        result = ContextResult(
            messages=original,
            system_prompt=system_prompt,
            tokens_used=tokens_used,
            tokens_max=self._budget.max_tokens,
            percentage=self._percentage(tokens_used),
        )
        logger.info(
            "Context: %d/%d tokens (%.1f%%), %d messages",
            tokens_used, self._budget.max_tokens, result.percentage, len(original),
        )

        optimized = optimize_tool_results(original)
        result.messages = optimized

        if self._condenser is not None:
            should, fraction = self._condenser.should_condense(optimized, system_prompt)
            if should:
                logger.info(
                    "Threshold reached (%.1f%%), attempting condensation",
                    fraction * 100,
                )
                condensed = await self._condenser.condense(optimized, system_prompt)
                if condensed.was_condensed:
                    result.messages = condensed.messages
                    result.was_condensed = True
                    result.summary = condensed.summary
                    result.tokens_used = condensed.tokens_after
                    result.percentage = self._percentage(condensed.tokens_after)
                    return result
                if condensed.error is not None:
                    logger.warning("%s; falling back to pruning", condensed.error)
                    result.error = condensed.error

        if len(optimized) > 2:
            pruned = prune_messages(
                optimized,
                system_prompt,
                self._budget,
                self._estimator,
                keep_recent=self._settings.keep_recent_count,
            )
            result.messages = pruned.messages
            result.was_truncated = pruned.hidden_count > 0

        final_tokens = self.usage(result.messages, system_prompt)
        if result.was_truncated:
            logger.info(
                "Truncated: %d -> %d messages, %d -> %d tokens",
                len(original), len(result.messages), tokens_used, final_tokens,
            )
        result.tokens_used = final_tokens
        result.percentage = self._percentage(final_tokens)
        return result


async def manage_context(
    messages: Sequence[Message],
    system_prompt: str,
    settings: ContextSettings,
    budget: TokenBudget,
    summarizer: Summarizer | None = None,
    estimator: TokenEstimator | None = None,
    condense_timeout_seconds: float | None = None,
) -> ContextResult:
    """Run one turn of context management with a throwaway manager.

    ``condense_timeout_seconds`` bounds the summarizer call; on expiry the
    turn falls back to pruning.
    """
    manager = ContextManager(
        budget=budget,
        settings=settings,
        summarizer=summarizer,
        estimator=estimator,
        condense_timeout_seconds=condense_timeout_seconds,
    )
    return await manager.manage(messages, system_prompt)
