"""Adapt a chat model provider into a context summarizer."""

from __future__ import annotations

import logging

from ricochet.config import SummarizerConfig
from ricochet.exceptions import ModelError
from ricochet.models.base import ModelProvider
from ricochet.models.openai_provider import OpenAICompatibleProvider

logger = logging.getLogger(__name__)

SUMMARY_MAX_TOKENS = 4000


class ProviderSummarizer:
    """Send the condensation prompt as a single user turn.

    One request per call and no retries: a failed summary falls back to
    pruning for this turn, and the next turn tries again. Stateless per
    call, so one instance can serve many conversations.
    """

    def __init__(
        self,
        provider: ModelProvider,
        max_tokens: int = SUMMARY_MAX_TOKENS,
    ):
        self._provider = provider
        self._max_tokens = max_tokens

    @property
    def provider(self) -> ModelProvider:
        return self._provider

    async def summarize(self, prompt: str) -> str:
        try:
            response = await self._provider.complete(
                [{"role": "user", "content": prompt}],
                max_tokens=self._max_tokens,
            )
        except Exception as e:
            logger.warning("Summarize on %s failed: %s", self._provider.name, e)
            raise
        if not response.text:
            raise ModelError(f"{self._provider.name} returned an empty summary")
        return response.text


def build_summarizer(config: SummarizerConfig) -> ProviderSummarizer | None:
    """Summarizer for the configured endpoint, or None when unconfigured."""
    if not config.enabled:
        return None
    return ProviderSummarizer(
        OpenAICompatibleProvider(config),
        max_tokens=config.max_tokens,
    )
