"""Abstract model interface.

Providers implement this interface so the summarizer adapter can drive
any chat-completion backend.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass
class TokenUsage:
    """Token usage statistics for a model response."""

    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0


@dataclass
class ModelResponse:
    """Structured response from a model completion."""

    text: str
    usage: TokenUsage = field(default_factory=TokenUsage)
    model: str = ""
    latency_ms: int = 0
    finish_reason: str = ""


class ModelProvider(ABC):
    """Abstract base class for all model providers."""

    @abstractmethod
    async def complete(
        self,
        messages: list[dict],
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> ModelResponse:
        """Send a completion request and return structured response."""
        ...

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable model name."""
        ...

    async def aclose(self) -> None:
        """Release network resources held by the provider."""


class ModelConnectionError(Exception):
    """Raised when a model API call fails due to network or server issues.

    Wraps the underlying httpx/transport error with a user-friendly
    message and preserves the original exception for debugging.
    """

    def __init__(self, message: str, original: Exception | None = None):
        super().__init__(message)
        self.original = original
