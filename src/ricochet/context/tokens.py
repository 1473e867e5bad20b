"""Token estimation for context budgeting.

Counts come from a ``tiktoken`` encoding when one can be loaded, and from
the ~4 chars/token heuristic otherwise. Budgeting decisions use the
"budgeted" variants, which scale raw counts by a fudge factor to absorb
the difference between this estimate and the provider's real tokenizer.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from typing import Protocol, runtime_checkable

import tiktoken

from ricochet.config import DEFAULT_FUDGE_FACTOR
from ricochet.context.messages import Message

logger = logging.getLogger(__name__)

DEFAULT_ENCODING = "cl100k_base"

# Role and formatting tokens per message (ChatML-style framing).
MESSAGE_OVERHEAD_TOKENS = 4


@runtime_checkable
class Tokenizer(Protocol):
    def count(self, text: str) -> int:
        ...


class HeuristicTokenizer:
    """~4 characters per token. Deterministic, dependency-free."""

    def count(self, text: str) -> int:
        if not text:
            return 0
        return len(text) // 4


class TiktokenTokenizer:
    """Exact counts from a tiktoken encoding."""

    def __init__(self, encoding: tiktoken.Encoding):
        self._encoding = encoding

    @classmethod
    def load(cls, encoding_name: str = DEFAULT_ENCODING) -> TiktokenTokenizer:
        return cls(tiktoken.get_encoding(encoding_name))

    def count(self, text: str) -> int:
        if not text:
            return 0
        return len(self._encoding.encode(text, disallowed_special=()))


class LazyTokenizer:
    """Builds the real tokenizer on first use, exactly once per instance.

    The first caller loads the encoding under a lock; concurrent callers
    wait for that attempt instead of starting their own. If loading fails
    (missing encoding file, no network for the download) the heuristic is
    used for the rest of the process and loading is never retried.
    """

    def __init__(self, encoding_name: str = DEFAULT_ENCODING):
        self._encoding_name = encoding_name
        self._tokenizer: Tokenizer | None = None
        self._lock = threading.Lock()

    def _resolve(self) -> Tokenizer:
        tokenizer = self._tokenizer
        if tokenizer is not None:
            return tokenizer
        with self._lock:
            if self._tokenizer is None:
                try:
                    self._tokenizer = TiktokenTokenizer.load(self._encoding_name)
                except Exception as e:
                    logger.warning(
                        "Failed to load tiktoken encoding %s: %s. "
                        "Falling back to heuristic.",
                        self._encoding_name, e,
                    )
                    self._tokenizer = HeuristicTokenizer()
            return self._tokenizer

    @property
    def is_heuristic(self) -> bool:
        return isinstance(self._resolve(), HeuristicTokenizer)

    def count(self, text: str) -> int:
        if not text:
            return 0
        return self._resolve().count(text)


# Process-owned instance; nothing is loaded until the first count.
DEFAULT_TOKENIZER = LazyTokenizer()


class TokenEstimator:
    """Raw and budgeted token counts for text and messages.

    Read-only after construction; safe to share across conversations.
    """

    def __init__(
        self,
        tokenizer: Tokenizer | None = None,
        fudge_factor: float = DEFAULT_FUDGE_FACTOR,
    ):
        self._tokenizer = tokenizer or DEFAULT_TOKENIZER
        self._fudge_factor = max(1.0, float(fudge_factor))

    @property
    def tokenizer(self) -> Tokenizer:
        return self._tokenizer

    @property
    def fudge_factor(self) -> float:
        return self._fudge_factor

    def estimate_tokens(self, text: str) -> int:
        if not text:
            return 0
        return self._tokenizer.count(text)

    def estimate_budgeted_tokens(self, text: str) -> int:
        return int(self.estimate_tokens(text) * self._fudge_factor)

    def estimate_message_tokens(self, msg: Message) -> int:
        return self._message_tokens(msg, self.estimate_tokens)

    def estimate_message_budgeted_tokens(self, msg: Message) -> int:
        return self._message_tokens(msg, self.estimate_budgeted_tokens)

    def estimate_total_tokens(self, messages: Iterable[Message]) -> int:
        return sum(self.estimate_message_tokens(m) for m in messages)

    def estimate_total_budgeted_tokens(self, messages: Iterable[Message]) -> int:
        return sum(self.estimate_message_budgeted_tokens(m) for m in messages)

    @staticmethod
    def _message_tokens(msg: Message, est) -> int:
        tokens = est(msg.content)
        for tu in msg.tool_use:
            tokens += est(tu.name)
            tokens += est(tu.input_json)
        for tr in msg.tool_results:
            tokens += est(tr.content)
        return tokens + MESSAGE_OVERHEAD_TOKENS
