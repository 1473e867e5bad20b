"""Conversation context window management.

Keeps a growing tool-augmented transcript inside a fixed token budget:
redundant read-only outputs are collapsed, stale large outputs evicted,
and the transcript is either condensed by a summarizer or pruned to a
budget-fitting suffix that never orphans a tool result.
"""

from ricochet.context.condenser import Condenser, CondenseResult, Summarizer
from ricochet.context.eviction import EVICTION_PLACEHOLDER, evict_stale_content
from ricochet.context.manager import ContextManager, ContextResult, manage_context
from ricochet.context.messages import (
    Message,
    Role,
    ToolResultBlock,
    ToolUseBlock,
    drop_orphaned_results,
    orphaned_tool_results,
)
from ricochet.context.optimizer import READ_ONLY_TOOLS, optimize_tool_results
from ricochet.context.pruner import PruneResult, prune_messages
from ricochet.context.tokens import (
    DEFAULT_TOKENIZER,
    HeuristicTokenizer,
    LazyTokenizer,
    TiktokenTokenizer,
    TokenEstimator,
    Tokenizer,
)

__all__ = [
    "DEFAULT_TOKENIZER",
    "EVICTION_PLACEHOLDER",
    "READ_ONLY_TOOLS",
    "CondenseResult",
    "Condenser",
    "ContextManager",
    "ContextResult",
    "HeuristicTokenizer",
    "LazyTokenizer",
    "Message",
    "PruneResult",
    "Role",
    "Summarizer",
    "TiktokenTokenizer",
    "TokenEstimator",
    "Tokenizer",
    "ToolResultBlock",
    "ToolUseBlock",
    "drop_orphaned_results",
    "evict_stale_content",
    "manage_context",
    "optimize_tool_results",
    "orphaned_tool_results",
    "prune_messages",
]
